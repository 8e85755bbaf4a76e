from __future__ import annotations

import pytest
from httpx import AsyncClient

from conftest import auth, make_board, make_user


@pytest.mark.anyio
async def test_add_member_validation(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  await make_user("alice")
  board = await make_board(client, owner)
  url = f"/api/Board/{board['id']}/users"

  res = await client.post(url, json={"username": "alice", "role": "admin"}, headers=auth(owner))
  assert res.status_code == 400
  res = await client.post(url, json={"username": "ghost", "role": "viewer"}, headers=auth(owner))
  assert res.status_code == 404
  res = await client.post(url, json={"username": "owner", "role": "editor"}, headers=auth(owner))
  assert res.status_code == 400

  res = await client.post(url, json={"username": "alice", "role": "Viewer"}, headers=auth(owner))
  assert res.status_code == 201, res.text
  assert res.json()["role"] == "viewer"
  res = await client.post(url, json={"username": "alice", "role": "editor"}, headers=auth(owner))
  assert res.status_code == 409


@pytest.mark.anyio
async def test_change_role_and_remove_member(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  alice_id, alice = await make_user("alice")
  board = await make_board(client, owner, statuses=["To Do"])
  await client.post(f"/api/Board/{board['id']}/users", json={"username": "alice", "role": "viewer"}, headers=auth(owner))

  res = await client.post(f"/api/Task/board/{board['id']}", json={"title": "t"}, headers=auth(alice))
  assert res.status_code == 403

  res = await client.put(f"/api/Board/{board['id']}/users/{alice_id}", json={"role": "editor"}, headers=auth(owner))
  assert res.status_code == 200, res.text
  assert res.json()["role"] == "editor"
  assert res.json()["username"] == "alice"

  res = await client.post(f"/api/Task/board/{board['id']}", json={"title": "t"}, headers=auth(alice))
  assert res.status_code == 201, res.text

  res = await client.delete(f"/api/Board/{board['id']}/users/{alice_id}", headers=auth(owner))
  assert res.status_code == 204
  res = await client.get(f"/api/Board/{board['id']}", headers=auth(alice))
  assert res.status_code == 404

  res = await client.delete(f"/api/Board/{board['id']}/users/{alice_id}", headers=auth(owner))
  assert res.status_code == 404


@pytest.mark.anyio
async def test_board_detail_lists_users_and_statuses(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  await make_user("alice")
  board = await make_board(client, owner, statuses=["To Do", "Done"])
  await client.post(f"/api/Board/{board['id']}/users", json={"username": "alice", "role": "editor"}, headers=auth(owner))

  res = await client.get(f"/api/Board/{board['id']}", headers=auth(owner))
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["background"] == "#FFFFFF"
  assert [u["username"] for u in body["users"]] == ["alice"]
  assert [s["title"] for s in body["statuses"]] == ["To Do", "Done"]
