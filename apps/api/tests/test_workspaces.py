from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from conftest import auth, make_board, make_user
from taskz.db import SessionLocal
from taskz.models import Board, BoardStatus, BoardTask, BoardUser


async def _count(model) -> int:
  async with SessionLocal() as db:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.anyio
async def test_workspace_crud_is_owner_only(client: AsyncClient) -> None:
  owner_id, owner = await make_user("owner")
  _, other = await make_user("other")

  res = await client.post("/api/Workspace", json={"name": "  Team  "}, headers=auth(owner))
  assert res.status_code == 201, res.text
  ws = res.json()
  assert ws["name"] == "Team"
  assert ws["userId"] == owner_id
  assert ws["username"] == "owner"

  assert (await client.get(f"/api/Workspace/{ws['id']}", headers=auth(other))).status_code == 404
  assert (await client.put(f"/api/Workspace/{ws['id']}", json={"name": "Mine"}, headers=auth(other))).status_code == 404
  assert (await client.get("/api/Workspace", headers=auth(other))).json() == []

  res = await client.put(f"/api/Workspace/{ws['id']}", json={"name": "Renamed"}, headers=auth(owner))
  assert res.status_code == 204
  assert (await client.get(f"/api/Workspace/{ws['id']}", headers=auth(owner))).json()["name"] == "Renamed"


@pytest.mark.anyio
async def test_member_sees_workspace_and_board(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  _, alice = await make_user("alice")
  board = await make_board(client, owner)
  await client.post(f"/api/Board/{board['id']}/users", json={"username": "alice", "role": "viewer"}, headers=auth(owner))

  workspaces = (await client.get("/api/Workspace", headers=auth(alice))).json()
  assert [w["id"] for w in workspaces] == [board["workspaceId"]]
  boards = (await client.get("/api/Board", params={"workspaceId": board["workspaceId"]}, headers=auth(alice))).json()
  assert [b["id"] for b in boards] == [board["id"]]


@pytest.mark.anyio
async def test_board_update_and_archive(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  board = await make_board(client, owner)

  res = await client.put(f"/api/Board/{board['id']}", json={"name": "Sprint", "background": "#112233"}, headers=auth(owner))
  assert res.status_code == 204
  res = await client.put(f"/api/Board/{board['id']}", json={"background": "blue"}, headers=auth(owner))
  assert res.status_code == 400
  body = (await client.get(f"/api/Board/{board['id']}", headers=auth(owner))).json()
  assert (body["name"], body["background"]) == ("Sprint", "#112233")

  res = await client.put(f"/api/Board/{board['id']}/archive", headers=auth(owner))
  assert res.status_code == 204
  boards = (await client.get("/api/Board", params={"workspaceId": board["workspaceId"]}, headers=auth(owner))).json()
  assert boards == []


@pytest.mark.anyio
async def test_delete_workspace_cascades(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  await make_user("alice")
  board = await make_board(client, owner, statuses=["To Do", "Done"])
  await client.post(f"/api/Board/{board['id']}/users", json={"username": "alice", "role": "editor"}, headers=auth(owner))
  await client.post(f"/api/Task/board/{board['id']}", json={"title": "t"}, headers=auth(owner))

  res = await client.delete(f"/api/Workspace/{board['workspaceId']}", headers=auth(owner))
  assert res.status_code == 204
  for model in (Board, BoardStatus, BoardTask, BoardUser):
    assert await _count(model) == 0
  assert (await client.get(f"/api/Board/{board['id']}", headers=auth(owner))).status_code == 404


@pytest.mark.anyio
async def test_delete_board_cascades_and_leaves_siblings(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  await make_user("alice")
  board = await make_board(client, owner, statuses=["To Do", "Done"])
  other = await client.post(
    "/api/Board", json={"workspaceId": board["workspaceId"], "name": "Other"}, headers=auth(owner)
  )
  assert other.status_code == 201, other.text
  await client.post("/api/BoardStatus", json={"boardId": other.json()["id"], "name": "Kept"}, headers=auth(owner))
  await client.post(f"/api/Board/{board['id']}/users", json={"username": "alice", "role": "editor"}, headers=auth(owner))
  await client.post(f"/api/Task/board/{board['id']}", json={"title": "t1"}, headers=auth(owner))
  await client.post(f"/api/Task/board/{board['id']}", json={"title": "t2"}, headers=auth(owner))

  res = await client.delete(f"/api/Board/{board['id']}", headers=auth(owner))
  assert res.status_code == 204
  assert await _count(Board) == 1
  assert await _count(BoardStatus) == 1
  assert await _count(BoardTask) == 0
  assert await _count(BoardUser) == 0
  assert (await client.get(f"/api/Board/{board['id']}", headers=auth(owner))).status_code == 404
  assert (await client.delete(f"/api/Board/{board['id']}", headers=auth(owner))).status_code == 404


@pytest.mark.anyio
async def test_workspace_name_length_is_checked_once(client: AsyncClient) -> None:
  _, owner = await make_user("owner")
  res = await client.post("/api/Workspace", json={"name": "w" * 101}, headers=auth(owner))
  assert res.status_code == 400
  res = await client.post("/api/Workspace", json={"name": "w" * 100}, headers=auth(owner))
  assert res.status_code == 201, res.text
