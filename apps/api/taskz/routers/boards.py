from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.access import Op, authorize
from taskz.boards import queries, service
from taskz.deps import get_current_user, get_db
from taskz.errors import NotFound
from taskz.models import Board, BoardStatus, BoardUser, User
from taskz.schemas import (
  BoardCreateIn,
  BoardOut,
  BoardStatusOut,
  BoardUpdateIn,
  BoardUserIn,
  BoardUserOut,
  BoardUserRoleIn,
)

router = APIRouter(prefix="/api/Board", tags=["boards"])


def _status_out(s: BoardStatus) -> BoardStatusOut:
  return BoardStatusOut(id=s.id, title=s.title, position=s.position)


def _member_out(m: BoardUser, username: str | None) -> BoardUserOut:
  return BoardUserOut(id=m.id, userId=m.user_id, username=username, role=m.role)


def _board_out(b: Board, *, users: list[BoardUserOut] | None = None, statuses: list[BoardStatusOut] | None = None) -> BoardOut:
  return BoardOut(
    id=b.id,
    workspaceId=b.workspace_id,
    name=b.name,
    background=b.background,
    isArchived=b.is_archived,
    created=b.created_at,
    lastModified=b.updated_at,
    users=users or [],
    statuses=statuses or [],
  )


@router.post("", response_model=BoardOut, status_code=status.HTTP_201_CREATED)
async def create_board(payload: BoardCreateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  b = await service.create_board(
    db, caller_id=user.id, workspace_id=payload.workspaceId, name=payload.name, background=payload.background
  )
  statuses = await queries.list_statuses(db, b.id)
  return _board_out(b, statuses=[_status_out(s) for s in statuses])


@router.get("", response_model=list[BoardOut])
async def list_boards(workspaceId: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[BoardOut]:
  return [_board_out(b) for b in await queries.list_visible_boards(db, user.id, workspaceId)]


@router.get("/{board_id}", response_model=BoardOut)
async def get_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> BoardOut:
  await authorize(db, user.id, board_id, Op.READ)
  b = await queries.get_board(db, board_id)
  if not b:
    raise NotFound("Board not found or access denied.")
  members = await queries.list_members(db, board_id)
  statuses = await queries.list_statuses(db, board_id)
  return _board_out(
    b,
    users=[_member_out(m, u.username) for m, u in members],
    statuses=[_status_out(s) for s in statuses],
  )


@router.put("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_board(
  board_id: str,
  payload: BoardUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> Response:
  await service.update_board(db, caller_id=user.id, board_id=board_id, name=payload.name, background=payload.background)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{board_id}/archive", status_code=status.HTTP_204_NO_CONTENT)
async def archive_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
  await service.archive_board(db, caller_id=user.id, board_id=board_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{board_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_board(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
  await service.delete_board(db, caller_id=user.id, board_id=board_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{board_id}/statuses", response_model=list[BoardStatusOut])
async def list_statuses(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[BoardStatusOut]:
  await authorize(db, user.id, board_id, Op.READ)
  return [_status_out(s) for s in await queries.list_statuses(db, board_id)]


@router.get("/{board_id}/users", response_model=list[BoardUserOut])
async def list_users(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[BoardUserOut]:
  await authorize(db, user.id, board_id, Op.READ)
  return [_member_out(m, u.username) for m, u in await queries.list_members(db, board_id)]


@router.post("/{board_id}/users", response_model=BoardUserOut, status_code=status.HTTP_201_CREATED)
async def add_user(
  board_id: str,
  payload: BoardUserIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardUserOut:
  m, u = await service.add_board_member(db, caller_id=user.id, board_id=board_id, username=payload.username, role=payload.role)
  return _member_out(m, u.username)


@router.put("/{board_id}/users/{user_id}", response_model=BoardUserOut)
async def change_user_role(
  board_id: str,
  user_id: str,
  payload: BoardUserRoleIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardUserOut:
  m = await service.change_member_role(db, caller_id=user.id, board_id=board_id, user_id=user_id, role=payload.role)
  names = await queries.usernames_for(db, [m.user_id])
  return _member_out(m, names.get(m.user_id))


@router.delete("/{board_id}/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_user(board_id: str, user_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
  await service.remove_board_member(db, caller_id=user.id, board_id=board_id, user_id=user_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
