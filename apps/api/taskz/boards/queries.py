from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.access import readable_boards_clause
from taskz.models import Board, BoardStatus, BoardTask, BoardUser, User, Workspace


async def usernames_for(db: AsyncSession, ids: Iterable[str | None]) -> dict[str, str]:
  wanted = {i for i in ids if i}
  if not wanted:
    return {}
  res = await db.execute(select(User.id, User.username).where(User.id.in_(wanted)))
  return {row.id: row.username for row in res.all()}


async def get_board(db: AsyncSession, board_id: str) -> Board | None:
  res = await db.execute(select(Board).where(Board.id == board_id))
  return res.scalar_one_or_none()


async def list_statuses(db: AsyncSession, board_id: str) -> list[BoardStatus]:
  res = await db.execute(
    select(BoardStatus).where(BoardStatus.board_id == board_id).order_by(BoardStatus.position.asc(), BoardStatus.id.asc())
  )
  return list(res.scalars().all())


async def list_members(db: AsyncSession, board_id: str) -> list[tuple[BoardUser, User]]:
  res = await db.execute(
    select(BoardUser, User)
    .join(User, User.id == BoardUser.user_id)
    .where(BoardUser.board_id == board_id)
    .order_by(BoardUser.created_at.asc())
  )
  return [(m, u) for m, u in res.all()]


async def list_board_tasks(db: AsyncSession, board_id: str) -> list[BoardTask]:
  res = await db.execute(
    select(BoardTask).where(BoardTask.board_id == board_id).order_by(BoardTask.status_id.asc(), BoardTask.position.asc())
  )
  return list(res.scalars().all())


async def list_status_tasks(db: AsyncSession, status_id: str) -> list[BoardTask]:
  res = await db.execute(select(BoardTask).where(BoardTask.status_id == status_id).order_by(BoardTask.position.asc()))
  return list(res.scalars().all())


async def list_assigned_tasks(db: AsyncSession, caller_id: str) -> list[BoardTask]:
  priority_rank = {"high": 0, "medium": 1, "low": 2}
  res = await db.execute(
    select(BoardTask)
    .join(Board, Board.id == BoardTask.board_id)
    .where(BoardTask.assignee_id == caller_id, readable_boards_clause(caller_id))
  )
  tasks = list(res.scalars().all())
  # undated tasks sort last
  tasks.sort(key=lambda t: (t.due_date is None, t.due_date or t.created_at, priority_rank.get(t.priority, 3)))
  return tasks


async def list_visible_workspaces(db: AsyncSession, caller_id: str) -> list[Workspace]:
  member_ws = (
    select(Board.workspace_id).join(BoardUser, BoardUser.board_id == Board.id).where(BoardUser.user_id == caller_id)
  )
  res = await db.execute(
    select(Workspace)
    .where((Workspace.owner_id == caller_id) | Workspace.id.in_(member_ws))
    .order_by(Workspace.created_at.asc())
  )
  return list(res.scalars().all())


async def list_visible_boards(db: AsyncSession, caller_id: str, workspace_id: str) -> list[Board]:
  res = await db.execute(
    select(Board)
    .where(Board.workspace_id == workspace_id, Board.is_archived.is_(False), readable_boards_clause(caller_id))
    .order_by(Board.created_at.asc())
  )
  return list(res.scalars().all())
