from __future__ import annotations

from enum import Enum, IntEnum

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.errors import Forbidden, NotFound
from taskz.models import Board, BoardUser, Workspace


class Role(IntEnum):
  # order matters: every comparison below relies on it
  NONE = 0
  VIEWER = 1
  EDITOR = 2
  OWNER = 3


MEMBER_ROLES = {"editor": Role.EDITOR, "viewer": Role.VIEWER}


class Op(str, Enum):
  READ = "read"
  MANAGE_BOARD = "manage_board"
  MANAGE_MEMBERS = "manage_members"
  MANAGE_STATUSES = "manage_statuses"
  EDIT_TASKS = "edit_tasks"


REQUIRED_ROLE: dict[Op, Role] = {
  Op.READ: Role.VIEWER,
  Op.MANAGE_BOARD: Role.OWNER,
  Op.MANAGE_MEMBERS: Role.OWNER,
  Op.MANAGE_STATUSES: Role.OWNER,
  Op.EDIT_TASKS: Role.EDITOR,
}


def is_permitted(role: Role, op: Op) -> bool:
  return role >= REQUIRED_ROLE[op]


async def resolve_role(db: AsyncSession, caller_id: str, board_id: str) -> Role:
  res = await db.execute(
    select(Workspace.owner_id).join(Board, Board.workspace_id == Workspace.id).where(Board.id == board_id)
  )
  owner_id = res.scalar_one_or_none()
  if owner_id is None:
    return Role.NONE
  if owner_id == caller_id:
    return Role.OWNER
  mres = await db.execute(select(BoardUser.role).where(BoardUser.board_id == board_id, BoardUser.user_id == caller_id))
  member_role = mres.scalar_one_or_none()
  if member_role is None:
    return Role.NONE
  return MEMBER_ROLES.get(member_role, Role.NONE)


async def authorize(db: AsyncSession, caller_id: str, board_id: str, op: Op) -> Role:
  """Raise unless `caller_id` may perform `op` on the board; returns the resolved role.

  Missing boards and boards the caller has no membership on both report NotFound,
  so existence is never revealed to outsiders.
  """
  role = await resolve_role(db, caller_id, board_id)
  if role == Role.NONE:
    raise NotFound("Board not found or access denied.")
  if not is_permitted(role, op):
    raise Forbidden("Insufficient role for this board.")
  return role


async def require_workspace_owner(db: AsyncSession, caller_id: str, workspace_id: str) -> Workspace:
  res = await db.execute(select(Workspace).where(Workspace.id == workspace_id))
  ws = res.scalar_one_or_none()
  if not ws or ws.owner_id != caller_id:
    raise NotFound("Workspace not found or access denied.")
  return ws


def readable_boards_clause(caller_id: str):
  """SQL predicate over Board selecting boards the caller can read."""
  owned = select(Workspace.id).where(Workspace.owner_id == caller_id)
  member = select(BoardUser.board_id).where(BoardUser.user_id == caller_id)
  return or_(Board.workspace_id.in_(owned), Board.id.in_(member))
