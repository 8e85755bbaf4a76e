from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskz import positions
from taskz.access import MEMBER_ROLES, Op, Role, authorize, require_workspace_owner, resolve_role
from taskz.audit import stamp_created, stamp_modified
from taskz.config import settings
from taskz.errors import Conflict, NotFound, StaleRead, ValidationError
from taskz.models import Board, BoardStatus, BoardTask, BoardUser, User, Workspace
from taskz.transactions import run_atomic

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "medium", "high")
_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

TASK_FIELDS = ("title", "description", "priority", "due_date", "assignee_id", "username", "status_id", "position")


def _clean_text(value: str | None, *, what: str, max_length: int) -> str:
  text = (value or "").strip()
  if not text:
    raise ValidationError(f"{what} is required.")
  if len(text) > max_length:
    raise ValidationError(f"{what} must be at most {max_length} characters.")
  return text


def _clean_background(value: str | None) -> str:
  if value is None:
    return settings.default_board_background
  if not _HEX_COLOR_RE.fullmatch(value):
    raise ValidationError("Background must be a valid hex color (e.g. #FFAA00).")
  return value


def _clean_priority(value: str | None) -> str:
  if value is None:
    return "medium"
  key = value.strip().lower()
  if key not in PRIORITIES:
    raise ValidationError("Priority must be one of: low, medium, high.")
  return key


def _check_position(value: int | None) -> None:
  if value is not None and value < 0:
    raise ValidationError("Position must be zero or greater.")


def _write_positions(rows: Sequence[Any], writes: dict[str, int], caller_id: str) -> None:
  for row in rows:
    if row.id in writes:
      row.position = writes[row.id]
      stamp_modified(row, caller_id)


# -- locking and sibling loading ----------------------------------------------------------


async def _lock_board(db: AsyncSession, board_id: str) -> Board:
  res = await db.execute(select(Board).where(Board.id == board_id).with_for_update())
  board = res.scalar_one_or_none()
  if not board:
    raise NotFound("Board not found or access denied.")
  return board


async def _lock_statuses(db: AsyncSession, status_ids: Sequence[str]) -> dict[str, BoardStatus]:
  # fixed id order so two cross-column moves never wait on each other in opposite order
  res = await db.execute(
    select(BoardStatus).where(BoardStatus.id.in_(sorted(set(status_ids)))).order_by(BoardStatus.id).with_for_update()
  )
  return {s.id: s for s in res.scalars().all()}


async def _status_group(db: AsyncSession, board_id: str, caller_id: str) -> list[BoardStatus]:
  res = await db.execute(
    select(BoardStatus)
    .where(BoardStatus.board_id == board_id)
    .order_by(BoardStatus.position.asc(), BoardStatus.id.asc())
    .execution_options(populate_existing=True)
  )
  rows = list(res.scalars().all())
  _write_positions(rows, positions.normalize(positions.siblings_of(rows)), caller_id)
  return rows


async def _task_group(db: AsyncSession, status_id: str, caller_id: str) -> list[BoardTask]:
  res = await db.execute(
    select(BoardTask)
    .where(BoardTask.status_id == status_id)
    .order_by(BoardTask.position.asc(), BoardTask.id.asc())
    .execution_options(populate_existing=True)
  )
  rows = list(res.scalars().all())
  _write_positions(rows, positions.normalize(positions.siblings_of(rows)), caller_id)
  return rows


async def _user_by_username(db: AsyncSession, username: str) -> User:
  res = await db.execute(select(User).where(User.username == username.strip()))
  u = res.scalar_one_or_none()
  if not u:
    raise NotFound(f"User '{username}' not found.")
  return u


async def _resolve_assignee(db: AsyncSession, board_id: str, *, assignee_id: str | None, username: str | None) -> str | None:
  if username:
    u = await _user_by_username(db, username)
    assignee_id = u.id
  elif assignee_id:
    res = await db.execute(select(User.id).where(User.id == assignee_id))
    if res.scalar_one_or_none() is None:
      raise NotFound("Assignee not found.")
  if assignee_id and await resolve_role(db, assignee_id, board_id) == Role.NONE:
    raise ValidationError("Assignee must have access to the board.")
  return assignee_id


async def _delete_boards_everything(db: AsyncSession, board_ids) -> None:
  await db.execute(delete(BoardTask).where(BoardTask.board_id.in_(board_ids)))
  await db.execute(delete(BoardStatus).where(BoardStatus.board_id.in_(board_ids)))
  await db.execute(delete(BoardUser).where(BoardUser.board_id.in_(board_ids)))
  await db.execute(delete(Board).where(Board.id.in_(board_ids)))


# -- workspaces ---------------------------------------------------------------------------


async def create_workspace(db: AsyncSession, *, caller_id: str, name: str) -> Workspace:
  async def op(db: AsyncSession) -> Workspace:
    ws = Workspace(name=_clean_text(name, what="Name", max_length=settings.board_name_max_length), owner_id=caller_id)
    stamp_created(ws, caller_id)
    db.add(ws)
    await db.flush()
    return ws

  return await run_atomic(db, op, name="workspace.create")


async def rename_workspace(db: AsyncSession, *, caller_id: str, workspace_id: str, name: str) -> Workspace:
  async def op(db: AsyncSession) -> Workspace:
    ws = await require_workspace_owner(db, caller_id, workspace_id)
    ws.name = _clean_text(name, what="Name", max_length=settings.board_name_max_length)
    stamp_modified(ws, caller_id)
    return ws

  return await run_atomic(db, op, name="workspace.rename")


async def delete_workspace(db: AsyncSession, *, caller_id: str, workspace_id: str) -> None:
  async def op(db: AsyncSession) -> None:
    await require_workspace_owner(db, caller_id, workspace_id)
    await _delete_boards_everything(db, select(Board.id).where(Board.workspace_id == workspace_id))
    await db.execute(delete(Workspace).where(Workspace.id == workspace_id))

  await run_atomic(db, op, name="workspace.delete")
  logger.info("workspace %s deleted by %s", workspace_id, caller_id)


# -- boards -------------------------------------------------------------------------------


async def create_board(
  db: AsyncSession,
  *,
  caller_id: str,
  workspace_id: str,
  name: str,
  background: str | None = None,
) -> Board:
  async def op(db: AsyncSession) -> Board:
    await require_workspace_owner(db, caller_id, workspace_id)
    b = Board(
      workspace_id=workspace_id,
      name=_clean_text(name, what="Name", max_length=settings.board_name_max_length),
      background=_clean_background(background),
      is_archived=False,
    )
    stamp_created(b, caller_id)
    db.add(b)
    await db.flush()
    for idx, title in enumerate(settings.default_status_titles()):
      s = BoardStatus(board_id=b.id, title=title, position=idx)
      stamp_created(s, caller_id)
      db.add(s)
    return b

  return await run_atomic(db, op, name="board.create")


async def update_board(
  db: AsyncSession,
  *,
  caller_id: str,
  board_id: str,
  name: str | None = None,
  background: str | None = None,
) -> Board:
  async def op(db: AsyncSession) -> Board:
    await authorize(db, caller_id, board_id, Op.MANAGE_BOARD)
    b = await _lock_board(db, board_id)
    if name is not None:
      b.name = _clean_text(name, what="Name", max_length=settings.board_name_max_length)
    if background is not None:
      b.background = _clean_background(background)
    stamp_modified(b, caller_id)
    return b

  return await run_atomic(db, op, name="board.update")


async def archive_board(db: AsyncSession, *, caller_id: str, board_id: str) -> Board:
  async def op(db: AsyncSession) -> Board:
    await authorize(db, caller_id, board_id, Op.MANAGE_BOARD)
    b = await _lock_board(db, board_id)
    b.is_archived = True
    stamp_modified(b, caller_id)
    return b

  return await run_atomic(db, op, name="board.archive")


async def delete_board(db: AsyncSession, *, caller_id: str, board_id: str) -> None:
  async def op(db: AsyncSession) -> None:
    await authorize(db, caller_id, board_id, Op.MANAGE_BOARD)
    await _lock_board(db, board_id)
    # whole groups go away, so nothing is renumbered
    await _delete_boards_everything(db, [board_id])

  await run_atomic(db, op, name="board.delete")
  logger.info("board %s deleted by %s", board_id, caller_id)


# -- members ------------------------------------------------------------------------------


def _clean_member_role(role: str | None) -> str:
  key = (role or "").strip().lower()
  if key not in MEMBER_ROLES:
    raise ValidationError("Role must be either 'editor' or 'viewer'.")
  return key


async def add_board_member(db: AsyncSession, *, caller_id: str, board_id: str, username: str, role: str) -> tuple[BoardUser, User]:
  async def op(db: AsyncSession) -> tuple[BoardUser, User]:
    await authorize(db, caller_id, board_id, Op.MANAGE_MEMBERS)
    clean_role = _clean_member_role(role)
    if not (username or "").strip():
      raise ValidationError("Username is required.")
    u = await _user_by_username(db, username)
    if await resolve_role(db, u.id, board_id) == Role.OWNER:
      raise ValidationError("The workspace owner already has full access to this board.")
    existing = await db.execute(select(BoardUser.id).where(BoardUser.board_id == board_id, BoardUser.user_id == u.id))
    if existing.scalar_one_or_none():
      raise Conflict("User is already a member of this board.")
    m = BoardUser(board_id=board_id, user_id=u.id, role=clean_role)
    stamp_created(m, caller_id)
    db.add(m)
    await db.flush()
    return m, u

  return await run_atomic(db, op, name="board.member.add")


async def _get_member(db: AsyncSession, board_id: str, user_id: str) -> BoardUser:
  res = await db.execute(select(BoardUser).where(BoardUser.board_id == board_id, BoardUser.user_id == user_id))
  m = res.scalar_one_or_none()
  if not m:
    raise NotFound("Board member not found.")
  return m


async def change_member_role(db: AsyncSession, *, caller_id: str, board_id: str, user_id: str, role: str) -> BoardUser:
  async def op(db: AsyncSession) -> BoardUser:
    await authorize(db, caller_id, board_id, Op.MANAGE_MEMBERS)
    clean_role = _clean_member_role(role)
    m = await _get_member(db, board_id, user_id)
    m.role = clean_role
    stamp_modified(m, caller_id)
    return m

  return await run_atomic(db, op, name="board.member.role")


async def remove_board_member(db: AsyncSession, *, caller_id: str, board_id: str, user_id: str) -> None:
  async def op(db: AsyncSession) -> None:
    await authorize(db, caller_id, board_id, Op.MANAGE_MEMBERS)
    m = await _get_member(db, board_id, user_id)
    await db.delete(m)

  await run_atomic(db, op, name="board.member.remove")


# -- statuses -----------------------------------------------------------------------------


async def create_status(db: AsyncSession, *, caller_id: str, board_id: str, title: str) -> BoardStatus:
  async def op(db: AsyncSession) -> BoardStatus:
    await authorize(db, caller_id, board_id, Op.MANAGE_STATUSES)
    clean_title = _clean_text(title, what="Title", max_length=settings.status_title_max_length)
    await _lock_board(db, board_id)
    group = await _status_group(db, board_id, caller_id)
    s = BoardStatus(board_id=board_id, title=clean_title, position=positions.append(len(group)))
    stamp_created(s, caller_id)
    db.add(s)
    await db.flush()
    return s

  return await run_atomic(db, op, name="status.create")


async def _get_status(db: AsyncSession, status_id: str) -> BoardStatus:
  res = await db.execute(select(BoardStatus).where(BoardStatus.id == status_id))
  s = res.scalar_one_or_none()
  if not s:
    raise NotFound("Status not found or access denied.")
  return s


def _member_of(group: Sequence[Any], row_id: str, *, missing: str) -> Any:
  for row in group:
    if row.id == row_id:
      return row
  # removed by another writer between the unlocked read and the lock
  raise NotFound(missing)


async def update_status(
  db: AsyncSession,
  *,
  caller_id: str,
  status_id: str,
  title: str | None = None,
  position: int | None = None,
) -> BoardStatus:
  async def op(db: AsyncSession) -> BoardStatus:
    s = await _get_status(db, status_id)
    await authorize(db, caller_id, s.board_id, Op.MANAGE_STATUSES)
    _check_position(position)
    clean_title = _clean_text(title, what="Title", max_length=settings.status_title_max_length) if title is not None else None

    await _lock_board(db, s.board_id)
    group = await _status_group(db, s.board_id, caller_id)
    s = _member_of(group, status_id, missing="Status not found or access denied.")
    if position is not None:
      writes = positions.move_within(positions.siblings_of(group), s.id, position)
      _write_positions(group, writes, caller_id)
    if clean_title is not None:
      s.title = clean_title
      stamp_modified(s, caller_id)
    return s

  return await run_atomic(db, op, name="status.update")


async def delete_status(db: AsyncSession, *, caller_id: str, status_id: str) -> None:
  async def op(db: AsyncSession) -> None:
    s = await _get_status(db, status_id)
    await authorize(db, caller_id, s.board_id, Op.MANAGE_STATUSES)
    await _lock_board(db, s.board_id)
    group = await _status_group(db, s.board_id, caller_id)
    s = _member_of(group, status_id, missing="Status not found or access denied.")
    removed_position = s.position
    # tasks of the column go with it; no point compacting them
    await db.execute(delete(BoardTask).where(BoardTask.status_id == s.id))
    await db.delete(s)
    survivors = [x for x in group if x.id != s.id]
    _write_positions(survivors, positions.remove_and_compact(positions.siblings_of(survivors), removed_position), caller_id)

  await run_atomic(db, op, name="status.delete")


# -- tasks --------------------------------------------------------------------------------


async def _first_status(db: AsyncSession, board_id: str) -> BoardStatus:
  res = await db.execute(
    select(BoardStatus).where(BoardStatus.board_id == board_id).order_by(BoardStatus.position.asc(), BoardStatus.id.asc()).limit(1)
  )
  s = res.scalar_one_or_none()
  if not s:
    raise ValidationError("Board has no statuses.")
  return s


async def create_task(
  db: AsyncSession,
  *,
  caller_id: str,
  board_id: str,
  title: str,
  description: str | None = None,
  priority: str | None = None,
  due_date: datetime | None = None,
  assignee_id: str | None = None,
  username: str | None = None,
  status_id: str | None = None,
) -> BoardTask:
  async def op(db: AsyncSession) -> BoardTask:
    await authorize(db, caller_id, board_id, Op.EDIT_TASKS)
    clean_title = _clean_text(title, what="Title", max_length=settings.task_title_max_length)
    clean_priority = _clean_priority(priority)
    if status_id:
      target = await _get_status(db, status_id)
      if target.board_id != board_id:
        raise ValidationError("Specified status does not belong to this board.")
    else:
      target = await _first_status(db, board_id)
    owner = await _resolve_assignee(db, board_id, assignee_id=assignee_id, username=username)

    if target.id not in await _lock_statuses(db, [target.id]):
      raise StaleRead("Status was removed before it could be locked.")
    group = await _task_group(db, target.id, caller_id)
    t = BoardTask(
      board_id=board_id,
      status_id=target.id,
      title=clean_title,
      description=description or "",
      priority=clean_priority,
      due_date=due_date,
      assignee_id=owner,
      position=positions.append(len(group)),
    )
    stamp_created(t, caller_id)
    db.add(t)
    await db.flush()
    return t

  return await run_atomic(db, op, name="task.create")


async def _get_task(db: AsyncSession, task_id: str, *, for_update: bool = False) -> BoardTask:
  q = select(BoardTask).where(BoardTask.id == task_id)
  if for_update:
    q = q.with_for_update().execution_options(populate_existing=True)
  res = await db.execute(q)
  t = res.scalar_one_or_none()
  if not t:
    raise NotFound("Task not found.")
  return t


async def _lock_task(db: AsyncSession, task_id: str, status_ids: Sequence[str]) -> BoardTask:
  """Lock the task's column (first id) plus any other columns involved, then re-read the task.

  The task was first read without a lock to find its board and column. If another writer
  moved it in between, the column locked here is the wrong one and the unit is re-run.
  """
  locked = await _lock_statuses(db, status_ids)
  if len(locked) != len(set(status_ids)):
    raise StaleRead("Status was removed before it could be locked.")
  t = await _get_task(db, task_id, for_update=True)
  if t.status_id != status_ids[0]:
    raise StaleRead("Task changed columns before it could be locked.")
  return t


async def _move_task(
  db: AsyncSession,
  t: BoardTask,
  *,
  caller_id: str,
  new_status_id: str | None,
  new_position: int | None,
) -> bool:
  # callers hold the locks from _lock_task; new_status_id is set only for a column change
  if new_status_id is not None:
    source = await _task_group(db, t.status_id, caller_id)
    dest = await _task_group(db, new_status_id, caller_id)
    if new_position is not None:
      logger.info("task %s moved across columns; requested position %s ignored, appending", t.id, new_position)
    move = positions.move_across_groups(
      positions.siblings_of(source),
      positions.Sibling(id=t.id, position=t.position),
      positions.siblings_of(dest),
    )
    _write_positions(source, move.source, caller_id)
    _write_positions(dest, move.destination, caller_id)
    t.status_id = new_status_id
    t.position = move.position
    return True

  if new_position is not None:
    group = await _task_group(db, t.status_id, caller_id)
    writes = positions.move_within(positions.siblings_of(group), t.id, new_position)
    _write_positions(group, writes, caller_id)
    return bool(writes)
  return False


async def move_task(
  db: AsyncSession,
  *,
  caller_id: str,
  task_id: str,
  new_status_id: str | None = None,
  new_position: int | None = None,
) -> BoardTask:
  changes: dict[str, Any] = {}
  if new_status_id is not None:
    changes["status_id"] = new_status_id
  if new_position is not None:
    changes["position"] = new_position
  return await update_task(db, caller_id=caller_id, task_id=task_id, changes=changes)


async def update_task(db: AsyncSession, *, caller_id: str, task_id: str, changes: dict[str, Any]) -> BoardTask:
  """Apply field edits and an optional move to a task as one atomic unit.

  `changes` holds only the fields the caller sent (keys from TASK_FIELDS). A new
  `status_id` always appends the task to the end of that column; `position` is only
  honored within the current column.
  """
  unknown = set(changes) - set(TASK_FIELDS)
  if unknown:
    raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

  async def op(db: AsyncSession) -> BoardTask:
    t = await _get_task(db, task_id)
    await authorize(db, caller_id, t.board_id, Op.EDIT_TASKS)
    _check_position(changes.get("position"))

    new_status_id = changes.get("status_id")
    if new_status_id is not None and new_status_id != t.status_id:
      res = await db.execute(select(BoardStatus.id).where(BoardStatus.id == new_status_id, BoardStatus.board_id == t.board_id))
      if res.scalar_one_or_none() is None:
        raise ValidationError("Invalid status ID.")
      t = await _lock_task(db, task_id, [t.status_id, new_status_id])
    else:
      new_status_id = None
      t = await _lock_task(db, task_id, [t.status_id])

    if "title" in changes:
      t.title = _clean_text(changes["title"], what="Title", max_length=settings.task_title_max_length)
    if "description" in changes:
      t.description = changes["description"] or ""
    if "priority" in changes:
      t.priority = _clean_priority(changes["priority"])
    if "due_date" in changes:
      t.due_date = changes["due_date"]
    if changes.get("username") or "assignee_id" in changes:
      t.assignee_id = await _resolve_assignee(
        db, t.board_id, assignee_id=changes.get("assignee_id"), username=changes.get("username")
      )

    await _move_task(db, t, caller_id=caller_id, new_status_id=new_status_id, new_position=changes.get("position"))
    stamp_modified(t, caller_id)
    return t

  return await run_atomic(db, op, name="task.update")


async def delete_task(db: AsyncSession, *, caller_id: str, task_id: str) -> None:
  async def op(db: AsyncSession) -> None:
    t = await _get_task(db, task_id)
    await authorize(db, caller_id, t.board_id, Op.EDIT_TASKS)
    t = await _lock_task(db, task_id, [t.status_id])
    group = await _task_group(db, t.status_id, caller_id)
    removed_position = t.position
    await db.delete(t)
    survivors = [x for x in group if x.id != t.id]
    _write_positions(survivors, positions.remove_and_compact(positions.siblings_of(survivors), removed_position), caller_id)

  await run_atomic(db, op, name="task.delete")
