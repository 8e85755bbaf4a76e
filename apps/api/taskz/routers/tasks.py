from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.access import Op, authorize
from taskz.boards import queries, service
from taskz.deps import get_current_user, get_db
from taskz.errors import NotFound
from taskz.models import BoardStatus, BoardTask, User
from taskz.schemas import TaskCreateIn, TaskOut, TaskUpdateIn

router = APIRouter(prefix="/api/Task", tags=["tasks"])

# (service field, request field)
_UPDATE_MAPPING = [
  ("title", "title"),
  ("description", "description"),
  ("priority", "priority"),
  ("due_date", "dueDate"),
  ("assignee_id", "assigneeId"),
  ("username", "username"),
  ("status_id", "statusId"),
  ("position", "position"),
]


def _task_out(t: BoardTask, names: dict[str, str]) -> TaskOut:
  return TaskOut(
    id=t.id,
    boardId=t.board_id,
    statusId=t.status_id,
    title=t.title,
    description=t.description,
    priority=t.priority,
    dueDate=t.due_date,
    assigneeId=t.assignee_id,
    assigneeUsername=names.get(t.assignee_id) if t.assignee_id else None,
    position=t.position,
    createdBy=t.created_by,
    createdByUsername=names.get(t.created_by) if t.created_by else None,
    created=t.created_at,
    lastModifiedBy=t.modified_by,
    lastModifiedByUsername=names.get(t.modified_by) if t.modified_by else None,
    lastModified=t.updated_at,
  )


async def _tasks_out(db: AsyncSession, tasks: list[BoardTask]) -> list[TaskOut]:
  ids: list[str | None] = []
  for t in tasks:
    ids.extend([t.assignee_id, t.created_by, t.modified_by])
  names = await queries.usernames_for(db, ids)
  return [_task_out(t, names) for t in tasks]


async def _get_task_or_404(db: AsyncSession, task_id: str) -> BoardTask:
  res = await db.execute(select(BoardTask).where(BoardTask.id == task_id))
  t = res.scalar_one_or_none()
  if not t:
    raise NotFound("Task not found.")
  return t


@router.get("/assigned", response_model=list[TaskOut])
async def list_assigned_tasks(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  return await _tasks_out(db, await queries.list_assigned_tasks(db, user.id))


@router.get("/board/{board_id}", response_model=list[TaskOut])
async def list_board_tasks(board_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  await authorize(db, user.id, board_id, Op.READ)
  return await _tasks_out(db, await queries.list_board_tasks(db, board_id))


@router.get("/status/{status_id}", response_model=list[TaskOut])
async def list_status_tasks(status_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[TaskOut]:
  res = await db.execute(select(BoardStatus.board_id).where(BoardStatus.id == status_id))
  board_id = res.scalar_one_or_none()
  if board_id is None:
    raise NotFound("Status not found or access denied.")
  await authorize(db, user.id, board_id, Op.READ)
  return await _tasks_out(db, await queries.list_status_tasks(db, status_id))


@router.post("/board/{board_id}", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
async def create_task(
  board_id: str,
  payload: TaskCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  t = await service.create_task(
    db,
    caller_id=user.id,
    board_id=board_id,
    title=payload.title,
    description=payload.description,
    priority=payload.priority,
    due_date=payload.dueDate,
    assignee_id=payload.assigneeId,
    username=payload.username,
    status_id=payload.statusId,
  )
  return (await _tasks_out(db, [t]))[0]


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t = await _get_task_or_404(db, task_id)
  await authorize(db, user.id, t.board_id, Op.READ)
  return (await _tasks_out(db, [t]))[0]


@router.put("/{task_id}", response_model=TaskOut)
async def update_task(
  task_id: str,
  payload: TaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  fields_set = payload.model_fields_set
  changes = {attr: getattr(payload, name) for attr, name in _UPDATE_MAPPING if name in fields_set}
  # explicit nulls for status/position mean "leave as is"
  for key in ("status_id", "position"):
    if key in changes and changes[key] is None:
      del changes[key]
  t = await service.update_task(db, caller_id=user.id, task_id=task_id, changes=changes)
  return (await _tasks_out(db, [t]))[0]


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
  await service.delete_task(db, caller_id=user.id, task_id=task_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
