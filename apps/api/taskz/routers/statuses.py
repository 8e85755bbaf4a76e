from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.boards import service
from taskz.deps import get_current_user, get_db
from taskz.models import BoardStatus, User
from taskz.schemas import BoardStatusCreateIn, BoardStatusOut, BoardStatusUpdateIn

router = APIRouter(prefix="/api/BoardStatus", tags=["statuses"])


def _status_out(s: BoardStatus) -> BoardStatusOut:
  return BoardStatusOut(id=s.id, title=s.title, position=s.position)


@router.post("", response_model=BoardStatusOut, status_code=status.HTTP_201_CREATED)
async def create_status(
  payload: BoardStatusCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardStatusOut:
  s = await service.create_status(db, caller_id=user.id, board_id=payload.boardId, title=payload.name)
  return _status_out(s)


@router.put("/{status_id}", response_model=BoardStatusOut)
async def update_status(
  status_id: str,
  payload: BoardStatusUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardStatusOut:
  s = await service.update_status(db, caller_id=user.id, status_id=status_id, title=payload.title, position=payload.position)
  return _status_out(s)


@router.delete("/{status_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_status(status_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
  await service.delete_status(db, caller_id=user.id, status_id=status_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
