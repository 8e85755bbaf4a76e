from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.access import require_workspace_owner
from taskz.boards import queries, service
from taskz.deps import get_current_user, get_db
from taskz.models import User, Workspace
from taskz.schemas import WorkspaceIn, WorkspaceOut

router = APIRouter(prefix="/api/Workspace", tags=["workspaces"])


async def _workspace_out(db: AsyncSession, ws: Workspace) -> WorkspaceOut:
  names = await queries.usernames_for(db, [ws.owner_id])
  return WorkspaceOut(
    id=ws.id,
    name=ws.name,
    userId=ws.owner_id,
    username=names.get(ws.owner_id),
    createdBy=ws.created_by,
    created=ws.created_at,
  )


@router.post("", response_model=WorkspaceOut, status_code=status.HTTP_201_CREATED)
async def create_workspace(payload: WorkspaceIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WorkspaceOut:
  ws = await service.create_workspace(db, caller_id=user.id, name=payload.name)
  return await _workspace_out(db, ws)


@router.get("", response_model=list[WorkspaceOut])
async def list_workspaces(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[WorkspaceOut]:
  return [await _workspace_out(db, ws) for ws in await queries.list_visible_workspaces(db, user.id)]


@router.get("/{workspace_id}", response_model=WorkspaceOut)
async def get_workspace(workspace_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WorkspaceOut:
  ws = await require_workspace_owner(db, user.id, workspace_id)
  return await _workspace_out(db, ws)


@router.put("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
async def rename_workspace(
  workspace_id: str,
  payload: WorkspaceIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> Response:
  await service.rename_workspace(db, caller_id=user.id, workspace_id=workspace_id, name=payload.name)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_workspace(workspace_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> Response:
  await service.delete_workspace(db, caller_id=user.id, workspace_id=workspace_id)
  return Response(status_code=status.HTTP_204_NO_CONTENT)
