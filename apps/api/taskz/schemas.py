from __future__ import annotations

import re
from datetime import datetime, timezone

from pydantic import BaseModel, Field
from pydantic import field_validator


_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _parse_dt_utc(value: object) -> object:
  if value is None:
    return None
  if isinstance(value, datetime):
    dt = value
  elif isinstance(value, str):
    s = value.strip()
    if not s:
      return None
    if _DATE_ONLY_RE.fullmatch(s):
      dt = datetime.fromisoformat(s)
    else:
      dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
  else:
    return value

  if dt.tzinfo is None:
    return dt.replace(tzinfo=timezone.utc)
  return dt.astimezone(timezone.utc)


class WorkspaceIn(BaseModel):
  name: str


class WorkspaceOut(BaseModel):
  id: str
  name: str
  userId: str
  username: str | None = None
  createdBy: str | None = None
  created: datetime


class BoardCreateIn(BaseModel):
  workspaceId: str
  name: str
  background: str | None = None


class BoardUpdateIn(BaseModel):
  name: str | None = None
  background: str | None = None


class BoardUserIn(BaseModel):
  username: str
  role: str


class BoardUserRoleIn(BaseModel):
  role: str


class BoardUserOut(BaseModel):
  id: str
  userId: str
  username: str | None = None
  role: str


class BoardStatusCreateIn(BaseModel):
  boardId: str
  name: str


class BoardStatusUpdateIn(BaseModel):
  title: str | None = None
  position: int | None = None


class BoardStatusOut(BaseModel):
  id: str
  title: str
  position: int


class BoardOut(BaseModel):
  id: str
  workspaceId: str
  name: str
  background: str
  isArchived: bool
  created: datetime
  lastModified: datetime | None = None
  users: list[BoardUserOut] = Field(default_factory=list)
  statuses: list[BoardStatusOut] = Field(default_factory=list)


class TaskCreateIn(BaseModel):
  title: str
  description: str | None = None
  priority: str | None = None
  dueDate: datetime | None = None
  assigneeId: str | None = None
  username: str | None = None
  statusId: str | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskUpdateIn(BaseModel):
  title: str | None = None
  description: str | None = None
  priority: str | None = None
  dueDate: datetime | None = None
  assigneeId: str | None = None
  username: str | None = None
  statusId: str | None = None
  position: int | None = None

  @field_validator("dueDate", mode="before")
  @classmethod
  def _due_date_utc(cls, v: object) -> object:
    return _parse_dt_utc(v)


class TaskOut(BaseModel):
  id: str
  boardId: str
  statusId: str
  title: str
  description: str
  priority: str
  dueDate: datetime | None = None
  assigneeId: str | None = None
  assigneeUsername: str | None = None
  position: int
  createdBy: str | None = None
  createdByUsername: str | None = None
  created: datetime
  lastModifiedBy: str | None = None
  lastModifiedByUsername: str | None = None
  lastModified: datetime | None = None
