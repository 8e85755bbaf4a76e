from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
  return datetime.now(timezone.utc)


def new_id() -> str:
  return str(uuid.uuid4())


class Base(DeclarativeBase):
  pass


class Audited:
  """Stamp columns shared by every mutable row; filled in by taskz.audit."""

  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  created_by: Mapped[str | None] = mapped_column(String, nullable=True)
  updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  modified_by: Mapped[str | None] = mapped_column(String, nullable=True)


class User(Base):
  __tablename__ = "users"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  username: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  email: Mapped[str | None] = mapped_column(String, nullable=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


class ApiToken(Base):
  __tablename__ = "api_tokens"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)
  token_hash: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
  created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
  revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class Workspace(Audited, Base):
  __tablename__ = "workspaces"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  owner_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=False, index=True)
  name: Mapped[str] = mapped_column(String, nullable=False)


class Board(Audited, Base):
  __tablename__ = "boards"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  workspace_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True
  )
  name: Mapped[str] = mapped_column(String, nullable=False)
  background: Mapped[str] = mapped_column(String, nullable=False, default="#FFFFFF")
  is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class BoardUser(Audited, Base):
  __tablename__ = "board_users"
  __table_args__ = (UniqueConstraint("board_id", "user_id", name="ux_board_users_board_user"),)

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  board_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False)
  user_id: Mapped[str] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
  role: Mapped[str] = mapped_column(String, nullable=False)  # editor | viewer


class BoardStatus(Audited, Base):
  __tablename__ = "board_statuses"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  board_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
  )
  title: Mapped[str] = mapped_column(String, nullable=False)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class BoardTask(Audited, Base):
  __tablename__ = "board_tasks"

  id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=new_id)
  board_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("boards.id", ondelete="CASCADE"), nullable=False, index=True
  )
  status_id: Mapped[str] = mapped_column(
    Uuid(as_uuid=False), ForeignKey("board_statuses.id", ondelete="CASCADE"), nullable=False, index=True
  )
  title: Mapped[str] = mapped_column(String, nullable=False)
  description: Mapped[str] = mapped_column(Text, nullable=False, default="")
  priority: Mapped[str] = mapped_column(String, nullable=False, default="medium")
  due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  assignee_id: Mapped[str | None] = mapped_column(Uuid(as_uuid=False), ForeignKey("users.id"), nullable=True)
  position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
