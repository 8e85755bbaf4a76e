from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from taskz.config import settings
from taskz.models import Base


def _engine_kwargs(url: str) -> dict:
  if url.startswith("sqlite"):
    return {"connect_args": {"timeout": settings.db_statement_timeout_seconds}}
  if url.startswith("postgresql+asyncpg"):
    return {
      "pool_pre_ping": True,
      "connect_args": {"command_timeout": settings.db_statement_timeout_seconds},
    }
  return {"pool_pre_ping": True}


engine = create_async_engine(settings.database_url, **_engine_kwargs(settings.database_url))

if settings.database_url.startswith("sqlite"):
  # SQLite ships with FK enforcement off; cascades rely on it.
  @event.listens_for(engine.sync_engine, "connect")
  def _sqlite_pragmas(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


SessionLocal = async_sessionmaker(engine, expire_on_commit=False)


async def create_tables() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.drop_all)
