from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

_DB_DIR = tempfile.mkdtemp(prefix="taskz_test_")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR}/taskz_test.db")
os.environ.setdefault("TX_RETRY_BACKOFF_MS", "0")

from taskz.config import settings  # noqa: E402
from taskz.db import SessionLocal, create_tables, drop_tables, engine  # noqa: E402
from taskz.main import app  # noqa: E402
from taskz.models import ApiToken, User  # noqa: E402
from taskz.security import api_token_hash, api_token_new  # noqa: E402


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
async def clean_db() -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskz_test)."
    )
  await drop_tables()
  await create_tables()
  yield
  await engine.dispose()


@pytest.fixture
async def client(clean_db) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


@pytest.fixture
async def db(clean_db) -> AsyncSession:
  async with SessionLocal() as session:
    yield session


async def make_user(username: str) -> tuple[str, str]:
  """Insert a user with a fresh bearer token; returns (user_id, token)."""
  token = api_token_new()
  async with SessionLocal() as db:
    u = User(username=username, email=f"{username}@taskz.local")
    db.add(u)
    await db.flush()
    db.add(ApiToken(user_id=u.id, name="test", token_hash=api_token_hash(token)))
    await db.commit()
    return u.id, token


def auth(token: str) -> dict[str, str]:
  return {"Authorization": f"Bearer {token}"}


async def make_board(client: AsyncClient, token: str, *, statuses: list[str] | None = None) -> dict:
  """Create a workspace + board owned by the token's user, with the given columns in order."""
  ws = await client.post("/api/Workspace", json={"name": "Workspace"}, headers=auth(token))
  assert ws.status_code == 201, ws.text
  b = await client.post("/api/Board", json={"workspaceId": ws.json()["id"], "name": "Board"}, headers=auth(token))
  assert b.status_code == 201, b.text
  board = b.json()
  board["statuses"] = []
  for title in statuses or []:
    s = await client.post("/api/BoardStatus", json={"boardId": board["id"], "name": title}, headers=auth(token))
    assert s.status_code == 201, s.text
    board["statuses"].append(s.json())
  return board
