from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from taskz.config import settings
from taskz.errors import Conflict, StaleRead, TaskzError, Unavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RETRYABLE_SQLSTATES = {"40001", "40P01"}  # serialization_failure, deadlock_detected


def _sqlstate(exc: DBAPIError) -> str | None:
  orig = getattr(exc, "orig", None)
  for attr in ("sqlstate", "pgcode"):
    code = getattr(orig, attr, None)
    if code:
      return str(code)
  cause = getattr(orig, "__cause__", None)
  code = getattr(cause, "sqlstate", None)
  return str(code) if code else None


def is_retryable(exc: BaseException) -> bool:
  if isinstance(exc, IntegrityError):
    return False
  if not isinstance(exc, DBAPIError):
    return False
  if _sqlstate(exc) in _RETRYABLE_SQLSTATES:
    return True
  msg = str(getattr(exc, "orig", exc)).lower()
  return "database is locked" in msg or "could not serialize" in msg or "deadlock" in msg


async def run_atomic(
  db: AsyncSession,
  op: Callable[[AsyncSession], Awaitable[T]],
  *,
  name: str = "mutation",
  attempts: int | None = None,
) -> T:
  """Run `op` and commit as one unit; re-run it from scratch on serialization conflicts.

  `op` must do its own reads (never reuse rows loaded before the call), since a retry
  starts from a rolled-back session.
  """
  max_attempts = max(1, attempts if attempts is not None else settings.tx_max_attempts)
  for attempt in range(1, max_attempts + 1):
    try:
      result = await op(db)
      await db.commit()
      logger.info("%s committed", name)
      return result
    except StaleRead as exc:
      await db.rollback()
      if attempt >= max_attempts:
        logger.error("%s gave up after %d attempts: %s", name, attempt, exc.detail)
        raise Conflict("Concurrent update conflict; reload and try again.") from exc
      logger.warning("%s read a row that changed before it was locked (attempt %d/%d), retrying", name, attempt, max_attempts)
      await asyncio.sleep(settings.tx_retry_backoff_ms * attempt / 1000.0)
    except TaskzError:
      await db.rollback()
      raise
    except IntegrityError as exc:
      await db.rollback()
      logger.info("%s rejected by a constraint: %s", name, exc.orig)
      raise Conflict("Conflicting change; the row already exists or was removed.") from exc
    except (DBAPIError, asyncio.TimeoutError) as exc:
      await db.rollback()
      if not is_retryable(exc):
        if isinstance(exc, (OperationalError, asyncio.TimeoutError)) or getattr(exc, "connection_invalidated", False):
          logger.error("%s failed, store unavailable: %s", name, exc)
          raise Unavailable("Storage is temporarily unavailable; try again later.") from exc
        raise
      if attempt >= max_attempts:
        logger.error("%s gave up after %d attempts: %s", name, attempt, exc)
        raise Conflict("Concurrent update conflict; reload and try again.") from exc
      logger.warning("%s hit a serialization conflict (attempt %d/%d), retrying", name, attempt, max_attempts)
      await asyncio.sleep(settings.tx_retry_backoff_ms * attempt / 1000.0)
  raise AssertionError("unreachable")
