from __future__ import annotations

from taskz.models import Audited, utcnow


def stamp_created(row: Audited, caller_id: str | None) -> None:
  now = utcnow()
  row.created_at = now
  row.created_by = caller_id


def stamp_modified(row: Audited, caller_id: str | None) -> None:
  row.updated_at = utcnow()
  row.modified_by = caller_id
