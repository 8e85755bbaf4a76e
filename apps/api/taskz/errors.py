from __future__ import annotations


class TaskzError(Exception):
  """Base for failures the API layer turns into a fixed HTTP status."""

  status_code = 500

  def __init__(self, detail: str) -> None:
    super().__init__(detail)
    self.detail = detail


class NotFound(TaskzError):
  status_code = 404


class Forbidden(TaskzError):
  status_code = 403


class ValidationError(TaskzError):
  status_code = 400


class Conflict(TaskzError):
  status_code = 409


class Unavailable(TaskzError):
  status_code = 503


class StaleRead(Conflict):
  """A row changed between its unlocked read and the lock; the unit is re-run."""
