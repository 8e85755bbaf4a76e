from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "postgresql+asyncpg://taskz:taskz@db:5432/taskz"
  db_auto_create: bool = False
  db_statement_timeout_seconds: float = 10.0
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2025-05-13"
  build_sha: str = "dev"
  log_level: str = "INFO"

  cors_origins: str = "http://localhost:4200,http://127.0.0.1:4200"

  # serialization conflicts are retried this many times in total before surfacing as 409
  tx_max_attempts: int = 3
  tx_retry_backoff_ms: int = 25

  status_title_max_length: int = 50
  board_name_max_length: int = 100
  task_title_max_length: int = 200
  default_board_background: str = "#FFFFFF"
  default_statuses: str = ""

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

  def default_status_titles(self) -> list[str]:
    return [s.strip() for s in self.default_statuses.split(",") if s.strip()]


settings = Settings()
