from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskz.config import settings
from taskz.db import create_tables
from taskz.errors import TaskzError
from taskz.routers.boards import router as boards_router
from taskz.routers.statuses import router as statuses_router
from taskz.routers.tasks import router as tasks_router
from taskz.routers.workspaces import router as workspaces_router

logging.basicConfig(level=settings.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Taskz API", version=settings.app_version)


@app.exception_handler(TaskzError)
async def _taskz_error_handler(_, exc: TaskzError) -> JSONResponse:
  return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)

app.include_router(workspaces_router)
app.include_router(boards_router)
app.include_router(statuses_router)
app.include_router(tasks_router)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}


@app.on_event("startup")
async def _startup() -> None:
  if settings.db_auto_create:
    await create_tables()
    logger.info("database tables ensured")
