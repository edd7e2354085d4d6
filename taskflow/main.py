from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.trustedhost import TrustedHostMiddleware

from taskflow.config import settings
from taskflow.csrf import origin_allowed
from taskflow.routers.auth import router as auth_router
from taskflow.routers.columns import router as columns_router
from taskflow.routers.comments import router as comments_router
from taskflow.routers.milestones import router as milestones_router
from taskflow.routers.notifications import router as notifications_router
from taskflow.routers.projects import router as projects_router
from taskflow.routers.tasks import router as tasks_router
from taskflow.routers.teams import router as teams_router
from taskflow.routers.wiki import router as wiki_router

logging.basicConfig(
  level=getattr(logging, settings.log_level.upper(), logging.INFO),
  format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Reorder clients only distinguish "bad request" from server failure.
_PLAIN_400_PATHS = {"/tasks/reorder"}

app = FastAPI(
  title="TaskFlow API",
  version=settings.app_version,
  docs_url="/docs" if settings.api_docs_enabled else None,
  redoc_url="/redoc" if settings.api_docs_enabled else None,
  openapi_url="/openapi.json" if settings.api_docs_enabled else None,
)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  if request.url.path in _PLAIN_400_PATHS:
    logger.info("rejected payload on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "Invalid payload"})
  return await request_validation_exception_handler(request, exc)


app.add_middleware(
  CORSMiddleware,
  allow_origins=settings.cors_origin_list(),
  allow_origin_regex=settings.cors_origin_regex,
  allow_credentials=True,
  allow_methods=["*"],
  allow_headers=["*"],
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_host_list())

app.include_router(auth_router)
app.include_router(teams_router)
app.include_router(projects_router)
app.include_router(columns_router)
app.include_router(tasks_router)
app.include_router(comments_router)
app.include_router(milestones_router)
app.include_router(wiki_router)
app.include_router(notifications_router)


@app.middleware("http")
async def _csrf_origin_middleware(request, call_next):
  if not origin_allowed(request):
    return JSONResponse(status_code=403, content={"detail": "Cross-site request rejected"})
  return await call_next(request)


@app.middleware("http")
async def _security_headers_middleware(request, call_next):
  response = await call_next(request)
  response.headers.setdefault("X-Content-Type-Options", "nosniff")
  response.headers.setdefault("X-Frame-Options", "DENY")
  response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
  response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
  return response


@app.get("/health")
async def health() -> dict:
  return {"ok": True}


@app.get("/version")
async def version() -> dict:
  return {"version": settings.app_version, "buildSha": settings.build_sha}
