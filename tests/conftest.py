from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./taskflow_test.db")
os.environ.setdefault("CSRF_ENABLED", "false")
os.environ.pop("REDIS_URL", None)

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from taskflow.config import settings
from taskflow.db import SessionLocal, engine
from taskflow.main import app
from taskflow.models import Base, Task
from taskflow.rate_limit import limiter

PASSWORD = "password123"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
  return "asyncio"


async def _reset_db() -> None:
  limiter.reset_prefix("")
  async with engine.begin() as conn:
    await conn.run_sync(Base.metadata.create_all)
    for table in reversed(Base.metadata.sorted_tables):
      await conn.execute(table.delete())
  await engine.dispose()


@pytest.fixture(autouse=True)
async def _clean_between_tests(anyio_backend: str) -> None:
  db_name = settings.database_url.rsplit("/", 1)[-1]
  if "test" not in db_name:
    raise RuntimeError(
      "Refusing to run destructive tests against non-test DB. "
      "Set DATABASE_URL to a *_test database (e.g. taskflow_test)."
    )
  await _reset_db()
  yield
  await _reset_db()


@pytest.fixture
async def client(anyio_backend: str) -> AsyncClient:
  transport = ASGITransport(app=app)
  async with AsyncClient(transport=transport, base_url="http://localhost") as c:
    yield c


async def signup(client: AsyncClient, email: str, display_name: str | None = None) -> dict:
  res = await client.post(
    "/auth/signup",
    json={"email": email, "password": PASSWORD, "displayName": display_name or email.split("@", 1)[0]},
  )
  assert res.status_code == 200, res.text
  assert "tf_session=" in (res.headers.get("set-cookie") or "")
  return res.json()


async def login(client: AsyncClient, email: str, password: str = PASSWORD) -> dict:
  res = await client.post("/auth/login", json={"email": email, "password": password})
  assert res.status_code == 200, res.text
  cookie = res.headers.get("set-cookie")
  assert cookie and "tf_session=" in cookie
  return res.json()


async def make_team(client: AsyncClient, name: str = "Core Team") -> str:
  res = await client.post("/teams", json={"name": name})
  assert res.status_code == 200, res.text
  return res.json()["id"]


async def make_project(client: AsyncClient, team_id: str, name: str = "Roadmap") -> tuple[str, list[str]]:
  """Create a project and return its id with its default column ids in board order."""
  res = await client.post(f"/teams/{team_id}/projects", json={"name": name})
  assert res.status_code == 200, res.text
  project_id = res.json()["id"]
  board = await client.get(f"/projects/{project_id}/board")
  assert board.status_code == 200, board.text
  return project_id, [c["id"] for c in board.json()["columns"]]


async def make_task(client: AsyncClient, project_id: str, column_id: str, title: str) -> str:
  res = await client.post("/tasks", json={"projectId": project_id, "columnId": column_id, "title": title})
  assert res.status_code == 200, res.text
  return res.json()["id"]


async def add_to_project(client: AsyncClient, team_id: str, project_id: str, email: str, user_id: str) -> None:
  """Caller must be logged in as a team admin."""
  res = await client.post(f"/teams/{team_id}/members", json={"email": email, "role": "member"})
  assert res.status_code == 200, res.text
  res = await client.post(f"/projects/{project_id}/members", json={"userId": user_id})
  assert res.status_code == 200, res.text


async def task_rows(project_id: str) -> dict[str, tuple[str, int]]:
  async with SessionLocal() as db:
    res = await db.execute(select(Task.id, Task.column_id, Task.sort_order).where(Task.project_id == project_id))
    return {tid: (col, pos) for tid, col, pos in res.all()}
