from __future__ import annotations

import pytest
from sqlalchemy import update

from conftest import PASSWORD, login, make_team, signup
from taskflow.config import settings
from taskflow.db import SessionLocal
from taskflow.models import User
from taskflow.security import hash_password, invitation_token_hash, verify_password


def test_password_hashing() -> None:
  h = hash_password("correct horse")
  assert h.startswith("$pbkdf2-sha256$")
  assert verify_password("correct horse", h)
  assert not verify_password("wrong horse", h)


def test_invitation_token_hash_ignores_whitespace() -> None:
  assert invitation_token_hash("tfi_abc") == invitation_token_hash(" tfi_abc\n")
  assert invitation_token_hash("tfi_abc") != invitation_token_hash("tfi_abd")


@pytest.mark.anyio
async def test_health_and_version(client) -> None:
  assert (await client.get("/health")).json() == {"ok": True}
  res = await client.get("/version")
  assert res.json() == {"version": settings.app_version, "buildSha": settings.build_sha}
  assert res.headers["x-content-type-options"] == "nosniff"
  assert res.headers["x-frame-options"] == "DENY"


@pytest.mark.anyio
async def test_signup_login_me_logout(client) -> None:
  me = await signup(client, "Ada@Example.com", "Ada")
  assert me["email"] == "ada@example.com"
  assert (await client.get("/auth/me")).json()["id"] == me["id"]

  res = await client.post("/auth/signup", json={"email": "ada@example.com", "password": PASSWORD, "displayName": "Again"})
  assert res.status_code == 409

  res = await client.post("/auth/signup", json={"email": "no-at-sign", "password": PASSWORD, "displayName": "X"})
  assert res.status_code == 400
  assert res.json()["detail"] == "Invalid email"

  assert (await client.post("/auth/logout")).json() == {"ok": True}
  assert (await client.get("/auth/me")).status_code == 401

  res = await client.post("/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})
  assert res.status_code == 401
  assert res.json()["detail"] == "Invalid credentials"
  await login(client, "ADA@example.com")
  assert (await client.get("/auth/me")).status_code == 200


@pytest.mark.anyio
async def test_unknown_session_is_rejected(client) -> None:
  client.cookies.set("tf_session", "not-a-session")
  res = await client.get("/auth/me")
  assert res.status_code == 401
  assert res.json()["detail"] == "Invalid session"


@pytest.mark.anyio
async def test_disabled_user_is_locked_out(client) -> None:
  me = await signup(client, "eve@example.com", "Eve")
  async with SessionLocal() as db:
    await db.execute(update(User).where(User.id == me["id"]).values(active=False))
    await db.commit()

  res = await client.get("/auth/me")
  assert res.status_code == 403
  res = await client.post("/auth/login", json={"email": "eve@example.com", "password": PASSWORD})
  assert res.status_code == 403
  assert res.json()["detail"] == "User disabled"


@pytest.mark.anyio
async def test_login_is_rate_limited_per_email(client, monkeypatch) -> None:
  await signup(client, "ann@example.com", "Ann")
  monkeypatch.setattr(settings, "rate_limit_login_email_per_minute", 3)
  for _ in range(3):
    res = await client.post("/auth/login", json={"email": "ann@example.com", "password": "wrong-password"})
    assert res.status_code == 401
  res = await client.post("/auth/login", json={"email": "ann@example.com", "password": PASSWORD})
  assert res.status_code == 429
  assert "retry-after" in res.headers


@pytest.mark.anyio
async def test_cross_site_writes_are_rejected(client, monkeypatch) -> None:
  await signup(client, "admin@example.com", "Admin")
  monkeypatch.setattr(settings, "csrf_enabled", True)

  res = await client.post("/teams", json={"name": "Evil"}, headers={"Origin": "https://evil.example"})
  assert res.status_code == 403
  assert res.json()["detail"] == "Cross-site request rejected"

  res = await client.post("/teams", json={"name": "Null"}, headers={"Origin": "null"})
  assert res.status_code == 403

  res = await client.post("/teams", json={"name": "Web"}, headers={"Origin": "http://localhost:3000"})
  assert res.status_code == 200
  res = await client.post("/teams", json={"name": "Referred"}, headers={"Referer": "http://localhost:3000/board/1"})
  assert res.status_code == 200
  # non-browser callers send neither header
  assert (await client.post("/teams", json={"name": "CLI"})).status_code == 200
  # reads are never blocked
  res = await client.get("/teams", headers={"Origin": "https://evil.example"})
  assert res.status_code == 200
  assert {t["name"] for t in res.json()} == {"Web", "Referred", "CLI"}


@pytest.mark.anyio
async def test_non_admin_cannot_read_audit(client) -> None:
  await signup(client, "admin@example.com", "Admin")
  team_id = await make_team(client)
  await signup(client, "bob@example.com", "Bob")
  assert (await client.get(f"/teams/{team_id}/audit")).status_code == 403


@pytest.mark.anyio
async def test_app_url_is_a_trusted_origin(client, monkeypatch) -> None:
  await signup(client, "admin@example.com", "Admin")
  monkeypatch.setattr(settings, "csrf_enabled", True)
  monkeypatch.setattr(settings, "app_url", "https://board.example.com")
  monkeypatch.setattr(settings, "csrf_trusted_origins", "")

  res = await client.post("/teams", json={"name": "From app"}, headers={"Origin": "https://board.example.com"})
  assert res.status_code == 200

  monkeypatch.setattr(settings, "app_url", None)
  res = await client.post("/teams", json={"name": "Again"}, headers={"Origin": "https://board.example.com"})
  assert res.status_code == 403
