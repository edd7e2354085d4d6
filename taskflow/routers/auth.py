from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.config import settings
from taskflow.deps import get_current_user, get_db
from taskflow.models import Session as DbSession, User
from taskflow.rate_limit import client_ip, rate_limit_or_429
from taskflow.schemas import LoginIn, SignupIn, UserOut
from taskflow.security import SESSION_COOKIE_NAME, hash_password, new_session_expires_at, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_out(u: User) -> UserOut:
  return UserOut(id=u.id, email=u.email, displayName=u.display_name)


async def _start_session(db: AsyncSession, request: Request, response: Response, u: User) -> None:
  s = DbSession(
    user_id=u.id,
    created_ip=client_ip(request),
    user_agent=(request.headers.get("user-agent") or "")[:400] or None,
    expires_at=new_session_expires_at(),
  )
  db.add(s)
  await db.commit()
  response.set_cookie(
    key=SESSION_COOKIE_NAME,
    value=s.id,
    httponly=True,
    secure=settings.cookie_secure,
    samesite="lax",
    domain=settings.cookie_domain or None,
    max_age=int(settings.session_ttl_days * 86400),
    expires=s.expires_at,
    path="/",
  )


@router.post("/signup", response_model=UserOut)
async def signup(payload: SignupIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  rate_limit_or_429(f"auth:signup:ip:{client_ip(request)}", limit=int(settings.rate_limit_signup_ip_per_minute))

  email = payload.email.strip().lower()
  if "@" not in email:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email")
  exists = await db.execute(select(User.id).where(User.email == email))
  if exists.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

  u = User(email=email, display_name=payload.displayName, password_hash=hash_password(payload.password))
  db.add(u)
  try:
    await db.flush()
  except IntegrityError:
    await db.rollback()
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
  await _start_session(db, request, response, u)
  return _user_out(u)


@router.post("/login", response_model=UserOut)
async def login(payload: LoginIn, request: Request, response: Response, db: AsyncSession = Depends(get_db)) -> UserOut:
  email = (payload.email or "").strip().lower()
  rate_limit_or_429(f"auth:login:ip:{client_ip(request)}", limit=int(settings.rate_limit_login_ip_per_minute))
  if email:
    rate_limit_or_429(f"auth:login:email:{email}", limit=int(settings.rate_limit_login_email_per_minute))

  res = await db.execute(select(User).where(User.email == email))
  u = res.scalar_one_or_none()
  if not u or not verify_password(payload.password, u.password_hash):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
  if not u.active:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User disabled")

  await _start_session(db, request, response, u)
  return _user_out(u)


@router.post("/logout")
async def logout(
  request: Request,
  response: Response,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  session_id = request.cookies.get(SESSION_COOKIE_NAME)
  await db.execute(delete(DbSession).where(DbSession.id == session_id, DbSession.user_id == user.id))
  await db.commit()
  response.delete_cookie(key=SESSION_COOKIE_NAME, path="/")
  return {"ok": True}


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)) -> UserOut:
  return _user_out(user)
