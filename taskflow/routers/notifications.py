from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.deps import get_current_user, get_db
from taskflow.models import Notification, User, utcnow
from taskflow.schemas import NotificationOut, NotificationUpdateIn

router = APIRouter(prefix="/notifications", tags=["notifications"])

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


def _notification_out(n: Notification) -> NotificationOut:
  return NotificationOut(
    id=n.id,
    type=n.type,
    body=n.body,
    isRead=n.is_read,
    readAt=n.read_at,
    createdAt=n.created_at,
    projectId=n.project_id,
    taskId=n.task_id,
    commentId=n.comment_id,
    metadata=n.meta or {},
  )


def clamp_limit(raw: int | None) -> int:
  if raw is None:
    return DEFAULT_LIMIT
  return max(1, min(MAX_LIMIT, int(raw)))


@router.get("", response_model=list[NotificationOut])
async def list_notifications(
  unread: int = 0,
  limit: int | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[NotificationOut]:
  q = select(Notification).where(Notification.user_id == user.id)
  if unread:
    q = q.where(Notification.is_read.is_(False))
  res = await db.execute(q.order_by(Notification.created_at.desc()).limit(clamp_limit(limit)))
  return [_notification_out(n) for n in res.scalars().all()]


@router.patch("/{notification_id}", response_model=NotificationOut)
async def update_notification(
  notification_id: str,
  payload: NotificationUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> NotificationOut:
  res = await db.execute(select(Notification).where(Notification.id == notification_id, Notification.user_id == user.id))
  n = res.scalar_one_or_none()
  if not n:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
  n.is_read = payload.isRead
  n.read_at = utcnow() if payload.isRead else None
  await db.commit()
  return _notification_out(n)


@router.post("/read-all")
async def mark_all_read(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  res = await db.execute(
    update(Notification)
    .where(Notification.user_id == user.id, Notification.is_read.is_(False))
    .values(is_read=True, read_at=utcnow())
    .execution_options(synchronize_session=False)
  )
  await db.commit()
  return {"ok": True, "updated": int(res.rowcount or 0)}
