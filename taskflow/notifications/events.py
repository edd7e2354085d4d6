from __future__ import annotations

import re
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.models import Notification, ProjectMember, User

_MENTION_RE = re.compile(r"@([\w.+-]+)")


def mention_tokens_for_user(*, display_name: str | None, email: str | None) -> set[str]:
  out: set[str] = set()
  n = (display_name or "").strip().lower()
  if n:
    out.add(n.replace(" ", ""))
  e = (email or "").strip().lower()
  if e:
    out.add(e)
    if "@" in e:
      out.add(e.split("@", 1)[0])
  return out


def mentioned_tokens(body: str) -> set[str]:
  return {m.group(1).lower().rstrip(".") for m in _MENTION_RE.finditer(body or "")}


async def notify(
  db: AsyncSession,
  *,
  user_id: str,
  type: str,
  body: str | None,
  project_id: str | None = None,
  task_id: str | None = None,
  comment_id: str | None = None,
  metadata: dict[str, Any] | None = None,
) -> Notification:
  n = Notification(
    user_id=user_id,
    type=type,
    body=body,
    project_id=project_id,
    task_id=task_id,
    comment_id=comment_id,
    meta=metadata or {},
  )
  db.add(n)
  return n


async def notify_mentions(
  db: AsyncSession,
  *,
  project_id: str,
  task_id: str,
  comment_id: str,
  author_id: str,
  body: str,
) -> list[str]:
  """Notify active project members whose handle appears as ``@handle`` in ``body``."""
  tokens = mentioned_tokens(body)
  if not tokens:
    return []
  res = await db.execute(
    select(User.id, User.display_name, User.email)
    .join(ProjectMember, ProjectMember.user_id == User.id)
    .where(ProjectMember.project_id == project_id, User.active.is_(True))
  )
  notified: list[str] = []
  for uid, name, email in res.all():
    if uid == author_id:
      continue
    if not tokens & mention_tokens_for_user(display_name=name, email=email):
      continue
    await notify(
      db,
      user_id=uid,
      type="mention",
      body=body[:280],
      project_id=project_id,
      task_id=task_id,
      comment_id=comment_id,
      metadata={"authorId": author_id},
    )
    notified.append(uid)
  return notified
