from __future__ import annotations

from typing import Any

from fastapi.encoders import jsonable_encoder
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.models import AuditLog


async def write_audit(
  db: AsyncSession,
  *,
  team_id: str,
  action: str,
  target_type: str,
  target_id: str | None,
  project_id: str | None = None,
  actor_id: str | None = None,
  metadata: dict[str, Any] | None = None,
) -> None:
  safe_metadata = jsonable_encoder(metadata or {})
  ev = AuditLog(
    team_id=team_id,
    project_id=project_id,
    actor_user_id=actor_id,
    action=action,
    target_type=target_type,
    target_id=target_id,
    meta=safe_metadata,
  )
  db.add(ev)
