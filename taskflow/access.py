from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.models import Project, ProjectMember, Task, TeamMember, User

logger = logging.getLogger(__name__)


async def team_role(db: AsyncSession, team_id: str, user_id: str) -> str | None:
  res = await db.execute(select(TeamMember.role).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id))
  return res.scalar_one_or_none()


async def is_team_admin(db: AsyncSession, team_id: str, user_id: str) -> bool:
  try:
    return await team_role(db, team_id, user_id) == "admin"
  except SQLAlchemyError:
    logger.exception("team admin lookup failed team=%s user=%s", team_id, user_id)
    return False


async def can_mutate_board(db: AsyncSession, project_id: str, user_id: str) -> bool:
  """Fail-closed: any lookup error or a missing project denies access."""
  try:
    res = await db.execute(
      select(ProjectMember.id).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id)
    )
    if res.scalar_one_or_none():
      return True

    pres = await db.execute(select(Project.team_id).where(Project.id == project_id))
    team_id = pres.scalar_one_or_none()
    if not team_id:
      return False
    return await team_role(db, team_id, user_id) == "admin"
  except SQLAlchemyError:
    logger.exception("project access lookup failed project=%s user=%s", project_id, user_id)
    return False


async def require_project_access(project_id: str, user: User, db: AsyncSession) -> None:
  if not await can_mutate_board(db, project_id, user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


async def require_task_access(task_id: str, user: User, db: AsyncSession) -> Task:
  res = await db.execute(select(Task).where(Task.id == task_id))
  t = res.scalar_one_or_none()
  if not t:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
  await require_project_access(t.project_id, user, db)
  return t


async def require_team_member(team_id: str, user: User, db: AsyncSession) -> str:
  role = await team_role(db, team_id, user.id)
  if not role:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No team access")
  return role


async def require_team_admin(team_id: str, user: User, db: AsyncSession) -> None:
  if not await is_team_admin(db, team_id, user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Team admin required")


async def get_project_or_404(project_id: str, db: AsyncSession) -> Project:
  res = await db.execute(select(Project).where(Project.id == project_id))
  p = res.scalar_one_or_none()
  if not p:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")
  return p
