from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import require_project_access
from taskflow.config import settings
from taskflow.deps import get_current_user, get_db
from taskflow.models import Milestone, Task, User
from taskflow.ordering import next_sort_order_in
from taskflow.rate_limit import consume
from taskflow.schemas import MilestoneCreateIn, MilestoneOut, MilestoneUpdateIn

router = APIRouter(tags=["milestones"])


def _milestone_out(m: Milestone) -> MilestoneOut:
  return MilestoneOut(id=m.id, projectId=m.project_id, name=m.name, status=m.status, dueDate=m.due_date, sortOrder=m.sort_order)


async def _get_milestone_or_404(db: AsyncSession, project_id: str, milestone_id: str) -> Milestone:
  res = await db.execute(select(Milestone).where(Milestone.id == milestone_id, Milestone.project_id == project_id))
  m = res.scalar_one_or_none()
  if not m:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Milestone not found")
  return m


@router.get("/projects/{project_id}/milestones", response_model=list[MilestoneOut])
async def list_milestones(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[MilestoneOut]:
  await require_project_access(project_id, user, db)
  res = await db.execute(
    select(Milestone).where(Milestone.project_id == project_id).order_by(Milestone.sort_order.asc(), Milestone.due_date.asc())
  )
  return [_milestone_out(m) for m in res.scalars().all()]


@router.post("/projects/{project_id}/milestones", response_model=MilestoneOut)
async def create_milestone(
  project_id: str,
  payload: MilestoneCreateIn,
  request: Request,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MilestoneOut:
  consume("milestones:create", user_id=user.id, request=request, limit=int(settings.rate_limit_milestone_create_per_minute))
  await require_project_access(project_id, user, db)
  sort_order = await next_sort_order_in(db, Milestone.sort_order, Milestone.project_id == project_id)
  m = Milestone(
    project_id=project_id,
    name=payload.name,
    due_date=payload.dueDate,
    status=payload.status,
    sort_order=sort_order,
    created_by=user.id,
  )
  db.add(m)
  await db.commit()
  return _milestone_out(m)


@router.patch("/projects/{project_id}/milestones/{milestone_id}", response_model=MilestoneOut)
async def update_milestone(
  project_id: str,
  milestone_id: str,
  payload: MilestoneUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MilestoneOut:
  await require_project_access(project_id, user, db)
  m = await _get_milestone_or_404(db, project_id, milestone_id)
  if payload.name is not None:
    m.name = payload.name
  if payload.dueDate is not None:
    m.due_date = payload.dueDate
  if payload.status is not None:
    m.status = payload.status
  await db.commit()
  return _milestone_out(m)


@router.delete("/projects/{project_id}/milestones/{milestone_id}")
async def delete_milestone(
  project_id: str,
  milestone_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await require_project_access(project_id, user, db)
  await _get_milestone_or_404(db, project_id, milestone_id)
  await db.execute(
    update(Task)
    .where(Task.project_id == project_id, Task.milestone_id == milestone_id)
    .values(milestone_id=None)
    .execution_options(synchronize_session=False)
  )
  await db.execute(delete(Milestone).where(Milestone.id == milestone_id))
  await db.commit()
  return {"ok": True}
