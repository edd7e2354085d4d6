from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import get_project_or_404, require_project_access
from taskflow.audit import write_audit
from taskflow.deps import get_current_user, get_db
from taskflow.models import BoardColumn, User
from taskflow.ordering import next_sort_order_in
from taskflow.schemas import ColumnCreateIn, ColumnOut

router = APIRouter(tags=["columns"])


def _column_out(c: BoardColumn) -> ColumnOut:
  return ColumnOut(id=c.id, projectId=c.project_id, name=c.name, sortOrder=c.sort_order)


@router.get("/projects/{project_id}/columns", response_model=list[ColumnOut])
async def list_columns(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ColumnOut]:
  await require_project_access(project_id, user, db)
  res = await db.execute(select(BoardColumn).where(BoardColumn.project_id == project_id).order_by(BoardColumn.sort_order.asc()))
  return [_column_out(c) for c in res.scalars().all()]


@router.post("/projects/{project_id}/columns", response_model=ColumnOut)
async def create_column(
  project_id: str,
  payload: ColumnCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  await require_project_access(project_id, user, db)
  p = await get_project_or_404(project_id, db)
  sort_order = await next_sort_order_in(db, BoardColumn.sort_order, BoardColumn.project_id == project_id)
  c = BoardColumn(project_id=project_id, name=payload.name, sort_order=sort_order)
  db.add(c)
  await db.flush()
  await write_audit(
    db,
    team_id=p.team_id,
    project_id=project_id,
    action="column.created",
    target_type="column",
    target_id=c.id,
    actor_id=user.id,
    metadata={"name": c.name},
  )
  await db.commit()
  return _column_out(c)


@router.patch("/projects/{project_id}/columns/{column_id}", response_model=ColumnOut)
async def rename_column(
  project_id: str,
  column_id: str,
  payload: ColumnCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ColumnOut:
  await require_project_access(project_id, user, db)
  res = await db.execute(select(BoardColumn).where(BoardColumn.id == column_id, BoardColumn.project_id == project_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Column not found")
  c.name = payload.name
  await db.commit()
  return _column_out(c)
