from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import require_project_access
from taskflow.config import settings
from taskflow.deps import get_current_user, get_db
from taskflow.models import User, WikiPage, WikiRevision, utcnow
from taskflow.rate_limit import consume
from taskflow.schemas import WikiPageCreateIn, WikiPageOut, WikiPageUpdateIn, WikiRevisionOut

router = APIRouter(tags=["wiki"])


def _page_out(p: WikiPage) -> WikiPageOut:
  return WikiPageOut(id=p.id, projectId=p.project_id, title=p.title, body=p.body, createdAt=p.created_at, updatedAt=p.updated_at)


def _revision_out(r: WikiRevision) -> WikiRevisionOut:
  return WikiRevisionOut(id=r.id, pageId=r.page_id, body=r.body, editedBy=r.edited_by, createdAt=r.created_at)


async def _get_page_or_404(db: AsyncSession, project_id: str, page_id: str) -> WikiPage:
  res = await db.execute(
    select(WikiPage).where(WikiPage.id == page_id, WikiPage.project_id == project_id, WikiPage.deleted_at.is_(None))
  )
  p = res.scalar_one_or_none()
  if not p:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")
  return p


@router.get("/projects/{project_id}/wiki", response_model=list[WikiPageOut])
async def list_pages(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[WikiPageOut]:
  await require_project_access(project_id, user, db)
  res = await db.execute(
    select(WikiPage).where(WikiPage.project_id == project_id, WikiPage.deleted_at.is_(None)).order_by(WikiPage.title.asc())
  )
  return [_page_out(p) for p in res.scalars().all()]


@router.post("/projects/{project_id}/wiki", response_model=WikiPageOut)
async def create_page(
  project_id: str,
  payload: WikiPageCreateIn,
  request: Request,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> WikiPageOut:
  consume("wiki:create", user_id=user.id, request=request, limit=int(settings.rate_limit_wiki_create_per_minute))
  await require_project_access(project_id, user, db)
  p = WikiPage(project_id=project_id, title=payload.title, body=payload.body, created_by=user.id, updated_by=user.id)
  db.add(p)
  await db.flush()
  db.add(WikiRevision(page_id=p.id, body=p.body, edited_by=user.id))
  await db.commit()
  return _page_out(p)


@router.get("/projects/{project_id}/wiki/{page_id}", response_model=WikiPageOut)
async def get_page(project_id: str, page_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> WikiPageOut:
  await require_project_access(project_id, user, db)
  return _page_out(await _get_page_or_404(db, project_id, page_id))


@router.patch("/projects/{project_id}/wiki/{page_id}", response_model=WikiPageOut)
async def update_page(
  project_id: str,
  page_id: str,
  payload: WikiPageUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> WikiPageOut:
  await require_project_access(project_id, user, db)
  p = await _get_page_or_404(db, project_id, page_id)
  if payload.title is not None:
    p.title = payload.title
  if payload.body is not None and payload.body != p.body:
    p.body = payload.body
    db.add(WikiRevision(page_id=p.id, body=payload.body, edited_by=user.id))
  p.updated_by = user.id
  await db.commit()
  await db.refresh(p)
  return _page_out(p)


@router.delete("/projects/{project_id}/wiki/{page_id}")
async def delete_page(project_id: str, page_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await require_project_access(project_id, user, db)
  p = await _get_page_or_404(db, project_id, page_id)
  p.deleted_at = utcnow()
  p.updated_by = user.id
  await db.commit()
  return {"ok": True}


@router.get("/projects/{project_id}/wiki/{page_id}/revisions", response_model=list[WikiRevisionOut])
async def list_revisions(
  project_id: str,
  page_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[WikiRevisionOut]:
  await require_project_access(project_id, user, db)
  await _get_page_or_404(db, project_id, page_id)
  res = await db.execute(select(WikiRevision).where(WikiRevision.page_id == page_id).order_by(WikiRevision.created_at.desc()))
  return [_revision_out(r) for r in res.scalars().all()]
