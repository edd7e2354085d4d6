from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import get_project_or_404, require_project_access, require_team_admin, require_team_member
from taskflow.audit import write_audit
from taskflow.deps import get_current_user, get_db
from taskflow.models import (
  BoardColumn,
  CommentAttachment,
  CommentReaction,
  Milestone,
  Notification,
  Project,
  ProjectMember,
  Subtask,
  Task,
  TaskComment,
  TeamMember,
  User,
  WikiPage,
  WikiRevision,
)
from taskflow.ordering import positions_for
from taskflow.routers.tasks import task_out
from taskflow.schemas import BoardColumnOut, BoardOut, ProjectCreateIn, ProjectMemberAddIn, ProjectMemberOut, ProjectOut

router = APIRouter(tags=["projects"])

DEFAULT_COLUMNS = ("To Do", "In Progress", "Review", "Done")


def _project_out(p: Project) -> ProjectOut:
  return ProjectOut(id=p.id, teamId=p.team_id, name=p.name, createdAt=p.created_at)


async def _delete_project_everything(db: AsyncSession, *, project_id: str) -> None:
  task_ids = select(Task.id).where(Task.project_id == project_id)
  comment_ids = select(TaskComment.id).where(TaskComment.task_id.in_(task_ids))
  await db.execute(delete(Notification).where(Notification.project_id == project_id))
  await db.execute(delete(Notification).where(Notification.task_id.in_(task_ids)))
  await db.execute(delete(CommentReaction).where(CommentReaction.comment_id.in_(comment_ids)))
  await db.execute(delete(CommentAttachment).where(CommentAttachment.comment_id.in_(comment_ids)))
  # replies first, then the comments they point at
  await db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids), TaskComment.parent_comment_id.is_not(None)))
  await db.execute(delete(TaskComment).where(TaskComment.task_id.in_(task_ids)))
  await db.execute(delete(Subtask).where(Subtask.task_id.in_(task_ids)))
  await db.execute(delete(Task).where(Task.project_id == project_id))
  await db.execute(delete(Milestone).where(Milestone.project_id == project_id))
  await db.execute(delete(BoardColumn).where(BoardColumn.project_id == project_id))
  await db.execute(
    delete(WikiRevision).where(WikiRevision.page_id.in_(select(WikiPage.id).where(WikiPage.project_id == project_id)))
  )
  await db.execute(delete(WikiPage).where(WikiPage.project_id == project_id))
  await db.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
  await db.execute(delete(Project).where(Project.id == project_id))


@router.get("/teams/{team_id}/projects", response_model=list[ProjectOut])
async def list_projects(team_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ProjectOut]:
  role = await require_team_member(team_id, user, db)
  q = select(Project).where(Project.team_id == team_id).order_by(Project.created_at.asc())
  if role != "admin":
    q = q.join(ProjectMember, ProjectMember.project_id == Project.id).where(ProjectMember.user_id == user.id)
  res = await db.execute(q)
  return [_project_out(p) for p in res.scalars().all()]


@router.post("/teams/{team_id}/projects", response_model=ProjectOut)
async def create_project(
  team_id: str,
  payload: ProjectCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ProjectOut:
  await require_team_admin(team_id, user, db)
  p = Project(team_id=team_id, name=payload.name, created_by=user.id)
  db.add(p)
  await db.flush()
  db.add(ProjectMember(project_id=p.id, user_id=user.id, role="admin"))
  for name, sort_order in positions_for(DEFAULT_COLUMNS):
    db.add(BoardColumn(project_id=p.id, name=name, sort_order=sort_order))

  await write_audit(
    db,
    team_id=team_id,
    project_id=p.id,
    action="project.created",
    target_type="project",
    target_id=p.id,
    actor_id=user.id,
    metadata={"name": p.name},
  )
  await db.commit()
  return _project_out(p)


@router.get("/projects/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> ProjectOut:
  p = await get_project_or_404(project_id, db)
  await require_project_access(project_id, user, db)
  return _project_out(p)


@router.delete("/projects/{project_id}")
async def delete_project(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  p = await get_project_or_404(project_id, db)
  await require_team_admin(p.team_id, user, db)
  await _delete_project_everything(db, project_id=project_id)
  await write_audit(
    db,
    team_id=p.team_id,
    project_id=project_id,
    action="project.deleted",
    target_type="project",
    target_id=project_id,
    actor_id=user.id,
    metadata={"name": p.name},
  )
  await db.commit()
  return {"ok": True}


@router.get("/projects/{project_id}/members", response_model=list[ProjectMemberOut])
async def list_project_members(project_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[ProjectMemberOut]:
  await require_project_access(project_id, user, db)
  res = await db.execute(
    select(ProjectMember, User)
    .join(User, User.id == ProjectMember.user_id)
    .where(ProjectMember.project_id == project_id)
    .order_by(User.display_name.asc())
  )
  return [ProjectMemberOut(userId=u.id, displayName=u.display_name, role=m.role) for m, u in res.all()]


@router.post("/projects/{project_id}/members", response_model=ProjectMemberOut)
async def add_project_member(
  project_id: str,
  payload: ProjectMemberAddIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> ProjectMemberOut:
  p = await get_project_or_404(project_id, db)
  await require_team_admin(p.team_id, user, db)

  tres = await db.execute(select(TeamMember.id).where(TeamMember.team_id == p.team_id, TeamMember.user_id == payload.userId))
  if not tres.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User is not a team member")
  exists = await db.execute(select(ProjectMember.id).where(ProjectMember.project_id == project_id, ProjectMember.user_id == payload.userId))
  if exists.scalar_one_or_none():
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already a project member")

  ures = await db.execute(select(User).where(User.id == payload.userId))
  u = ures.scalar_one()
  db.add(ProjectMember(project_id=project_id, user_id=u.id, role="member"))
  await write_audit(
    db,
    team_id=p.team_id,
    project_id=project_id,
    action="project.member_added",
    target_type="user",
    target_id=u.id,
    actor_id=user.id,
  )
  await db.commit()
  return ProjectMemberOut(userId=u.id, displayName=u.display_name, role="member")


@router.get("/projects/{project_id}/board", response_model=BoardOut)
async def get_board(
  project_id: str,
  milestoneId: str | None = None,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> BoardOut:
  await get_project_or_404(project_id, db)
  await require_project_access(project_id, user, db)

  cres = await db.execute(
    select(BoardColumn).where(BoardColumn.project_id == project_id).order_by(BoardColumn.sort_order.asc(), BoardColumn.created_at.asc())
  )
  columns = cres.scalars().all()

  tq = select(Task).where(Task.project_id == project_id).order_by(Task.sort_order.asc(), Task.created_at.asc())
  if milestoneId:
    tq = tq.where(Task.milestone_id == milestoneId)
  tres = await db.execute(tq)
  by_column: dict[str, list] = {c.id: [] for c in columns}
  for t in tres.scalars().all():
    by_column.setdefault(t.column_id, []).append(task_out(t))

  filtered = bool(milestoneId)
  return BoardOut(
    projectId=project_id,
    columns=[BoardColumnOut(id=c.id, name=c.name, sortOrder=c.sort_order, tasks=by_column[c.id]) for c in columns],
    milestoneId=milestoneId,
    filtered=filtered,
    dragEnabled=not filtered,
  )
