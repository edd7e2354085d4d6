from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import can_mutate_board, get_project_or_404, require_project_access, require_task_access
from taskflow.audit import write_audit
from taskflow.config import settings
from taskflow.deps import get_current_user, get_db
from taskflow.errors import public_error
from taskflow.models import BoardColumn, CommentAttachment, CommentReaction, Milestone, Notification, ProjectMember, Subtask, Task, TaskComment, User
from taskflow.notifications.events import notify
from taskflow.ordering import next_sort_order_in
from taskflow.rate_limit import consume
from taskflow.reorder import ReorderCommitError, ReorderValidationError, commit_reorder, flatten_task_ids, validate_reorder
from taskflow.schemas import (
  AssigneeCandidateOut,
  MilestoneCandidateOut,
  ReorderIn,
  SubtaskCreateIn,
  SubtaskOut,
  SubtaskUpdateIn,
  TaskCreateIn,
  TaskDetailOut,
  TaskOut,
  TaskUpdateIn,
)

router = APIRouter(tags=["tasks"])

REORDER_FAILED = "Failed to reorder tasks."


def task_out(t: Task) -> TaskOut:
  return TaskOut(
    id=t.id,
    projectId=t.project_id,
    columnId=t.column_id,
    title=t.title,
    description=t.description,
    priority=t.priority,
    status=t.status,
    assigneeId=t.assignee_id,
    milestoneId=t.milestone_id,
    sortOrder=t.sort_order,
    createdAt=t.created_at,
    updatedAt=t.updated_at,
  )


def _subtask_out(s: Subtask) -> SubtaskOut:
  return SubtaskOut(id=s.id, title=s.title, isDone=s.is_done, sortOrder=s.sort_order)


async def _is_project_member(db: AsyncSession, project_id: str, user_id: str) -> bool:
  res = await db.execute(select(ProjectMember.id).where(ProjectMember.project_id == project_id, ProjectMember.user_id == user_id))
  return res.scalar_one_or_none() is not None


@router.post("/tasks/reorder")
async def reorder_tasks(
  payload: ReorderIn,
  request: Request,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  consume("tasks:reorder", user_id=user.id, request=request, limit=int(settings.rate_limit_reorder_per_minute))

  if not await can_mutate_board(db, payload.projectId, user.id):
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

  try:
    await validate_reorder(db, payload.projectId, payload.columns)
  except ReorderValidationError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)

  task_count = len(flatten_task_ids(payload.columns))
  if task_count == 0:
    return {"ok": True}

  try:
    written = await commit_reorder(db, payload.projectId, payload.columns)
    project = await get_project_or_404(payload.projectId, db)
    await write_audit(
      db,
      team_id=project.team_id,
      project_id=project.id,
      action="tasks.reordered",
      target_type="project",
      target_id=project.id,
      actor_id=user.id,
      metadata={"columnIds": [c.id for c in payload.columns], "taskCount": written},
    )
    await db.commit()
  except (ReorderCommitError, SQLAlchemyError) as exc:
    await db.rollback()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=public_error(exc, REORDER_FAILED))
  return {"ok": True}


@router.post("/tasks", response_model=TaskOut)
async def create_task(
  payload: TaskCreateIn,
  request: Request,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> TaskOut:
  consume("tasks:create", user_id=user.id, request=request, limit=int(settings.rate_limit_task_create_per_minute))
  await require_project_access(payload.projectId, user, db)

  cres = await db.execute(select(BoardColumn).where(BoardColumn.id == payload.columnId))
  col = cres.scalar_one_or_none()
  if not col or col.project_id != payload.projectId:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid columnId")

  sort_order = await next_sort_order_in(db, Task.sort_order, Task.project_id == payload.projectId, Task.column_id == col.id)
  t = Task(
    project_id=payload.projectId,
    column_id=col.id,
    title=payload.title,
    priority="medium",
    status="todo",
    sort_order=sort_order,
    created_by=user.id,
  )
  db.add(t)
  await db.commit()
  return task_out(t)


@router.get("/tasks/{task_id}", response_model=TaskDetailOut)
async def get_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskDetailOut:
  t = await require_task_access(task_id, user, db)

  ares = await db.execute(
    select(User.id, User.display_name)
    .join(ProjectMember, ProjectMember.user_id == User.id)
    .where(ProjectMember.project_id == t.project_id, User.active.is_(True))
    .order_by(User.display_name.asc())
  )
  mres = await db.execute(
    select(Milestone).where(Milestone.project_id == t.project_id).order_by(Milestone.sort_order.asc(), Milestone.due_date.asc())
  )
  return TaskDetailOut(
    task=task_out(t),
    assigneeCandidates=[AssigneeCandidateOut(id=uid, displayName=name) for uid, name in ares.all()],
    milestoneCandidates=[
      MilestoneCandidateOut(id=m.id, name=m.name, status=m.status, dueDate=m.due_date) for m in mres.scalars().all()
    ],
  )


@router.patch("/tasks/{task_id}", response_model=TaskOut)
async def update_task(task_id: str, payload: TaskUpdateIn, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> TaskOut:
  t = await require_task_access(task_id, user, db)

  fields_set = payload.model_fields_set
  if not fields_set:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No updates")
  for required in ("title", "priority", "status"):
    if required in fields_set and getattr(payload, required) is None:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{required} cannot be null")

  if "assigneeId" in fields_set and payload.assigneeId is not None:
    if not await _is_project_member(db, t.project_id, payload.assigneeId):
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Assignee must be a project member")
  if "milestoneId" in fields_set and payload.milestoneId is not None:
    mres = await db.execute(select(Milestone.project_id).where(Milestone.id == payload.milestoneId))
    if mres.scalar_one_or_none() != t.project_id:
      raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid milestoneId")

  old_assignee = t.assignee_id
  mapping = [
    ("title", "title"),
    ("description", "description"),
    ("priority", "priority"),
    ("status", "status"),
    ("assignee_id", "assigneeId"),
    ("milestone_id", "milestoneId"),
  ]
  for model_attr, field_name in mapping:
    if field_name in fields_set:
      setattr(t, model_attr, getattr(payload, field_name))

  if t.assignee_id and t.assignee_id != old_assignee and t.assignee_id != user.id:
    await notify(
      db,
      user_id=t.assignee_id,
      type="assignment",
      body=t.title,
      project_id=t.project_id,
      task_id=t.id,
      metadata={"assignedBy": user.id},
    )
  await db.commit()
  await db.refresh(t)
  return task_out(t)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  t = await require_task_access(task_id, user, db)
  comment_ids = select(TaskComment.id).where(TaskComment.task_id == task_id)
  await db.execute(delete(Notification).where(Notification.task_id == task_id))
  await db.execute(delete(CommentReaction).where(CommentReaction.comment_id.in_(comment_ids)))
  await db.execute(delete(CommentAttachment).where(CommentAttachment.comment_id.in_(comment_ids)))
  await db.execute(delete(TaskComment).where(TaskComment.task_id == task_id, TaskComment.parent_comment_id.is_not(None)))
  await db.execute(delete(TaskComment).where(TaskComment.task_id == task_id))
  await db.execute(delete(Subtask).where(Subtask.task_id == task_id))
  await db.execute(delete(Task).where(Task.id == task_id))
  project = await get_project_or_404(t.project_id, db)
  await write_audit(
    db,
    team_id=project.team_id,
    project_id=project.id,
    action="task.deleted",
    target_type="task",
    target_id=task_id,
    actor_id=user.id,
    metadata={"title": t.title},
  )
  await db.commit()
  return {"ok": True}


@router.get("/tasks/{task_id}/subtasks", response_model=list[SubtaskOut])
async def list_subtasks(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> list[SubtaskOut]:
  await require_task_access(task_id, user, db)
  res = await db.execute(select(Subtask).where(Subtask.task_id == task_id).order_by(Subtask.sort_order.asc(), Subtask.created_at.asc()))
  return [_subtask_out(s) for s in res.scalars().all()]


@router.post("/tasks/{task_id}/subtasks", response_model=SubtaskOut)
async def create_subtask(
  task_id: str,
  payload: SubtaskCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubtaskOut:
  await require_task_access(task_id, user, db)
  sort_order = await next_sort_order_in(db, Subtask.sort_order, Subtask.task_id == task_id)
  s = Subtask(task_id=task_id, title=payload.title, sort_order=sort_order)
  db.add(s)
  await db.commit()
  return _subtask_out(s)


async def _get_subtask_or_404(db: AsyncSession, task_id: str, subtask_id: str) -> Subtask:
  res = await db.execute(select(Subtask).where(Subtask.id == subtask_id, Subtask.task_id == task_id))
  s = res.scalar_one_or_none()
  if not s:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subtask not found")
  return s


@router.patch("/tasks/{task_id}/subtasks/{subtask_id}", response_model=SubtaskOut)
async def update_subtask(
  task_id: str,
  subtask_id: str,
  payload: SubtaskUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> SubtaskOut:
  await require_task_access(task_id, user, db)
  s = await _get_subtask_or_404(db, task_id, subtask_id)
  if payload.title is not None:
    s.title = payload.title
  if payload.isDone is not None:
    s.is_done = payload.isDone
  await db.commit()
  return _subtask_out(s)


@router.delete("/tasks/{task_id}/subtasks/{subtask_id}")
async def delete_subtask(task_id: str, subtask_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> dict:
  await require_task_access(task_id, user, db)
  await _get_subtask_or_404(db, task_id, subtask_id)
  await db.execute(delete(Subtask).where(Subtask.id == subtask_id))
  await db.commit()
  return {"ok": True}
