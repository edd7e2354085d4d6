from __future__ import annotations

from collections import defaultdict

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.access import require_task_access
from taskflow.config import settings
from taskflow.deps import get_current_user, get_db
from taskflow.errors import public_error
from taskflow.models import CommentAttachment, CommentReaction, Notification, ProjectMember, TaskComment, User
from taskflow.notifications.events import notify_mentions
from taskflow.schemas import (
  CommentAttachmentOut,
  CommentCreateIn,
  CommentListOut,
  CommentOut,
  CommentUpdateIn,
  MentionCandidateOut,
  MentionCandidatesOut,
  ReactionSummaryOut,
  ReactionToggleIn,
)
from taskflow.storage import AttachmentStore, attachment_key, get_attachment_store

router = APIRouter(tags=["comments"])

MENTION_CANDIDATE_LIMIT = 8


def _comment_out(c: TaskComment, reactions: list[ReactionSummaryOut] | None = None) -> CommentOut:
  return CommentOut(
    id=c.id,
    taskId=c.task_id,
    authorId=c.author_id,
    body=c.body,
    parentCommentId=c.parent_comment_id,
    createdAt=c.created_at,
    reactionSummary=reactions or [],
    replies=[],
  )


async def _reaction_summaries(db: AsyncSession, comment_ids: list[str], user_id: str) -> dict[str, list[ReactionSummaryOut]]:
  if not comment_ids:
    return {}
  res = await db.execute(
    select(CommentReaction.comment_id, CommentReaction.emoji, CommentReaction.user_id)
    .where(CommentReaction.comment_id.in_(comment_ids))
    .order_by(CommentReaction.created_at.asc())
  )
  counts: dict[str, dict[str, list[str]]] = defaultdict(dict)
  for comment_id, emoji, reactor in res.all():
    counts[comment_id].setdefault(emoji, []).append(reactor)
  return {
    cid: [ReactionSummaryOut(emoji=e, count=len(users), reactedByMe=user_id in users) for e, users in by_emoji.items()]
    for cid, by_emoji in counts.items()
  }


async def _get_comment_or_404(db: AsyncSession, task_id: str, comment_id: str) -> TaskComment:
  res = await db.execute(select(TaskComment).where(TaskComment.id == comment_id, TaskComment.task_id == task_id))
  c = res.scalar_one_or_none()
  if not c:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Comment not found")
  return c


@router.get("/tasks/{task_id}/comments", response_model=CommentListOut)
async def list_comments(task_id: str, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)) -> CommentListOut:
  await require_task_access(task_id, user, db)
  res = await db.execute(select(TaskComment).where(TaskComment.task_id == task_id).order_by(TaskComment.created_at.asc()))
  rows = res.scalars().all()
  summaries = await _reaction_summaries(db, [c.id for c in rows], user.id)

  nodes = {c.id: _comment_out(c, summaries.get(c.id)) for c in rows}
  top: list[CommentOut] = []
  for c in rows:
    node = nodes[c.id]
    parent = nodes.get(c.parent_comment_id) if c.parent_comment_id else None
    if parent is not None:
      parent.replies.append(node)
    else:
      top.append(node)
  top.reverse()
  return CommentListOut(comments=top, currentUserId=user.id)


@router.post("/tasks/{task_id}/comments", response_model=CommentOut)
async def create_comment(
  task_id: str,
  payload: CommentCreateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  t = await require_task_access(task_id, user, db)
  if payload.parentCommentId:
    await _get_comment_or_404(db, task_id, payload.parentCommentId)

  c = TaskComment(task_id=task_id, author_id=user.id, parent_comment_id=payload.parentCommentId, body=payload.body)
  db.add(c)
  await db.flush()
  await notify_mentions(db, project_id=t.project_id, task_id=t.id, comment_id=c.id, author_id=user.id, body=payload.body)
  await db.commit()
  return _comment_out(c)


@router.patch("/tasks/{task_id}/comments/{comment_id}", response_model=CommentOut)
async def update_comment(
  task_id: str,
  comment_id: str,
  payload: CommentUpdateIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> CommentOut:
  await require_task_access(task_id, user, db)
  c = await _get_comment_or_404(db, task_id, comment_id)
  if c.author_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can edit this comment")
  c.body = payload.body
  await db.commit()
  summaries = await _reaction_summaries(db, [c.id], user.id)
  return _comment_out(c, summaries.get(c.id))


@router.delete("/tasks/{task_id}/comments/{comment_id}")
async def delete_comment(
  task_id: str,
  comment_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  store: AttachmentStore = Depends(get_attachment_store),
) -> dict:
  await require_task_access(task_id, user, db)
  c = await _get_comment_or_404(db, task_id, comment_id)
  if c.author_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can delete this comment")

  # direct replies are detached rather than removed
  await db.execute(update(TaskComment).where(TaskComment.parent_comment_id == comment_id).values(parent_comment_id=None))
  await db.execute(delete(Notification).where(Notification.comment_id == comment_id))
  ares = await db.execute(select(CommentAttachment.storage_path).where(CommentAttachment.comment_id == comment_id))
  stored = list(ares.scalars().all())
  await db.execute(delete(CommentAttachment).where(CommentAttachment.comment_id == comment_id))
  await db.execute(delete(CommentReaction).where(CommentReaction.comment_id == comment_id))
  await db.execute(delete(TaskComment).where(TaskComment.id == comment_id))
  await db.commit()
  for key in stored:
    await store.remove(key)
  return {"ok": True}


@router.post("/tasks/{task_id}/comments/{comment_id}/reactions")
async def toggle_reaction(
  task_id: str,
  comment_id: str,
  payload: ReactionToggleIn,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> dict:
  await require_task_access(task_id, user, db)
  await _get_comment_or_404(db, task_id, comment_id)

  res = await db.execute(
    select(CommentReaction).where(
      CommentReaction.comment_id == comment_id,
      CommentReaction.user_id == user.id,
      CommentReaction.emoji == payload.emoji,
    )
  )
  existing = res.scalar_one_or_none()
  if existing:
    await db.delete(existing)
    reacted = False
  else:
    db.add(CommentReaction(comment_id=comment_id, user_id=user.id, emoji=payload.emoji))
    reacted = True
  await db.commit()
  return {"reacted": reacted}


@router.get("/mentions", response_model=MentionCandidatesOut)
async def mention_candidates(
  taskId: str | None = None,
  q: str = "",
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> MentionCandidatesOut:
  if not taskId:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="taskId is required")
  t = await require_task_access(taskId, user, db)
  needle = q.strip().lower()

  res = await db.execute(
    select(User.id, User.display_name)
    .join(ProjectMember, ProjectMember.user_id == User.id)
    .where(ProjectMember.project_id == t.project_id)
    .order_by(User.display_name.asc())
  )
  out: list[MentionCandidateOut] = []
  for uid, display_name in res.all():
    label = display_name or uid[:8]
    if needle and needle not in label.lower():
      continue
    out.append(MentionCandidateOut(id=uid, displayName=display_name, label=label))
    if len(out) >= MENTION_CANDIDATE_LIMIT:
      break
  return MentionCandidatesOut(candidates=out)


def _attachment_out(a: CommentAttachment) -> CommentAttachmentOut:
  return CommentAttachmentOut(
    id=a.id,
    commentId=a.comment_id,
    fileName=a.file_name,
    mimeType=a.mime_type,
    fileSize=a.file_size,
    url=f"/comment-attachments/{a.id}",
    createdAt=a.created_at,
  )


@router.get("/tasks/{task_id}/comments/{comment_id}/attachments", response_model=list[CommentAttachmentOut])
async def list_comment_attachments(
  task_id: str,
  comment_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
) -> list[CommentAttachmentOut]:
  await require_task_access(task_id, user, db)
  await _get_comment_or_404(db, task_id, comment_id)
  res = await db.execute(
    select(CommentAttachment).where(CommentAttachment.comment_id == comment_id).order_by(CommentAttachment.created_at.desc())
  )
  return [_attachment_out(a) for a in res.scalars().all()]


@router.post("/tasks/{task_id}/comments/{comment_id}/attachments", response_model=CommentAttachmentOut)
async def upload_comment_attachment(
  task_id: str,
  comment_id: str,
  file: UploadFile = File(...),
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  store: AttachmentStore = Depends(get_attachment_store),
) -> CommentAttachmentOut:
  await require_task_access(task_id, user, db)
  c = await _get_comment_or_404(db, task_id, comment_id)
  if c.author_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can upload attachments")

  max_bytes = int(settings.comment_attachment_max_bytes)
  data = await file.read(max_bytes + 1)
  if len(data) > max_bytes:
    raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=f"File size exceeds limit ({max_bytes} bytes)")
  mime = file.content_type or "application/octet-stream"
  if mime not in settings.attachment_mime_set():
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unsupported file type: {mime}")

  file_name = file.filename or "file"
  key = attachment_key(task_id, comment_id, file_name)
  await store.put(key, data, content_type=mime)
  a = CommentAttachment(comment_id=comment_id, storage_path=key, file_name=file_name, mime_type=mime, file_size=len(data))
  db.add(a)
  try:
    await db.commit()
  except SQLAlchemyError as exc:
    await db.rollback()
    await store.remove(key)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=public_error(exc, "Failed to save attachment."))
  return _attachment_out(a)


@router.delete("/tasks/{task_id}/comments/{comment_id}/attachments/{attachment_id}")
async def delete_comment_attachment(
  task_id: str,
  comment_id: str,
  attachment_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  store: AttachmentStore = Depends(get_attachment_store),
) -> dict:
  await require_task_access(task_id, user, db)
  c = await _get_comment_or_404(db, task_id, comment_id)
  if c.author_id != user.id:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the author can delete attachments")
  res = await db.execute(
    select(CommentAttachment).where(CommentAttachment.id == attachment_id, CommentAttachment.comment_id == comment_id)
  )
  a = res.scalar_one_or_none()
  if not a:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
  key = a.storage_path
  await db.delete(a)
  await db.commit()
  await store.remove(key)
  return {"ok": True}


@router.get("/comment-attachments/{attachment_id}")
async def download_comment_attachment(
  attachment_id: str,
  user: User = Depends(get_current_user),
  db: AsyncSession = Depends(get_db),
  store: AttachmentStore = Depends(get_attachment_store),
) -> FileResponse:
  res = await db.execute(
    select(CommentAttachment, TaskComment.task_id)
    .join(TaskComment, TaskComment.id == CommentAttachment.comment_id)
    .where(CommentAttachment.id == attachment_id)
  )
  row = res.first()
  if not row:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
  a, task_id = row
  await require_task_access(task_id, user, db)
  return FileResponse(path=store.path_for(a.storage_path), media_type=a.mime_type, filename=a.file_name)
