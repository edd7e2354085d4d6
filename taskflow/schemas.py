from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, BeforeValidator, Field, model_validator


def _check_uuid(value: str) -> str:
  try:
    return str(uuid.UUID(value))
  except ValueError as exc:
    raise ValueError("must be a UUID") from exc


UuidStr = Annotated[str, AfterValidator(_check_uuid)]
TaskPriority = Literal["low", "medium", "high", "critical"]
TaskStatus = Literal["todo", "in_progress", "review", "done"]
MilestoneStatus = Literal["planned", "done"]


def _strip(value: object) -> object:
  return value.strip() if isinstance(value, str) else value


Trimmed = Annotated[str, BeforeValidator(_strip)]


class UserOut(BaseModel):
  id: str
  email: str
  displayName: str


class SignupIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  password: str = Field(min_length=8, max_length=256)
  displayName: Trimmed = Field(min_length=1, max_length=120)


class LoginIn(BaseModel):
  email: str
  password: str


class TeamCreateIn(BaseModel):
  name: Trimmed = Field(min_length=1, max_length=120)


class TeamOut(BaseModel):
  id: str
  name: str
  role: str
  createdAt: datetime


class TeamMemberAddIn(BaseModel):
  email: str
  role: Literal["admin", "member"] = "member"


class TeamMemberRoleIn(BaseModel):
  role: Literal["admin", "member"]


class TeamMemberOut(BaseModel):
  userId: str
  email: str
  displayName: str
  role: str


class InvitationCreateIn(BaseModel):
  email: str = Field(min_length=3, max_length=320)
  role: Literal["admin", "member"] = "member"


class InvitationOut(BaseModel):
  id: str
  teamId: str
  email: str
  role: str
  expiresAt: datetime
  acceptedAt: datetime | None = None
  token: str | None = None


class ProjectCreateIn(BaseModel):
  name: Trimmed = Field(min_length=1, max_length=120)


class ProjectOut(BaseModel):
  id: str
  teamId: str
  name: str
  createdAt: datetime


class ProjectMemberAddIn(BaseModel):
  userId: UuidStr


class ProjectMemberOut(BaseModel):
  userId: str
  displayName: str
  role: str


class ColumnCreateIn(BaseModel):
  name: Trimmed = Field(min_length=1, max_length=80)


class ColumnOut(BaseModel):
  id: str
  projectId: str
  name: str
  sortOrder: int


class TaskCreateIn(BaseModel):
  projectId: UuidStr
  columnId: UuidStr
  title: Trimmed = Field(min_length=1, max_length=200)


class TaskUpdateIn(BaseModel):
  title: Trimmed | None = Field(default=None, min_length=1, max_length=200)
  description: str | None = None
  priority: TaskPriority | None = None
  status: TaskStatus | None = None
  assigneeId: UuidStr | None = None
  milestoneId: UuidStr | None = None


class TaskOut(BaseModel):
  id: str
  projectId: str
  columnId: str
  title: str
  description: str | None
  priority: str
  status: str
  assigneeId: str | None
  milestoneId: str | None
  sortOrder: int
  createdAt: datetime
  updatedAt: datetime


class AssigneeCandidateOut(BaseModel):
  id: str
  displayName: str | None


class MilestoneCandidateOut(BaseModel):
  id: str
  name: str
  status: str
  dueDate: date


class TaskDetailOut(BaseModel):
  task: TaskOut
  assigneeCandidates: list[AssigneeCandidateOut]
  milestoneCandidates: list[MilestoneCandidateOut]


class ReorderColumnIn(BaseModel):
  id: UuidStr
  taskIds: list[UuidStr]


class ReorderIn(BaseModel):
  projectId: UuidStr
  columns: list[ReorderColumnIn] = Field(min_length=1)


class BoardColumnOut(BaseModel):
  id: str
  name: str
  sortOrder: int
  tasks: list[TaskOut]


class BoardOut(BaseModel):
  projectId: str
  columns: list[BoardColumnOut]
  milestoneId: str | None = None
  filtered: bool = False
  dragEnabled: bool = True


class SubtaskCreateIn(BaseModel):
  title: Trimmed = Field(min_length=1, max_length=200)


class SubtaskUpdateIn(BaseModel):
  title: Trimmed | None = Field(default=None, min_length=1, max_length=200)
  isDone: bool | None = None

  @model_validator(mode="after")
  def _has_updates(self) -> SubtaskUpdateIn:
    if self.title is None and self.isDone is None:
      raise ValueError("No updates.")
    return self


class SubtaskOut(BaseModel):
  id: str
  title: str
  isDone: bool
  sortOrder: int


class CommentCreateIn(BaseModel):
  body: Trimmed = Field(min_length=1, max_length=5000)
  parentCommentId: UuidStr | None = None


class CommentUpdateIn(BaseModel):
  body: Trimmed = Field(min_length=1, max_length=5000)


class ReactionSummaryOut(BaseModel):
  emoji: str
  count: int
  reactedByMe: bool


class CommentOut(BaseModel):
  id: str
  taskId: str
  authorId: str
  body: str
  parentCommentId: str | None
  createdAt: datetime
  reactionSummary: list[ReactionSummaryOut] = []
  replies: list[CommentOut] = []


class CommentListOut(BaseModel):
  comments: list[CommentOut]
  currentUserId: str


class CommentAttachmentOut(BaseModel):
  id: str
  commentId: str
  fileName: str
  mimeType: str
  fileSize: int
  url: str
  createdAt: datetime


class MentionCandidateOut(BaseModel):
  id: str
  displayName: str | None
  label: str


class MentionCandidatesOut(BaseModel):
  candidates: list[MentionCandidateOut]


class ReactionToggleIn(BaseModel):
  emoji: Trimmed = Field(min_length=1, max_length=32)


class MilestoneCreateIn(BaseModel):
  name: Trimmed = Field(min_length=1, max_length=200)
  dueDate: date
  status: MilestoneStatus = "planned"


class MilestoneUpdateIn(BaseModel):
  name: Trimmed | None = Field(default=None, min_length=1, max_length=200)
  dueDate: date | None = None
  status: MilestoneStatus | None = None

  @model_validator(mode="after")
  def _has_updates(self) -> MilestoneUpdateIn:
    if self.name is None and self.dueDate is None and self.status is None:
      raise ValueError("No updates.")
    return self


class MilestoneOut(BaseModel):
  id: str
  projectId: str
  name: str
  status: str
  dueDate: date
  sortOrder: int


class WikiPageCreateIn(BaseModel):
  title: Trimmed = Field(min_length=1, max_length=200)
  body: str = ""


class WikiPageUpdateIn(BaseModel):
  title: Trimmed | None = Field(default=None, min_length=1, max_length=200)
  body: str | None = None

  @model_validator(mode="after")
  def _has_updates(self) -> WikiPageUpdateIn:
    if self.title is None and self.body is None:
      raise ValueError("No updates.")
    return self


class WikiPageOut(BaseModel):
  id: str
  projectId: str
  title: str
  body: str
  createdAt: datetime
  updatedAt: datetime


class WikiRevisionOut(BaseModel):
  id: str
  pageId: str
  body: str
  editedBy: str
  createdAt: datetime


class NotificationOut(BaseModel):
  id: str
  type: str
  body: str | None
  isRead: bool
  readAt: datetime | None
  createdAt: datetime
  projectId: str | None
  taskId: str | None
  commentId: str | None
  metadata: dict[str, Any]


class NotificationUpdateIn(BaseModel):
  isRead: bool


class AuditOut(BaseModel):
  id: str
  teamId: str
  projectId: str | None
  actorUserId: str | None
  action: str
  targetType: str
  targetId: str | None
  metadata: dict[str, Any]
  createdAt: datetime
