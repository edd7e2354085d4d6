from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Sequence, TypeVar

from taskflow.client.api import REORDER_FALLBACK_ERROR, ReorderResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

PersistFn = Callable[[str, list[dict[str, Any]]], Awaitable[ReorderResult]]
AlertFn = Callable[[str], Any]


class BoardPhase(str, enum.Enum):
  IDLE = "idle"
  DRAGGING = "dragging"
  PERSISTING = "persisting"


@dataclass
class TaskCard:
  id: str
  title: str
  description: str | None = None
  priority: str = "medium"
  status: str = "todo"
  assignee_id: str | None = None
  milestone_id: str | None = None

  @classmethod
  def from_api(cls, data: dict[str, Any]) -> TaskCard:
    return cls(
      id=data["id"],
      title=data.get("title", ""),
      description=data.get("description"),
      priority=data.get("priority") or "medium",
      status=data.get("status") or "todo",
      assignee_id=data.get("assigneeId"),
      milestone_id=data.get("milestoneId"),
    )


@dataclass
class BoardColumn:
  id: str
  name: str
  sort_order: int = 0
  tasks: list[TaskCard] = field(default_factory=list)


def array_move(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
  out = list(items)
  out.insert(to_index, out.pop(from_index))
  return out


def _copy_columns(columns: Sequence[BoardColumn]) -> list[BoardColumn]:
  return [replace(c, tasks=list(c.tasks)) for c in columns]


class BoardState:
  """Applies drops locally and persists the full arrangement in the background.

  Persistence calls are numbered; with ``rollback_on_failure`` only a failure
  of the newest call restores the board.
  """

  def __init__(
    self,
    project_id: str,
    columns: Sequence[BoardColumn],
    persist: PersistFn,
    alert: AlertFn,
    milestone_filter: str | None = None,
    *,
    rollback_on_failure: bool = False,
  ) -> None:
    self.project_id = project_id
    self.columns: list[BoardColumn] = _copy_columns(columns)
    self.milestone_filter = milestone_filter
    self.rollback_on_failure = rollback_on_failure
    self.active_task_id: str | None = None
    self._persist = persist
    self._alert = alert
    self._pending: set[asyncio.Task[None]] = set()
    self._seq = 0

  @classmethod
  def from_snapshot(
    cls,
    snapshot: dict[str, Any],
    persist: PersistFn,
    alert: AlertFn,
    *,
    rollback_on_failure: bool = False,
  ) -> BoardState:
    """Build state from a ``GET /projects/{id}/board`` response body."""
    columns = [
      BoardColumn(
        id=c["id"],
        name=c.get("name", ""),
        sort_order=int(c.get("sortOrder") or 0),
        tasks=[TaskCard.from_api(t) for t in c.get("tasks") or []],
      )
      for c in snapshot.get("columns") or []
    ]
    return cls(
      snapshot["projectId"],
      columns,
      persist,
      alert,
      snapshot.get("milestoneId") if snapshot.get("filtered") else None,
      rollback_on_failure=rollback_on_failure,
    )

  @property
  def drag_enabled(self) -> bool:
    return self.milestone_filter is None

  @property
  def phase(self) -> BoardPhase:
    if self.active_task_id is not None:
      return BoardPhase.DRAGGING
    if any(not t.done() for t in self._pending):
      return BoardPhase.PERSISTING
    return BoardPhase.IDLE

  @property
  def dragging_label(self) -> str | None:
    if self.active_task_id is None:
      return None
    return f"Dragging: {self.active_task_id}"

  def visible_columns(self) -> list[BoardColumn]:
    if self.milestone_filter is None:
      return self.columns
    return [replace(c, tasks=[t for t in c.tasks if t.milestone_id == self.milestone_filter]) for c in self.columns]

  def payload(self) -> list[dict[str, Any]]:
    return [{"id": c.id, "taskIds": [t.id for t in c.tasks]} for c in self.columns]

  def _locate(self, task_id: str) -> tuple[int, int] | None:
    for ci, col in enumerate(self.columns):
      for ti, task in enumerate(col.tasks):
        if task.id == task_id:
          return ci, ti
    return None

  def add_task(self, column_id: str, card: TaskCard) -> None:
    for col in self.columns:
      if col.id == column_id:
        col.tasks.append(card)
        return
    raise KeyError(column_id)

  def drag_start(self, task_id: str) -> None:
    if not self.drag_enabled:
      return
    self.active_task_id = task_id

  def drag_end(self, over_id: str | None) -> bool:
    """Finish the active gesture. Returns True when the board changed.

    Must be called from a running event loop; persistence is scheduled on it.
    """
    active_id = self.active_task_id
    self.active_task_id = None
    if not self.drag_enabled or active_id is None:
      return False
    if over_id is None or over_id == active_id:
      return False

    source = self._locate(active_id)
    target = self._locate(over_id)
    if source is None or target is None:
      return False

    (src_col, src_idx), (dst_col, dst_idx) = source, target
    before = _copy_columns(self.columns)
    after = _copy_columns(self.columns)
    if src_col == dst_col:
      after[src_col].tasks = array_move(after[src_col].tasks, src_idx, dst_idx)
    else:
      moved = after[src_col].tasks.pop(src_idx)
      after[dst_col].tasks.insert(dst_idx, moved)

    self.columns = after
    self._schedule_persist(before)
    return True

  def _schedule_persist(self, before: list[BoardColumn]) -> None:
    self._seq += 1
    task = asyncio.get_running_loop().create_task(self._run_persist(self._seq, before, self.payload()))
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)

  async def _run_persist(self, seq: int, before: list[BoardColumn], columns: list[dict[str, Any]]) -> None:
    try:
      result = await self._persist(self.project_id, columns)
    except Exception:
      logger.exception("board persistence failed project=%s seq=%s", self.project_id, seq)
      result = ReorderResult(ok=False)
    if result.ok:
      return

    if self.rollback_on_failure and seq == self._seq:
      self.columns = before
    out = self._alert(result.error or REORDER_FALLBACK_ERROR)
    if inspect.isawaitable(out):
      await out

  async def wait_idle(self) -> None:
    while True:
      pending = [t for t in self._pending if not t.done()]
      if not pending:
        return
      await asyncio.gather(*pending, return_exceptions=True)
