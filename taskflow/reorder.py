from __future__ import annotations

import logging
from typing import Protocol, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow.models import BoardColumn, Task
from taskflow.ordering import positions_for

logger = logging.getLogger(__name__)


class ReorderColumn(Protocol):
  id: str
  taskIds: list[str]


class ReorderError(Exception):
  def __init__(self, message: str) -> None:
    super().__init__(message)
    self.message = message


class ReorderValidationError(ReorderError):
  pass


class ReorderCommitError(ReorderError):
  pass


def flatten_task_ids(columns: Sequence[ReorderColumn]) -> list[str]:
  return [task_id for col in columns for task_id in col.taskIds]


async def validate_reorder(db: AsyncSession, project_id: str, columns: Sequence[ReorderColumn]) -> None:
  all_ids = flatten_task_ids(columns)
  if not all_ids:
    return

  unique_ids = set(all_ids)
  if len(unique_ids) != len(all_ids):
    raise ReorderValidationError("Duplicate task IDs")

  res = await db.execute(
    select(func.count()).select_from(Task).where(Task.project_id == project_id, Task.id.in_(unique_ids))
  )
  if (res.scalar_one() or 0) != len(unique_ids):
    raise ReorderValidationError("Invalid task IDs")

  column_ids = {col.id for col in columns}
  if len(column_ids) != len(columns):
    raise ReorderValidationError("Duplicate column IDs")
  cres = await db.execute(
    select(func.count()).select_from(BoardColumn).where(BoardColumn.project_id == project_id, BoardColumn.id.in_(column_ids))
  )
  if (cres.scalar_one() or 0) != len(column_ids):
    raise ReorderValidationError("Invalid column IDs")


async def commit_reorder(db: AsyncSession, project_id: str, columns: Sequence[ReorderColumn]) -> int:
  """Write every task's column and position inside the caller's transaction.

  Each write is scoped by task id and project id. A failed write rolls back the
  whole batch so the board never keeps a half-applied arrangement. The caller
  commits on success.
  """
  written = 0
  try:
    for col in columns:
      for task_id, sort_order in positions_for(col.taskIds):
        res = await db.execute(
          update(Task)
          .where(Task.id == task_id, Task.project_id == project_id)
          .values(column_id=col.id, sort_order=sort_order)
          .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
          raise ReorderCommitError(f"task {task_id} not updated (rowcount={res.rowcount})")
        written += 1
  except ReorderCommitError:
    await db.rollback()
    raise
  except SQLAlchemyError as exc:
    await db.rollback()
    raise ReorderCommitError(f"write failed after {written} tasks") from exc
  return written
