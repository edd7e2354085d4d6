from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

SORT_STEP = 100


def positions_for(item_ids: Sequence[str]) -> list[tuple[str, int]]:
  return [(item_id, (idx + 1) * SORT_STEP) for idx, item_id in enumerate(item_ids)]


def next_sort_order(max_existing: int | None) -> int:
  return (max_existing or 0) + SORT_STEP


async def next_sort_order_in(db: AsyncSession, column: Any, *where: Any) -> int:
  res = await db.execute(select(func.max(column)).where(*where))
  return next_sort_order(res.scalar_one_or_none())
