from __future__ import annotations

import asyncio

import pytest

from taskflow.client.api import ReorderResult
from taskflow.client.board import BoardColumn, BoardPhase, BoardState, TaskCard, array_move


class FakePersist:
  def __init__(self, result: ReorderResult | None = None, *, hold: bool = False) -> None:
    self.result = result or ReorderResult(ok=True)
    self.calls: list[tuple[str, list[dict]]] = []
    self.release = asyncio.Event()
    if not hold:
      self.release.set()

  async def __call__(self, project_id: str, columns: list[dict]) -> ReorderResult:
    self.calls.append((project_id, columns))
    await self.release.wait()
    return self.result


def _ids(state: BoardState) -> dict[str, list[str]]:
  return {c.id: [t.id for t in c.tasks] for c in state.columns}


def _board(persist, alerts: list[str], **kwargs) -> BoardState:
  columns = [
    BoardColumn(id="c1", name="To Do", sort_order=100, tasks=[TaskCard("t1", "One"), TaskCard("t2", "Two"), TaskCard("t3", "Three")]),
    BoardColumn(id="c2", name="Done", sort_order=200, tasks=[TaskCard("t4", "Four", milestone_id="m1")]),
  ]
  return BoardState("p1", columns, persist, alerts.append, **kwargs)


def test_array_move() -> None:
  assert array_move(["a", "b", "c"], 0, 2) == ["b", "c", "a"]
  assert array_move(["a", "b", "c"], 2, 0) == ["c", "a", "b"]
  assert array_move(["a", "b"], 1, 1) == ["a", "b"]


@pytest.mark.anyio
async def test_same_column_move_is_optimistic_and_persists_full_board() -> None:
  persist = FakePersist()
  alerts: list[str] = []
  state = _board(persist, alerts)

  state.drag_start("t3")
  assert state.drag_end("t1") is True
  # applied before persistence finishes
  assert _ids(state)["c1"] == ["t3", "t1", "t2"]

  await state.wait_idle()
  assert persist.calls == [("p1", [{"id": "c1", "taskIds": ["t3", "t1", "t2"]}, {"id": "c2", "taskIds": ["t4"]}])]
  assert alerts == []
  assert state.phase == BoardPhase.IDLE


@pytest.mark.anyio
async def test_cross_column_move_inserts_at_target_index() -> None:
  persist = FakePersist()
  state = _board(persist, [])

  state.drag_start("t1")
  assert state.drag_end("t4") is True
  await state.wait_idle()

  assert _ids(state) == {"c1": ["t2", "t3"], "c2": ["t1", "t4"]}
  assert persist.calls[0][1] == [{"id": "c1", "taskIds": ["t2", "t3"]}, {"id": "c2", "taskIds": ["t1", "t4"]}]


@pytest.mark.anyio
async def test_noop_drops_do_not_persist() -> None:
  persist = FakePersist()
  state = _board(persist, [])

  for over in (None, "t2", "missing"):
    state.drag_start("t2")
    assert state.drag_end(over) is False
  state.drag_start("ghost")
  assert state.drag_end("t1") is False
  # drag_end without drag_start
  assert state.drag_end("t1") is False

  await state.wait_idle()
  assert persist.calls == []
  assert _ids(state)["c1"] == ["t1", "t2", "t3"]


@pytest.mark.anyio
async def test_phases_and_dragging_label() -> None:
  persist = FakePersist(hold=True)
  state = _board(persist, [])
  assert state.phase == BoardPhase.IDLE
  assert state.dragging_label is None

  state.drag_start("t2")
  assert state.phase == BoardPhase.DRAGGING
  assert state.dragging_label == "Dragging: t2"

  state.drag_end("t1")
  assert state.dragging_label is None
  await asyncio.sleep(0)
  assert state.phase == BoardPhase.PERSISTING

  persist.release.set()
  await state.wait_idle()
  assert state.phase == BoardPhase.IDLE


@pytest.mark.anyio
async def test_second_gesture_is_not_blocked_by_pending_persist() -> None:
  persist = FakePersist(hold=True)
  state = _board(persist, [])

  state.drag_start("t1")
  state.drag_end("t3")
  state.drag_start("t4")
  assert state.drag_end("t2") is True
  assert _ids(state) == {"c1": ["t4", "t2", "t3", "t1"], "c2": []}

  persist.release.set()
  await state.wait_idle()
  assert len(persist.calls) == 2
  assert _ids(state) == {"c1": ["t4", "t2", "t3", "t1"], "c2": []}


@pytest.mark.anyio
async def test_failure_alerts_server_message_without_reverting() -> None:
  persist = FakePersist(ReorderResult(ok=False, error="Invalid task IDs", status_code=400))
  alerts: list[str] = []
  state = _board(persist, alerts)

  state.drag_start("t3")
  state.drag_end("t1")
  await state.wait_idle()

  assert alerts == ["Invalid task IDs"]
  assert _ids(state)["c1"] == ["t3", "t1", "t2"]


@pytest.mark.anyio
async def test_failure_without_message_uses_fallback() -> None:
  alerts: list[str] = []
  state = _board(FakePersist(ReorderResult(ok=False)), alerts)

  state.drag_start("t3")
  state.drag_end("t1")
  await state.wait_idle()
  assert alerts == ["Failed to reorder tasks."]


@pytest.mark.anyio
async def test_persist_exception_is_reported_as_failure() -> None:
  async def boom(project_id: str, columns: list[dict]) -> ReorderResult:
    raise RuntimeError("connection reset")

  alerts: list[str] = []
  state = _board(boom, alerts)
  state.drag_start("t3")
  state.drag_end("t1")
  await state.wait_idle()
  assert alerts == ["Failed to reorder tasks."]


@pytest.mark.anyio
async def test_rollback_on_failure_restores_pre_drag_snapshot() -> None:
  alerts: list[str] = []
  state = _board(FakePersist(ReorderResult(ok=False, error="Forbidden")), alerts, rollback_on_failure=True)

  state.drag_start("t1")
  state.drag_end("t4")
  await state.wait_idle()
  assert alerts == ["Forbidden"]
  assert _ids(state) == {"c1": ["t1", "t2", "t3"], "c2": ["t4"]}


@pytest.mark.anyio
async def test_milestone_filter_disables_drag() -> None:
  persist = FakePersist()
  state = _board(persist, [], milestone_filter="m1")
  assert state.drag_enabled is False

  state.drag_start("t4")
  assert state.active_task_id is None
  assert state.phase == BoardPhase.IDLE
  assert state.drag_end("t1") is False
  await state.wait_idle()
  assert persist.calls == []

  visible = {c.id: [t.id for t in c.tasks] for c in state.visible_columns()}
  assert visible == {"c1": [], "c2": ["t4"]}
  # the underlying board is untouched by filtering
  assert _ids(state)["c1"] == ["t1", "t2", "t3"]


def test_add_task_appends_to_column() -> None:
  state = _board(FakePersist(), [])
  state.add_task("c2", TaskCard("t5", "Five"))
  assert _ids(state)["c2"] == ["t4", "t5"]
  with pytest.raises(KeyError):
    state.add_task("nope", TaskCard("t6", "Six"))


def test_from_snapshot_reads_board_response() -> None:
  snapshot = {
    "projectId": "p1",
    "milestoneId": None,
    "filtered": False,
    "dragEnabled": True,
    "columns": [
      {"id": "c1", "name": "To Do", "sortOrder": 100, "tasks": [{"id": "t1", "title": "One", "priority": "high", "milestoneId": None}]},
      {"id": "c2", "name": "Done", "sortOrder": 200, "tasks": []},
    ],
  }
  state = BoardState.from_snapshot(snapshot, FakePersist(), print)
  assert state.project_id == "p1"
  assert state.drag_enabled is True
  assert [c.sort_order for c in state.columns] == [100, 200]
  assert state.columns[0].tasks[0].priority == "high"

  filtered = BoardState.from_snapshot({**snapshot, "milestoneId": "m1", "filtered": True, "dragEnabled": False}, FakePersist(), print)
  assert filtered.drag_enabled is False
