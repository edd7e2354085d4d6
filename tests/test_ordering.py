from __future__ import annotations

from taskflow.ordering import SORT_STEP, next_sort_order, positions_for


def test_positions_are_gap_spaced_in_given_order() -> None:
  assert positions_for(["t3", "t1", "t2"]) == [("t3", 100), ("t1", 200), ("t2", 300)]


def test_positions_for_empty_column() -> None:
  assert positions_for([]) == []


def test_positions_leave_room_between_neighbours() -> None:
  out = [pos for _, pos in positions_for([f"t{i}" for i in range(10)])]
  assert out[0] == SORT_STEP
  assert out[-1] == 10 * SORT_STEP
  assert all(b - a == SORT_STEP for a, b in zip(out, out[1:]))


def test_next_sort_order_appends_after_max() -> None:
  assert next_sort_order(None) == 100
  assert next_sort_order(0) == 100
  assert next_sort_order(300) == 400
  # positions written by hand between gaps still append cleanly
  assert next_sort_order(250) == 350
