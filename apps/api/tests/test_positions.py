from __future__ import annotations

import random

import pytest

from taskz import positions
from taskz.positions import Sibling


def _group(*ids: str) -> list[Sibling]:
  return [Sibling(id=i, position=p) for p, i in enumerate(ids)]


def _order(group: list[Sibling], writes: dict[str, int]) -> list[str]:
  return [s.id for s in positions.apply(group, writes)]


def test_move_status_from_end_to_front() -> None:
  group = _group("todo", "doing", "done")
  writes = positions.move_within(group, "done", 0)
  assert writes == {"done": 0, "todo": 1, "doing": 2}
  assert _order(group, writes) == ["done", "todo", "doing"]


def test_move_down_shifts_the_items_in_between_up() -> None:
  group = _group("a", "b", "c", "d")
  writes = positions.move_within(group, "a", 2)
  assert writes == {"b": 0, "c": 1, "a": 2}
  assert _order(group, writes) == ["b", "c", "a", "d"]


def test_move_to_same_position_writes_nothing() -> None:
  group = _group("a", "b", "c")
  assert positions.move_within(group, "b", 1) == {}


def test_move_past_the_end_is_clamped() -> None:
  group = _group("a", "b", "c")
  writes = positions.move_within(group, "a", 99)
  assert _order(group, writes) == ["b", "c", "a"]
  assert writes["a"] == 2


def test_move_unknown_id_raises_key_error() -> None:
  with pytest.raises(KeyError):
    positions.move_within(_group("a"), "zzz", 0)


def test_delete_compacts_and_keeps_relative_order() -> None:
  group = _group("t0", "t1", "t2", "t3")
  survivors = [s for s in group if s.id != "t1"]
  writes = positions.remove_and_compact(survivors, 1)
  assert writes == {"t2": 1, "t3": 2}
  after = positions.apply(survivors, writes)
  assert [(s.id, s.position) for s in after] == [("t0", 0), ("t2", 1), ("t3", 2)]


def test_cross_group_move_appends_and_compacts_source() -> None:
  source = _group("a0", "a1", "a2", "a3")
  dest = _group("b0", "b1")
  move = positions.move_across_groups(source, source[2], dest)
  assert move.position == 2
  assert move.destination == {}
  assert move.source == {"a3": 2}
  remaining = [s for s in source if s.id != "a2"]
  assert sorted(s.position for s in positions.apply(remaining, move.source)) == [0, 1, 2]


def test_cross_group_move_into_empty_group_lands_at_zero() -> None:
  source = _group("a0")
  move = positions.move_across_groups(source, source[0], [])
  assert move.position == 0
  assert move.source == {}


def test_cross_group_move_with_position_shifts_destination() -> None:
  source = _group("a0", "a1")
  dest = _group("b0", "b1", "b2")
  move = positions.move_across_groups(source, source[0], dest, requested_position=1)
  assert move.position == 1
  assert move.destination == {"b1": 2, "b2": 3}
  assert move.source == {"a1": 0}


def test_append_is_group_size() -> None:
  assert positions.append(0) == 0
  assert positions.append(5) == 5


def test_normalize_repairs_gaps_and_duplicates() -> None:
  group = [Sibling("x", 4), Sibling("y", 4), Sibling("z", 0), Sibling("w", 9)]
  writes = positions.normalize(group)
  after = positions.apply(group, writes)
  assert [s.id for s in after] == ["z", "x", "y", "w"]
  assert positions.is_dense(s.position for s in after)


def test_normalize_of_dense_group_is_empty() -> None:
  assert positions.normalize(_group("a", "b", "c")) == {}


def test_move_then_move_back_restores_order() -> None:
  group = _group("a", "b", "c", "d", "e")
  moved = positions.apply(group, positions.move_within(group, "b", 3))
  back = positions.apply(moved, positions.move_within(moved, "b", 1))
  assert [s.id for s in back] == ["a", "b", "c", "d", "e"]


@pytest.mark.parametrize("seed", range(5))
def test_random_operations_keep_groups_dense(seed: int) -> None:
  rng = random.Random(seed)
  groups: dict[str, list[Sibling]] = {"A": [], "B": [], "C": []}
  counter = 0
  for _ in range(300):
    op = rng.choice(["add", "move", "cross", "delete"])
    name = rng.choice(list(groups))
    group = groups[name]
    if op == "add" or not group:
      counter += 1
      group.append(Sibling(id=f"i{counter}", position=positions.append(len(group))))
    elif op == "move":
      moving = rng.choice(group)
      before = [s.id for s in positions.apply(group, {}) if s.id != moving.id]
      groups[name] = positions.apply(group, positions.move_within(group, moving.id, rng.randint(0, len(group) + 2)))
      after = [s.id for s in groups[name] if s.id != moving.id]
      assert before == after
    elif op == "cross":
      other = rng.choice([g for g in groups if g != name])
      moving = rng.choice(group)
      move = positions.move_across_groups(group, moving, groups[other])
      remaining = [s for s in group if s.id != moving.id]
      groups[name] = positions.apply(remaining, move.source)
      groups[other] = positions.apply(groups[other], move.destination) + [Sibling(moving.id, move.position)]
    else:
      victim = rng.choice(group)
      remaining = [s for s in group if s.id != victim.id]
      groups[name] = positions.apply(remaining, positions.remove_and_compact(remaining, victim.position))

    for g in groups.values():
      assert positions.is_dense(s.position for s in g)
