"""
Dense position bookkeeping for sibling groups (statuses in a board, tasks in a status).

Every function is pure: it takes the current `(id, position)` pairs of a group and
returns the writes needed as `{id: new_position}`. Ids absent from the result keep
their position. Callers are expected to pass a group that is already dense
(`0..n-1`); `normalize` turns any legacy ordering into one.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence


@dataclass(frozen=True)
class Sibling:
  id: str
  position: int


@dataclass
class CrossGroupMove:
  source: dict[str, int] = field(default_factory=dict)
  destination: dict[str, int] = field(default_factory=dict)
  position: int = 0


def siblings_of(rows: Iterable[object]) -> list[Sibling]:
  return [Sibling(id=r.id, position=r.position) for r in rows]


def is_dense(positions: Iterable[int]) -> bool:
  values = sorted(positions)
  return values == list(range(len(values)))


def normalize(siblings: Sequence[Sibling]) -> dict[str, int]:
  """Renumber a group to 0..n-1, keeping the current order (ties broken by id)."""
  ordered = sorted(siblings, key=lambda s: (s.position, s.id))
  return {s.id: idx for idx, s in enumerate(ordered) if s.position != idx}


def append(group_size: int) -> int:
  return group_size


def _clamp(value: int, low: int, high: int) -> int:
  return max(low, min(value, high))


def move_within(siblings: Sequence[Sibling], moving_id: str, requested_position: int) -> dict[str, int]:
  current = next((s for s in siblings if s.id == moving_id), None)
  if current is None:
    raise KeyError(moving_id)
  old = current.position
  new = _clamp(requested_position, 0, len(siblings) - 1)
  if new == old:
    return {}

  writes: dict[str, int] = {}
  if new < old:
    for s in siblings:
      if s.id != moving_id and new <= s.position < old:
        writes[s.id] = s.position + 1
  else:
    for s in siblings:
      if s.id != moving_id and old < s.position <= new:
        writes[s.id] = s.position - 1
  writes[moving_id] = new
  return writes


def remove_and_compact(siblings: Sequence[Sibling], removed_position: int) -> dict[str, int]:
  return {s.id: s.position - 1 for s in siblings if s.position > removed_position}


def move_across_groups(
  source_siblings: Sequence[Sibling],
  moving: Sibling,
  dest_siblings: Sequence[Sibling],
  requested_position: int | None = None,
) -> CrossGroupMove:
  """
  Take `moving` out of its source group and insert it into the destination group.

  `requested_position=None` appends. The moving item's own new position is returned
  in `position`; it does not appear in either write map.
  """
  remaining = [s for s in source_siblings if s.id != moving.id]
  incoming = [s for s in dest_siblings if s.id != moving.id]
  target = len(incoming) if requested_position is None else _clamp(requested_position, 0, len(incoming))
  return CrossGroupMove(
    source=remove_and_compact(remaining, moving.position),
    destination={s.id: s.position + 1 for s in incoming if s.position >= target},
    position=target,
  )


def apply(siblings: Sequence[Sibling], writes: dict[str, int]) -> list[Sibling]:
  """Return the group as it looks after `writes`, ordered by position."""
  out = [Sibling(id=s.id, position=writes.get(s.id, s.position)) for s in siblings]
  return sorted(out, key=lambda s: s.position)
