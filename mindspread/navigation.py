"""Directional nearest-neighbour search over visible nodes."""

import math
from enum import Enum
from typing import Mapping, Optional

from mindspread.model import Node
from mindspread.visibility import depth, visible_nodes

OFF_AXIS_WEIGHT = 2.0


class Direction(Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"

    @property
    def is_horizontal(self) -> bool:
        return self in (Direction.LEFT, Direction.RIGHT)

    @classmethod
    def parse(cls, value) -> "Direction":
        if isinstance(value, cls):
            return value
        aliases = {"up": "top", "down": "bottom"}
        text = str(value).lower()
        return cls(aliases.get(text, text))


def _in_direction(direction: Direction, dx: float, dy: float) -> bool:
    if direction is Direction.RIGHT:
        return dx > 0
    if direction is Direction.LEFT:
        return dx < 0
    if direction is Direction.BOTTOM:
        return dy > 0
    return dy < 0


def score(direction: Direction, dx: float, dy: float) -> float:
    """Euclidean distance plus a penalty for drifting off the travel axis."""
    off_axis = abs(dy) if direction.is_horizontal else abs(dx)
    return math.hypot(dx, dy) + OFF_AXIS_WEIGHT * off_axis


def find_neighbor(nodes: Mapping[str, Node], current_id: str, direction,
                  lock_level: Optional[int] = None) -> Optional[str]:
    """Id of the best visible candidate in ``direction`` from ``current_id``.

    When ``lock_level`` is set only nodes at exactly that depth qualify.
    Returns None when the current node is unknown or nothing qualifies.
    """
    current = nodes.get(current_id)
    if current is None:
        return None
    direction = Direction.parse(direction)

    best_id = None
    best_score = math.inf
    for candidate in visible_nodes(nodes):
        if candidate.id == current_id:
            continue
        dx = candidate.x - current.x
        dy = candidate.y - current.y
        if not _in_direction(direction, dx, dy):
            continue
        if lock_level is not None and depth(nodes, candidate.id) != lock_level:
            continue
        candidate_score = score(direction, dx, dy)
        if candidate_score < best_score:
            best_id, best_score = candidate.id, candidate_score
    return best_id
