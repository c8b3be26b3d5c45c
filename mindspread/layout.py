"""Auto-spread radial layout.

Siblings fan out around their parent on an ellipse. Each child receives an
angular slice of the parent's arc proportional to the size of its subtree,
and children keep the angular order they currently have around the parent,
so re-spreading after small edits does not scramble the map. Overlaps are
resolved by growing the ellipse until every new child clears the nodes that
are already placed and its siblings.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from mindspread.model import Node

logger = logging.getLogger(__name__)

FULL_CIRCLE = 2 * math.pi
ROOT_JITTER = math.radians(15)
VERTICAL_SIN = math.sin(math.radians(45))

# Minimum centre distances
PLACED_CLEARANCE = 110.0
PLACED_CLEARANCE_VERTICAL = 180.0
SIBLING_CLEARANCE = 110.0
SIBLING_CLEARANCE_MIXED = 160.0
SIBLING_CLEARANCE_VERTICAL = 200.0

RADIUS_FACTOR_MIN = 0.2
RADIUS_FACTOR_SPAN = 1.0


@dataclass
class SpreadParams:
    base_radius: float = 250.0
    min_arc_length: float = 130.0
    iterations: int = 15
    growth: float = 1.25

    @classmethod
    def from_settings(cls, settings) -> "SpreadParams":
        return cls(
            base_radius=settings.base_radius,
            min_arc_length=settings.min_arc_length,
            iterations=settings.spread_iterations,
            growth=settings.radius_growth,
        )


def is_vertical(angle: float) -> bool:
    """True when the angle lies within 45 degrees of straight up or down."""
    return abs(math.sin(angle)) > VERTICAL_SIN


def sibling_clearance(a_vertical: bool, b_vertical: bool) -> float:
    if a_vertical and b_vertical:
        return SIBLING_CLEARANCE_VERTICAL
    if a_vertical or b_vertical:
        return SIBLING_CLEARANCE_MIXED
    return SIBLING_CLEARANCE


def placed_clearance(vertical: bool) -> float:
    return PLACED_CLEARANCE_VERTICAL if vertical else PLACED_CLEARANCE


@dataclass
class Arena:
    """Flat, index-addressed view of a node tree."""
    ids: List[str]
    index: Dict[str, int]
    parent: List[int]
    children: List[List[int]]
    width: List[float]
    height: List[float]
    collapsed: List[bool]
    old_cx: List[float]
    old_cy: List[float]
    cx: List[float] = field(default_factory=list)
    cy: List[float] = field(default_factory=list)

    @classmethod
    def build(cls, nodes: Iterable[Node]) -> "Arena":
        nodes = list(nodes)
        ids = [n.id for n in nodes]
        index = {node_id: i for i, node_id in enumerate(ids)}
        parent = [index.get(n.parent_id, -1) if n.parent_id is not None else -1 for n in nodes]
        children: List[List[int]] = [[] for _ in nodes]
        for i, p in enumerate(parent):
            if p >= 0:
                children[p].append(i)
        old_cx = [n.x + n.w / 2 for n in nodes]
        old_cy = [n.y + n.h / 2 for n in nodes]
        return cls(
            ids=ids,
            index=index,
            parent=parent,
            children=children,
            width=[n.w for n in nodes],
            height=[n.h for n in nodes],
            collapsed=[bool(n.is_collapsed) for n in nodes],
            old_cx=old_cx,
            old_cy=old_cy,
            cx=list(old_cx),
            cy=list(old_cy),
        )

    @property
    def root(self) -> int:
        for i, p in enumerate(self.parent):
            if p < 0:
                return i
        return -1

    def descendant_counts(self) -> List[int]:
        """Visible descendants per node, summed children-first."""
        counts = [0] * len(self.ids)
        order: List[int] = []
        stack = [i for i, p in enumerate(self.parent) if p < 0]
        while stack:
            i = stack.pop()
            order.append(i)
            stack.extend(self.children[i])
        for i in reversed(order):
            if not self.collapsed[i]:
                counts[i] = sum(counts[c] + 1 for c in self.children[i])
        return counts

    def shift_subtree(self, i: int, dx: float, dy: float):
        """Translate every descendant of ``i`` by (dx, dy)."""
        stack = list(self.children[i])
        while stack:
            j = stack.pop()
            self.cx[j] += dx
            self.cy[j] += dy
            stack.extend(self.children[j])

    def top_left(self) -> Dict[str, Tuple[float, float]]:
        return {
            node_id: (self.cx[i] - self.width[i] / 2, self.cy[i] - self.height[i] / 2)
            for i, node_id in enumerate(self.ids)
        }


class AutoSpread:
    """One auto-spread run over an arena."""

    def __init__(self, arena: Arena, rng: random.Random, params: Optional[SpreadParams] = None):
        self.arena = arena
        self.rng = rng
        self.params = params or SpreadParams()
        self.counts = arena.descendant_counts()
        self._placed: List[int] = []
        self.unresolved = 0
        # Parametric angle each child was placed at
        self.angles: Dict[str, float] = {}

    def run(self, center: Tuple[float, float]) -> Dict[str, Tuple[float, float]]:
        arena = self.arena
        root = arena.root
        if root < 0:
            return {}

        arena.cx[root], arena.cy[root] = center
        if arena.collapsed[root]:
            self._move_hidden(root)
        self._placed.append(root)
        # Depth-first over (parent, slice start, slice span, depth)
        pending = [] if arena.collapsed[root] else [(root, -math.pi, FULL_CIRCLE, 1)]
        while pending:
            parent, start, span, depth = pending.pop()
            pending.extend(reversed(self.position_children(parent, start, span, depth)))

        if self.unresolved:
            logger.debug(f"Auto-spread left {self.unresolved} sibling group(s) overlapping")
        return arena.top_left()

    def _move_hidden(self, i: int):
        """Carry a collapsed node's hidden subtree along with it."""
        arena = self.arena
        dx = arena.cx[i] - arena.old_cx[i]
        dy = arena.cy[i] - arena.old_cy[i]
        if dx or dy:
            arena.shift_subtree(i, dx, dy)

    def _current_angle(self, parent: int, child: int, start: float) -> float:
        arena = self.arena
        angle = math.atan2(arena.old_cy[child] - arena.old_cy[parent],
                           arena.old_cx[child] - arena.old_cx[parent])
        return (angle - start) % FULL_CIRCLE

    def _radius(self, n: int, span: float, depth: int) -> float:
        params = self.params
        if depth > 1:
            base = params.base_radius * 0.5 ** (depth - 1)
        else:
            base = params.base_radius
        arc = n * params.min_arc_length / span if span > 0 else 0.0
        return max(base, arc)

    def _random_factor(self) -> float:
        return RADIUS_FACTOR_MIN + self.rng.random() * RADIUS_FACTOR_SPAN

    def position_children(self, parent: int, start: float, span: float,
                          depth: int) -> List[Tuple[int, float, float, int]]:
        """Place one sibling group; returns the expanded children still to lay out."""
        arena = self.arena
        kids = sorted(arena.children[parent], key=lambda c: self._current_angle(parent, c, start))
        if not kids:
            return []

        radius = self._radius(len(kids), span, depth)
        radius_x = radius * self._random_factor()
        radius_y = radius * self._random_factor()

        total = sum(self.counts[k] + 1 for k in kids)
        slices: List[Tuple[float, float]] = []
        angles: List[float] = []
        cursor = start
        for k in kids:
            share = span * (self.counts[k] + 1) / total
            angle = cursor + share / 2
            if depth == 1:
                angle += self.rng.uniform(-ROOT_JITTER, ROOT_JITTER)
            slices.append((cursor, share))
            angles.append(angle)
            cursor += share

        vertical = [is_vertical(a) for a in angles]
        pcx, pcy = arena.cx[parent], arena.cy[parent]
        positions: List[Tuple[float, float]] = []
        for _ in range(self.params.iterations):
            positions = [(pcx + radius_x * math.cos(a), pcy + radius_y * math.sin(a))
                         for a in angles]
            if not self._collides(parent, positions, vertical):
                break
            radius_x *= self.params.growth
            radius_y *= self.params.growth
        else:
            self.unresolved += 1

        for k, (x, y), a in zip(kids, positions, angles):
            arena.cx[k], arena.cy[k] = x, y
            self.angles[arena.ids[k]] = a
            if arena.collapsed[k]:
                self._move_hidden(k)
        self._placed.extend(kids)

        return [(k, slice_start, share, depth + 1)
                for k, (slice_start, share) in zip(kids, slices)
                if not arena.collapsed[k]]

    def _collides(self, parent: int, positions: List[Tuple[float, float]],
                  vertical: List[bool]) -> bool:
        arena = self.arena
        for i, (x, y) in enumerate(positions):
            limit = placed_clearance(vertical[i])
            for j in self._placed:
                if j == parent:
                    continue
                if math.hypot(x - arena.cx[j], y - arena.cy[j]) < limit:
                    return True
            for k in range(i + 1, len(positions)):
                ox, oy = positions[k]
                if math.hypot(x - ox, y - oy) < sibling_clearance(vertical[i], vertical[k]):
                    return True
        return False


def auto_spread(nodes: Iterable[Node], center: Tuple[float, float],
                rng: Optional[random.Random] = None,
                params: Optional[SpreadParams] = None) -> Dict[str, Tuple[float, float]]:
    """Compute new top-left positions for every node.

    The root's centre is pinned at ``center``. Nodes are not modified.
    """
    arena = Arena.build(nodes)
    return AutoSpread(arena, rng or random.Random(), params).run(center)
