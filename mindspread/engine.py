"""Mind-map state engine: node store, history, selection and folding."""

import logging
import math
import random
import uuid
from typing import Callable, Dict, List, Optional, Set, Tuple

from mindspread.config import EngineSettings
from mindspread.errors import FormatError, StorageError
from mindspread.layout import SpreadParams, auto_spread
from mindspread.model import (
    DEFAULT_HEIGHT, DEFAULT_WIDTH, Node, NodeStyle, check_tree, clone_nodes,
    nodes_equal,
)
from mindspread.navigation import Direction, find_neighbor
from mindspread.selection import Selection
from mindspread.storage import (
    KeyValueStore, MemoryStore, clear_history, load_nodes, save_history,
    save_nodes,
)
from mindspread.undo import ActionType, HistoryEntry, UndoManager
from mindspread import visibility

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]
ViewportProvider = Callable[[], Tuple[float, float]]

# Root placement offset from the viewport centre
ROOT_OFFSET_X = 75
ROOT_OFFSET_Y = 25


class MindMapEngine:
    """Owns the node collection and every operation that changes it.

    Collaborators read through the query methods (which hand out copies)
    and change state only through the mutation methods. Each historied
    mutation snapshots the collection, applies the change, records a
    history entry, persists and notifies subscribers.
    """

    def __init__(self, store: Optional[KeyValueStore] = None,
                 viewport: Optional[ViewportProvider] = None,
                 settings: Optional[EngineSettings] = None,
                 rng: Optional[random.Random] = None,
                 create_root: bool = True):
        self.settings = settings or EngineSettings()
        self.store = store if store is not None else MemoryStore()
        self._viewport = viewport
        self.rng = rng or random.Random(self.settings.random_seed)

        self._nodes: Dict[str, Node] = {}
        self._issued_ids: Set[str] = set()
        self.selection = Selection()
        self.history = UndoManager(max_undo=self.settings.history_limit,
                                   max_redo=self.settings.history_limit)
        self.collapse_level: Optional[int] = None
        self.lock_level: Optional[int] = None
        self._listeners: List[Listener] = []

        self.loaded_from_storage = self.load()
        if create_root and not self._nodes:
            self.create_root()

    # ==================== Subscription ====================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(event)`` after every state change; returns an unsubscriber."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: str):
        for listener in list(self._listeners):
            listener(event)

    # ==================== Persistence ====================

    def load(self) -> bool:
        """Load the stored node collection, discarding any history."""
        try:
            nodes = load_nodes(self.store)
        except StorageError as e:
            logger.error(f"Could not read saved nodes: {e}")
            return False
        if nodes is None:
            return False

        problem = check_tree(nodes)
        if problem:
            logger.error(f"Ignoring saved nodes: {problem}")
            return False

        self._nodes = {n.id: n for n in nodes}
        self._issued_ids.update(self._nodes)
        self.selection.clear()
        self.collapse_level = None
        self.lock_level = None

        # Cross-session history is never restored
        self.history.clear()
        try:
            clear_history(self.store)
        except StorageError as e:
            logger.error(f"Could not clear saved history: {e}")
        logger.info(f"Loaded {len(nodes)} node(s) from storage")
        self._notify("load")
        return True

    def save_state(self):
        """Persist nodes and both history stacks."""
        undo, redo = self.history.to_records()
        try:
            save_nodes(self.store, self.snapshot())
            save_history(self.store, undo, redo)
        except StorageError as e:
            logger.error(f"Failed to save state: {e}")

    def _save_nodes_only(self):
        try:
            save_nodes(self.store, self.snapshot())
        except StorageError as e:
            logger.error(f"Failed to save nodes: {e}")

    # ==================== Internal helpers ====================

    def snapshot(self) -> List[Node]:
        """Deep copy of the node collection in creation order."""
        return clone_nodes(self._nodes.values())

    def _restore(self, nodes) -> None:
        self._nodes = {n.id: n.clone() for n in nodes}
        self._issued_ids.update(self._nodes)

    def _sync_collapse_level(self):
        """Forget the fold level once the flags no longer match it."""
        level = self.collapse_level
        if level is None:
            return
        if any(n.is_collapsed != (visibility.depth(self._nodes, n.id) >= level)
               for n in self._nodes.values()):
            self.collapse_level = None

    def _commit(self, action_type: ActionType, before: List[Node]) -> HistoryEntry:
        entry = self.history.record(action_type, before, self.snapshot())
        self.save_state()
        self._notify(action_type.value)
        return entry

    def viewport(self) -> Tuple[float, float]:
        if self._viewport is not None:
            return self._viewport()
        return self.settings.viewport

    def generate_id(self) -> str:
        """A fresh node id, never handed out before in this session."""
        while True:
            node_id = f"node-{uuid.uuid4().hex[:12]}"
            if node_id not in self._issued_ids and node_id not in self._nodes:
                self._issued_ids.add(node_id)
                return node_id

    def _jitter(self, span: float) -> float:
        return (self.rng.random() - 0.5) * span

    def _subtree(self, node_id: str) -> List[str]:
        return [n.id for n in self._nodes.values() if self.is_descendant(n.id, node_id)]

    def _remove(self, ids: Set[str]):
        self._nodes = {k: v for k, v in self._nodes.items() if k not in ids}
        self.selection.prune(self._nodes)

    # ==================== Queries ====================

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def nodes(self) -> List[Node]:
        return self.snapshot()

    def get_node(self, node_id: str) -> Optional[Node]:
        node = self._nodes.get(node_id)
        return node.clone() if node else None

    @property
    def root(self) -> Optional[Node]:
        for node in self._nodes.values():
            if node.parent_id is None:
                return node.clone()
        return None

    @property
    def focused_id(self) -> Optional[str]:
        return self.selection.focused_id

    @property
    def selected_ids(self) -> Set[str]:
        return set(self.selection.selected_ids)

    def children_of(self, node_id: str) -> List[Node]:
        return [n.clone() for n in self._nodes.values() if n.parent_id == node_id]

    def parent_of(self, node_id: str) -> Optional[Node]:
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self.get_node(node.parent_id)

    def depth(self, node_id: str) -> int:
        return visibility.depth(self._nodes, node_id)

    def is_descendant(self, node_id: str, ancestor_id: str) -> bool:
        """True if walking up from ``node_id`` reaches ``ancestor_id`` (or they are equal)."""
        if node_id == ancestor_id:
            return True
        node = self._nodes.get(node_id)
        if node is None:
            return False
        seen = {node_id}
        current_id = node.parent_id
        while current_id is not None and current_id not in seen:
            if current_id == ancestor_id:
                return True
            seen.add(current_id)
            parent = self._nodes.get(current_id)
            current_id = parent.parent_id if parent else None
        return False

    def is_visible(self, node_id: str) -> bool:
        return visibility.is_visible(self._nodes, node_id)

    def visible_nodes(self) -> List[Node]:
        return clone_nodes(visibility.visible_nodes(self._nodes))

    def connections(self) -> List[Tuple[Node, Node]]:
        """(parent, child) pairs where both ends are visible."""
        pairs = []
        for child in visibility.visible_nodes(self._nodes):
            parent = self._nodes.get(child.parent_id) if child.parent_id else None
            if parent is not None:
                pairs.append((parent.clone(), child.clone()))
        return pairs

    def bounding_box(self) -> Optional[Tuple[float, float, float, float]]:
        """(min_x, min_y, max_x, max_y) over visible nodes."""
        shown = visibility.visible_nodes(self._nodes)
        if not shown:
            return None
        return (
            min(n.x for n in shown),
            min(n.y for n in shown),
            max(n.x + n.w for n in shown),
            max(n.y + n.h for n in shown),
        )

    def search(self, query: str, limit: int = 8) -> List[Node]:
        """Case-insensitive substring match over node text."""
        needle = query.lower().strip()
        if not needle:
            return []
        matches = [n.clone() for n in self._nodes.values() if needle in n.text.lower()]
        return matches[:limit]

    # ==================== Node creation ====================

    def create_root(self) -> Optional[Node]:
        """Create the startup root; only allowed on an empty store."""
        if self._nodes:
            logger.debug("Refusing to create a second root")
            return None
        width, height = self.viewport()
        root = Node(id=self.generate_id(), text="",
                    x=width / 2 - ROOT_OFFSET_X, y=height / 2 - ROOT_OFFSET_Y)
        self._nodes[root.id] = root
        self.selection.focus_only(root.id)
        self.save_state()
        self._notify("create")
        return root.clone()

    def add_child(self, parent_id: str, direction=None) -> Optional[Node]:
        """Create a child of ``parent_id``.

        Without a direction the child lands on one of eight compass points
        around the parent; with one it is pushed out along that axis with a
        random perpendicular offset.
        """
        parent = self._nodes.get(parent_id)
        if parent is None:
            return None

        before = self.snapshot()
        s = self.settings

        if direction is not None:
            direction = Direction.parse(direction)
            jitter = self._jitter(s.directional_jitter)
            if direction is Direction.RIGHT:
                x, y = parent.x + parent.w + s.directional_offset, parent.y + jitter
            elif direction is Direction.LEFT:
                x, y = parent.x - parent.w - s.directional_offset, parent.y + jitter
            elif direction is Direction.BOTTOM:
                x, y = parent.x + jitter, parent.y + parent.h + s.directional_offset
            else:
                x, y = parent.x + jitter, parent.y - parent.h - s.directional_offset
        else:
            angle = self.rng.randrange(8) * (math.pi / 4)
            x = parent.x + math.cos(angle) * s.child_distance - DEFAULT_WIDTH / 2
            y = parent.y + math.sin(angle) * s.child_distance - DEFAULT_HEIGHT / 2

        child = Node(
            id=self.generate_id(),
            text="",
            x=x,
            y=y,
            parent_id=parent.id,
            style=parent.style.copy() if parent.style else None,
        )
        self._nodes[child.id] = child
        self.selection.focus_only(child.id)
        self._commit(ActionType.CREATE, before)
        return child.clone()

    def add_sibling(self, sibling_id: str) -> Optional[Node]:
        """Create a node next to ``sibling_id`` under the same parent."""
        sibling = self._nodes.get(sibling_id)
        if sibling is None or sibling.parent_id is None:
            return None
        parent = self._nodes.get(sibling.parent_id)
        if parent is None:
            return None

        before = self.snapshot()
        s = self.settings
        dx = sibling.x - parent.x
        dy = sibling.y - parent.y

        x, y = sibling.x, sibling.y
        if abs(dx) > abs(dy):
            # Branch runs sideways, stack siblings vertically
            y += s.sibling_gap
        else:
            x += s.sibling_gap * 2
        jitter = self._jitter(s.sibling_jitter)
        x += jitter
        y += jitter

        node = Node(
            id=self.generate_id(),
            text="",
            x=x,
            y=y,
            parent_id=parent.id,
            style=sibling.style.copy() if sibling.style else None,
        )
        self._nodes[node.id] = node
        self.selection.focus_only(node.id)
        self._commit(ActionType.CREATE, before)
        return node.clone()

    def reset_map(self) -> Node:
        """Replace the whole map with a single fresh root."""
        before = self.snapshot()
        width, height = self.viewport()
        root = Node(id=self.generate_id(), text="",
                    x=width / 2 - ROOT_OFFSET_X, y=height / 2 - ROOT_OFFSET_Y)
        self._nodes = {root.id: root}
        self.selection.focus_only(root.id)
        self.collapse_level = None
        self.lock_level = None
        self._commit(ActionType.DELETE, before)
        return root.clone()

    # ==================== Deletion ====================

    def delete_subtree(self, node_id: str) -> List[str]:
        """Delete a node and all its descendants; the root is never deleted."""
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            logger.debug(f"Refusing to delete {node_id!r}")
            return []
        return self._delete_many([node_id])

    def delete_selected(self, node_id: Optional[str] = None) -> List[str]:
        """Delete the multi-selection, or ``node_id`` (default: focus) when none."""
        removed = self._delete_many(self.selection.targets(node_id or self.focused_id))
        if removed:
            self.selection.clear()
        return removed

    def _delete_many(self, ids: List[str]) -> List[str]:
        doomed: Set[str] = set()
        for target in ids:
            node = self._nodes.get(target)
            if node is None or node.parent_id is None:
                continue
            doomed.update(self._subtree(target))
        if not doomed:
            return []

        before = self.snapshot()
        removed = [n.id for n in before if n.id in doomed]
        self._remove(doomed)
        self._commit(ActionType.DELETE, before)
        return removed

    # ==================== Restructuring ====================

    def reparent(self, node_id: str, new_parent_id: str) -> bool:
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return False
        if new_parent_id not in self._nodes or node.parent_id == new_parent_id:
            return False
        if self.is_descendant(new_parent_id, node_id):
            logger.debug(f"Refusing to move {node_id!r} under its own subtree")
            return False

        before = self.snapshot()
        node.parent_id = new_parent_id
        self._commit(ActionType.MOVE, before)
        return True

    def demote(self, node_id: str) -> bool:
        """Make the node a child of its preceding sibling."""
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return False
        siblings = [n.id for n in self._nodes.values() if n.parent_id == node.parent_id]
        position = siblings.index(node_id)
        if position == 0:
            return False
        return self.reparent(node_id, siblings[position - 1])

    def promote(self, node_id: str) -> bool:
        """Make the node a sibling of its parent."""
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return False
        parent = self._nodes.get(node.parent_id)
        if parent is None or parent.parent_id is None:
            return False
        return self.reparent(node_id, parent.parent_id)

    # ==================== Editing ====================

    def set_text(self, node_id: str, text: str) -> bool:
        node = self._nodes.get(node_id)
        if node is None or node.text == text:
            return False
        before = self.snapshot()
        node.text = text
        self._commit(ActionType.UPDATE, before)
        return True

    def set_size(self, node_id: str, width: Optional[float], height: Optional[float]) -> bool:
        """Record the rendered size of a node; not historied."""
        node = self._nodes.get(node_id)
        if node is None:
            return False
        node.width, node.height = width, height
        self._save_nodes_only()
        self._notify("resize")
        return True

    def set_style(self, node_id: Optional[str] = None, **changes: Optional[str]) -> List[str]:
        """Merge style attributes into the multi-selection, or ``node_id`` when none."""
        if not changes:
            return []
        targets = [t for t in self.selection.targets(node_id or self.focused_id) if t in self._nodes]
        if not targets:
            return []
        before = self.snapshot()
        changed = []
        for target in targets:
            node = self._nodes[target]
            current = node.style or NodeStyle()
            style = current.merged(**changes)
            if style != current:
                node.style = style
                changed.append(target)
        if not changed:
            return []
        self._commit(ActionType.UPDATE, before)
        return changed

    def set_position(self, node_id: str, x: float, y: float) -> bool:
        """Move a node.

        While a drag is open the write is persisted but not historied, and a
        multi-selection containing the node moves rigidly with it.
        """
        node = self._nodes.get(node_id)
        if node is None or (node.x == x and node.y == y):
            return False

        if self.history.is_dragging:
            dx, dy = x - node.x, y - node.y
            selected = self.selection.selected_ids
            if len(selected) > 1 and node_id in selected:
                for other_id in selected:
                    other = self._nodes.get(other_id)
                    if other is not None:
                        other.x += dx
                        other.y += dy
            else:
                node.x, node.y = x, y
            self._save_nodes_only()
            self._notify("drag")
            return True

        before = self.snapshot()
        node.x, node.y = x, y
        self._commit(ActionType.MOVE, before)
        return True

    # ==================== Drag batching ====================

    def start_drag(self, node_id: str) -> bool:
        if node_id not in self._nodes:
            return False
        self.history.start_drag(node_id, self.snapshot())
        return True

    def end_drag(self) -> bool:
        """Close the drag; True if it produced a history entry."""
        entry = self.history.end_drag(self.snapshot())
        if entry is None:
            return False
        self.save_state()
        self._notify(ActionType.MOVE.value)
        return True

    # ==================== Undo / redo ====================

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def undo(self) -> bool:
        entry = self.history.undo(self.snapshot())
        if entry is None:
            return False
        self._restore(entry.before)
        self._sync_collapse_level()
        self.selection.prune(self._nodes)
        self.save_state()
        self._notify("undo")
        return True

    def redo(self) -> bool:
        entry = self.history.redo(self.snapshot())
        if entry is None:
            return False
        self._restore(entry.after)
        self._sync_collapse_level()
        self.selection.prune(self._nodes)
        self.save_state()
        self._notify("redo")
        return True

    # ==================== Selection ====================

    def select_node(self, node_id: str, multi: bool = False) -> bool:
        if node_id not in self._nodes:
            return False
        self.selection.select(node_id, multi)
        self._notify("select")
        return True

    def clear_selection(self):
        self.selection.clear()
        self._notify("select")

    def select_all(self):
        self.selection.select_all(list(self._nodes))
        self._notify("select")

    # ==================== Folding ====================

    def toggle_collapse(self, node_id: str) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        before = self.snapshot()
        node.is_collapsed = not node.is_collapsed
        self._commit(ActionType.UPDATE, before)
        return True

    def set_global_collapse_level(self, level: Optional[int]):
        """Fold every node at ``depth >= level``; None unfolds everything."""
        if level is not None and self.lock_level is not None and level < self.lock_level:
            logger.debug(f"Fold level {level} hides lock level {self.lock_level}; clearing lock")
            self.lock_level = None

        before = self.snapshot()
        self.collapse_level = level
        if visibility.collapse_to_level(self._nodes, level):
            self._commit(ActionType.UPDATE, before)
        else:
            self._notify("fold")

    def expand_all(self):
        self.set_global_collapse_level(None)

    # ==================== Navigation ====================

    def set_navigation_lock_level(self, level: Optional[int]) -> bool:
        """Restrict navigation to one depth; rejected if that depth is folded away."""
        if level is not None:
            if level < 0:
                return False
            if self.collapse_level is not None and level > self.collapse_level:
                logger.debug(f"Lock level {level} is deeper than fold level {self.collapse_level}")
                return False
        self.lock_level = level
        self._notify("lock")
        return True

    def navigate(self, current_id: Optional[str], direction) -> Optional[str]:
        """Move focus to the nearest visible node in ``direction``."""
        if current_id is None:
            current_id = self.focused_id
        if current_id is None:
            return None
        target = find_neighbor(self._nodes, current_id, direction, self.lock_level)
        if target is not None:
            self.selection.focus(target)
            self._notify("navigate")
        return target

    # ==================== Relative commands ====================

    def resolve_relative(self, node_id: str, count: int) -> List[str]:
        """Nodes ``count`` steps from ``node_id``.

        Negative counts walk up to the ancestor (stopping at the root),
        positive counts return every descendant exactly that many levels
        below, and zero returns the node itself.
        """
        node = self._nodes.get(node_id)
        if node is None:
            return []
        if count == 0:
            return [node_id]
        if count < 0:
            current = node
            for _ in range(-count):
                if current.parent_id is None or current.parent_id not in self._nodes:
                    break
                current = self._nodes[current.parent_id]
            return [current.id]

        frontier = [node_id]
        for _ in range(count):
            wanted = set(frontier)
            frontier = [n.id for n in self._nodes.values() if n.parent_id in wanted]
            if not frontier:
                break
        return frontier

    def select_relative(self, node_id: str, count: int) -> List[str]:
        ids = self.resolve_relative(node_id, count)
        if not ids:
            return []
        self.selection.selected_ids = set(ids)
        self.selection.focus(ids[0])
        self._notify("select")
        return ids

    def collapse_relative(self, node_id: str, count: int) -> List[str]:
        ids = [i for i in self.resolve_relative(node_id, count) if not self._nodes[i].is_collapsed]
        if not ids:
            return []
        before = self.snapshot()
        for i in ids:
            self._nodes[i].is_collapsed = True
        self._commit(ActionType.UPDATE, before)
        return ids

    def prune_relative(self, node_id: str, count: int) -> List[str]:
        return self._delete_many(self.resolve_relative(node_id, count))

    # ==================== Bulk replace / layout ====================

    def replace_nodes(self, nodes: List[Node]) -> Node:
        """Swap in a whole new tree (imports); the root becomes focused.

        Raises FormatError without touching state if the nodes do not form
        a single rooted tree.
        """
        if not nodes:
            raise FormatError("document contains no nodes")
        problem = check_tree(nodes)
        if problem:
            raise FormatError(problem)

        before = self.snapshot()
        self._restore(nodes)
        self.collapse_level = None
        self.lock_level = None
        root = next(n for n in self._nodes.values() if n.parent_id is None)
        self.selection.focus_only(root.id)
        self._commit(ActionType.UPDATE, before)
        return root.clone()

    def auto_spread(self) -> bool:
        """Radially re-layout the whole tree as one undoable step."""
        if not self._nodes:
            return False
        before = self.snapshot()
        width, height = self.viewport()
        positions = auto_spread(
            self._nodes.values(),
            center=(width / 2, height / 2),
            rng=self.rng,
            params=SpreadParams.from_settings(self.settings),
        )
        for node_id, (x, y) in positions.items():
            node = self._nodes[node_id]
            node.x, node.y = x, y

        if nodes_equal(before, list(self._nodes.values())):
            return False
        self._commit(ActionType.LAYOUT, before)
        logger.info(f"Auto-spread repositioned {len(positions)} node(s)")
        return True
