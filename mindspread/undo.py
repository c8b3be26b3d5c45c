"""Undo/Redo system for mindspread."""

import logging
import time
from typing import Optional, List, Callable, Dict, Any, Tuple
from dataclasses import dataclass
from enum import Enum

from mindspread.model import Node, clone_nodes, nodes_equal, nodes_to_dicts

logger = logging.getLogger(__name__)


class ActionType(Enum):
    """Kinds of undoable actions."""
    CREATE = "create"
    DELETE = "delete"
    UPDATE = "update"
    MOVE = "move"
    LAYOUT = "layout"


@dataclass(frozen=True)
class HistoryEntry:
    """A recorded before/after pair of full snapshots."""
    action_type: ActionType
    timestamp: int
    before: Tuple[Node, ...]
    after: Tuple[Node, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.action_type.value,
            "timestamp": self.timestamp,
            "nodesBefore": nodes_to_dicts(self.before),
            "nodesAfter": nodes_to_dicts(self.after),
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


class UndoManager:
    """Manages bounded undo/redo stacks and drag batching."""

    def __init__(self, max_undo: int = 50, max_redo: int = 50,
                 clock: Callable[[], int] = _now_ms):
        self.max_undo = max_undo
        self.max_redo = max_redo
        self._clock = clock
        self._undo_stack: List[HistoryEntry] = []
        self._redo_stack: List[HistoryEntry] = []

        # Drag scratch slot
        self._dragging = False
        self._drag_node_id: Optional[str] = None
        self._drag_start: List[Node] = []

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._undo_stack) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._redo_stack) > 0

    @property
    def undo_stack(self) -> List[HistoryEntry]:
        return list(self._undo_stack)

    @property
    def redo_stack(self) -> List[HistoryEntry]:
        return list(self._redo_stack)

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    @property
    def drag_node_id(self) -> Optional[str]:
        return self._drag_node_id

    def _entry(self, action_type: ActionType, before: List[Node], after: List[Node]) -> HistoryEntry:
        return HistoryEntry(
            action_type=action_type,
            timestamp=self._clock(),
            before=tuple(clone_nodes(before)),
            after=tuple(clone_nodes(after)),
        )

    @staticmethod
    def _push_bounded(stack: List[HistoryEntry], entry: HistoryEntry, limit: int):
        stack.append(entry)
        while len(stack) > limit:
            stack.pop(0)

    def record(self, action_type: ActionType, before: List[Node], after: List[Node]) -> HistoryEntry:
        """Push a new entry to the undo stack and invalidate redo."""
        entry = self._entry(action_type, before, after)
        self._push_bounded(self._undo_stack, entry, self.max_undo)
        self._redo_stack.clear()  # Clear redo on new action
        logger.debug(f"Recorded {action_type.value} ({len(self._undo_stack)} undoable)")
        self._notify_changed()
        return entry

    def undo(self, current: List[Node]) -> Optional[HistoryEntry]:
        """Pop the last entry; the caller restores its `before` snapshot."""
        if not self._undo_stack:
            return None

        entry = self._undo_stack.pop()
        self._push_bounded(
            self._redo_stack,
            self._entry(entry.action_type, current, list(entry.after)),
            self.max_redo,
        )
        self._notify_changed()
        return entry

    def redo(self, current: List[Node]) -> Optional[HistoryEntry]:
        """Pop the last undone entry; the caller restores its `after` snapshot."""
        if not self._redo_stack:
            return None

        entry = self._redo_stack.pop()
        self._push_bounded(
            self._undo_stack,
            self._entry(entry.action_type, current, list(entry.after)),
            self.max_undo,
        )
        self._notify_changed()
        return entry

    def clear(self):
        """Clear all history."""
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._notify_changed()

    # ==================== Drag batching ====================

    def start_drag(self, node_id: str, current: List[Node]):
        """Snapshot the pre-drag state without recording anything."""
        self._dragging = True
        self._drag_node_id = node_id
        self._drag_start = clone_nodes(current)

    def end_drag(self, current: List[Node]) -> Optional[HistoryEntry]:
        """Close the drag window, recording one move if anything changed."""
        if not self._dragging:
            return None

        self._dragging = False
        self._drag_node_id = None
        start, self._drag_start = self._drag_start, []

        if nodes_equal(start, current):
            return None
        return self.record(ActionType.MOVE, start, current)

    # ==================== Serialization ====================

    def to_records(self) -> Tuple[List[Dict[str, Any]], List[Dict[str, Any]]]:
        return ([e.to_dict() for e in self._undo_stack],
                [e.to_dict() for e in self._redo_stack])

    def _notify_changed(self):
        """Notify that undo/redo state changed."""
        if self.on_state_changed:
            self.on_state_changed()
