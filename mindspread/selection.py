"""Focus and multi-selection state."""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set


@dataclass
class Selection:
    """A focused node plus an independent multi-select set."""
    focused_id: Optional[str] = None
    selected_ids: Set[str] = field(default_factory=set)

    def select(self, node_id: str, multi: bool = False):
        if multi:
            # Toggle membership, focus follows regardless
            if node_id in self.selected_ids:
                self.selected_ids.discard(node_id)
            else:
                self.selected_ids.add(node_id)
        else:
            self.selected_ids = {node_id}
        self.focused_id = node_id

    def focus(self, node_id: Optional[str]):
        """Move focus without touching the multi-select set."""
        self.focused_id = node_id

    def focus_only(self, node_id: Optional[str]):
        """Focus a node and drop any multi-selection."""
        self.focused_id = node_id
        self.selected_ids = set()

    def clear(self):
        self.focused_id = None
        self.selected_ids = set()

    def select_all(self, ordered_ids: List[str]):
        self.selected_ids = set(ordered_ids)
        if self.focused_id is None or self.focused_id not in self.selected_ids:
            self.focused_id = ordered_ids[0] if ordered_ids else None

    def targets(self, node_id: Optional[str]) -> List[str]:
        """Ids a bulk operation applies to.

        The multi-select set when non-empty, else just ``node_id``.
        """
        if self.selected_ids:
            return sorted(self.selected_ids)
        return [node_id] if node_id is not None else []

    def is_selected(self, node_id: str) -> bool:
        return node_id in self.selected_ids

    def prune(self, existing: Iterable[str]):
        """Forget ids that no longer exist."""
        alive = set(existing)
        self.selected_ids &= alive
        if self.focused_id is not None and self.focused_id not in alive:
            self.focused_id = None
