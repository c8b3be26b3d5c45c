"""Fold state and the derived set of visible nodes."""

from typing import Dict, List, Mapping, Optional

from mindspread.model import Node


def depth(nodes: Mapping[str, Node], node_id: str) -> int:
    """Distance from the root; the root is 0.

    Unknown ids report -1. A dangling parent ends the walk.
    """
    node = nodes.get(node_id)
    if node is None:
        return -1
    level = 0
    seen = {node_id}
    while node.parent_id is not None and node.parent_id in nodes:
        if node.parent_id in seen:
            break
        seen.add(node.parent_id)
        node = nodes[node.parent_id]
        level += 1
    return level


def is_visible(nodes: Mapping[str, Node], node_id: str,
               _memo: Optional[Dict[str, bool]] = None) -> bool:
    """A node is visible if it is the root, or its parent is visible and expanded."""
    memo = _memo if _memo is not None else {}

    # Every node on the walked path shares the answer found at its top
    path: List[str] = []
    seen = set()
    current_id = node_id
    while True:
        if current_id in memo:
            result = memo[current_id]
            break
        node = nodes.get(current_id)
        if node is None or current_id in seen:
            # Unknown id, or a cycle in corrupted input
            result = False
            break
        path.append(current_id)
        seen.add(current_id)
        if node.parent_id is None:
            result = True
            break
        parent = nodes.get(node.parent_id)
        if parent is None or parent.is_collapsed:
            result = False
            break
        current_id = parent.id

    for visited in path:
        memo[visited] = result
    return result


def visible_nodes(nodes: Mapping[str, Node]) -> List[Node]:
    """Visible nodes in store order."""
    memo: Dict[str, bool] = {}
    return [n for n in nodes.values() if is_visible(nodes, n.id, memo)]


def visible_ids(nodes: Mapping[str, Node]) -> List[str]:
    return [n.id for n in visible_nodes(nodes)]


def collapse_to_level(nodes: Mapping[str, Node], level: Optional[int]) -> bool:
    """Set every node's fold flag to ``depth >= level``.

    ``None`` expands everything. Returns True if any flag changed.
    """
    changed = False
    for node in nodes.values():
        collapsed = level is not None and depth(nodes, node.id) >= level
        if node.is_collapsed != collapsed:
            node.is_collapsed = collapsed
            changed = True
    return changed
