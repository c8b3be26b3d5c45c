"""Node records for mindspread."""

from typing import Optional, List, Dict, Any, Iterable
from dataclasses import dataclass

DEFAULT_WIDTH = 100.0
DEFAULT_HEIGHT = 40.0


@dataclass
class NodeStyle:
    """Visual attributes of a node."""
    font_weight: Optional[str] = None
    font_style: Optional[str] = None
    shape: Optional[str] = None  # rect, rounded, pill, diamond
    background_color: Optional[str] = None
    color: Optional[str] = None

    _KEYS = {
        "font_weight": "fontWeight",
        "font_style": "fontStyle",
        "shape": "shape",
        "background_color": "backgroundColor",
        "color": "color",
    }

    def to_dict(self) -> Dict[str, str]:
        return {
            key: getattr(self, attr)
            for attr, key in self._KEYS.items()
            if getattr(self, attr) is not None
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NodeStyle":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise TypeError(f"Style must be an object, got {type(data).__name__}")
        return cls(**{attr: data.get(key) for attr, key in cls._KEYS.items()})

    def merged(self, **changes: Optional[str]) -> "NodeStyle":
        """Return a copy with the given attributes overridden."""
        unknown = set(changes) - set(self._KEYS)
        if unknown:
            raise TypeError(f"Unknown style attribute(s): {', '.join(sorted(unknown))}")
        values = {attr: getattr(self, attr) for attr in self._KEYS}
        values.update(changes)
        return NodeStyle(**values)

    def copy(self) -> "NodeStyle":
        return NodeStyle(
            font_weight=self.font_weight,
            font_style=self.font_style,
            shape=self.shape,
            background_color=self.background_color,
            color=self.color,
        )


@dataclass
class Node:
    """A single topic of the mind map."""
    id: str
    text: str = ""
    x: float = 0.0
    y: float = 0.0
    parent_id: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    style: Optional[NodeStyle] = None
    is_collapsed: bool = False

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def w(self) -> float:
        """Width used for geometry."""
        return self.width if self.width else DEFAULT_WIDTH

    @property
    def h(self) -> float:
        """Height used for geometry."""
        return self.height if self.height else DEFAULT_HEIGHT

    @property
    def center(self):
        return self.x + self.w / 2, self.y + self.h / 2

    def clone(self) -> "Node":
        """Deep copy, including the style sub-object."""
        return Node(
            id=self.id,
            text=self.text,
            x=self.x,
            y=self.y,
            parent_id=self.parent_id,
            width=self.width,
            height=self.height,
            style=self.style.copy() if self.style is not None else None,
            is_collapsed=self.is_collapsed,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "parentId": self.parent_id,
        }
        if self.width is not None:
            data["width"] = self.width
        if self.height is not None:
            data["height"] = self.height
        if self.style is not None:
            data["style"] = self.style.to_dict()
        if self.is_collapsed:
            data["isCollapsed"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        """Build a node from its stored shape.

        Raises KeyError, TypeError or ValueError on malformed records.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Node record must be an object, got {type(data).__name__}")
        node_id = data["id"]
        if not isinstance(node_id, str) or not node_id:
            raise ValueError("Node id must be a non-empty string")
        parent_id = data.get("parentId")
        if parent_id is not None and not isinstance(parent_id, str):
            raise ValueError(f"Node {node_id} has a non-string parentId")
        style = data.get("style")
        return cls(
            id=node_id,
            text=str(data.get("text") or ""),
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            parent_id=parent_id,
            width=float(data["width"]) if data.get("width") is not None else None,
            height=float(data["height"]) if data.get("height") is not None else None,
            style=NodeStyle.from_dict(style) if style is not None else None,
            is_collapsed=bool(data.get("isCollapsed", False)),
        )


def clone_nodes(nodes: Iterable[Node]) -> List[Node]:
    """Structural clone of a node collection."""
    return [node.clone() for node in nodes]


def nodes_equal(first: List[Node], second: List[Node]) -> bool:
    """Field-wise comparison on id, x, y, text and parent_id."""
    if len(first) != len(second):
        return False
    for a, b in zip(first, second):
        if (a.id != b.id or a.x != b.x or a.y != b.y
                or a.text != b.text or a.parent_id != b.parent_id):
            return False
    return True


def nodes_to_dicts(nodes: Iterable[Node]) -> List[Dict[str, Any]]:
    return [node.to_dict() for node in nodes]


def nodes_from_dicts(records: Any) -> List[Node]:
    if not isinstance(records, list):
        raise TypeError(f"Expected a list of node records, got {type(records).__name__}")
    return [Node.from_dict(record) for record in records]


def check_tree(nodes: List[Node]) -> Optional[str]:
    """Describe the first tree-shape violation, or None if the nodes form one rooted tree."""
    if not nodes:
        return None
    by_id: Dict[str, Node] = {}
    for node in nodes:
        if node.id in by_id:
            return f"duplicate node id {node.id!r}"
        by_id[node.id] = node

    roots = [n.id for n in nodes if n.parent_id is None]
    if len(roots) != 1:
        return f"expected exactly one root, found {len(roots)}"

    for node in nodes:
        if node.parent_id is not None and node.parent_id not in by_id:
            return f"node {node.id!r} refers to missing parent {node.parent_id!r}"

    for node in nodes:
        seen = {node.id}
        current = node
        while current.parent_id is not None:
            if current.parent_id in seen:
                return f"node {node.id!r} is its own ancestor"
            seen.add(current.parent_id)
            current = by_id[current.parent_id]
    return None
