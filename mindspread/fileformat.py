"""Import and export of mind maps as text documents.

Two interchange formats are supported:

* ``.mind`` -- a JSON document with a version, metadata and a flat node list
  carrying explicit parent links.
* ``.mmd`` -- a Mermaid ``mindmap`` outline, one node per line, two spaces
  of indentation per depth level, parents inferred from indentation.

A Markdown outline can also be exported. Imports never touch engine state
until the whole document has been parsed and validated.
"""

import json
import random
import re
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from mindspread.errors import FormatError
from mindspread.model import Node, NodeStyle

FORMAT_VERSION = "1"
MERMAID_HEADER = "mindmap"
MERMAID_INDENT = "  "
MERMAID_PLACEHOLDER = "New Idea"
MERMAID_SCATTER = 500

IdFactory = Callable[[], str]


def _children(nodes: List[Node]) -> Dict[Optional[str], List[Node]]:
    tree: Dict[Optional[str], List[Node]] = {}
    for node in nodes:
        tree.setdefault(node.parent_id, []).append(node)
    return tree


def _find_root(nodes: List[Node]) -> Optional[Node]:
    return next((n for n in nodes if n.parent_id is None), None)


def _walk(tree: Dict[Optional[str], List[Node]], root: Node) -> Iterator[Tuple[Node, int]]:
    """Pre-order (node, depth) pairs, walked with an explicit stack."""
    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        yield node, depth
        for child in reversed(tree.get(node.id, [])):
            stack.append((child, depth + 1))


# ==================== .mind document ====================

def export_document(nodes: List[Node], title: str = "Mind Map") -> str:
    """Serialize nodes to a ``.mind`` JSON document."""
    now = datetime.now().isoformat()
    document = {
        "version": FORMAT_VERSION,
        "metadata": {
            "title": title,
            "created": now,
            "modified": now,
        },
        "nodes": [],
    }
    for node in nodes:
        style = node.style or NodeStyle()
        document["nodes"].append({
            "id": node.id,
            "parentId": node.parent_id,
            "text": node.text,
            "type": "root" if node.parent_id is None else "topic",
            "position": {"x": node.x, "y": node.y},
            "style": {
                "color": style.color or "#000000",
                "backgroundColor": style.background_color or "#ffffff",
                "fontSize": 14,
                "fontWeight": style.font_weight or ("bold" if node.parent_id is None else "normal"),
                "fontStyle": style.font_style or "normal",
                "shape": style.shape or "rounded",
            },
            "collapsed": node.is_collapsed,
            "extra": {},
        })
    return json.dumps(document, indent=2)


def parse_document(text: str, id_factory: IdFactory) -> List[Node]:
    """Parse a ``.mind`` document, giving every node a fresh id."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"not valid JSON ({e.msg} at line {e.lineno})", source=".mind") from e

    if not isinstance(document, dict) or not document.get("version"):
        raise FormatError("missing version", source=".mind")
    records = document.get("nodes")
    if not isinstance(records, list):
        raise FormatError("missing node list", source=".mind")

    id_map: Dict[str, str] = {}
    for record in records:
        if not isinstance(record, dict) or not isinstance(record.get("id"), str):
            raise FormatError("every node needs a string id", source=".mind")
        if record["id"] in id_map:
            raise FormatError(f"duplicate node id {record['id']!r}", source=".mind")
        id_map[record["id"]] = id_factory()

    nodes = []
    for record in records:
        parent_id = record.get("parentId")
        if parent_id is not None and not isinstance(parent_id, str):
            raise FormatError(f"node {record['id']!r} has a non-string parentId", source=".mind")
        if parent_id is not None and parent_id not in id_map:
            raise FormatError(f"node {record['id']!r} refers to missing parent {parent_id!r}",
                              source=".mind")
        position = record.get("position") or {}
        style = record.get("style") or {}
        try:
            x = float(position.get("x") or 0)
            y = float(position.get("y") or 0)
        except (TypeError, ValueError, AttributeError) as e:
            raise FormatError(f"bad position for node {record['id']!r}", source=".mind") from e
        nodes.append(Node(
            id=id_map[record["id"]],
            text=str(record.get("text") or ""),
            x=x,
            y=y,
            parent_id=id_map[parent_id] if parent_id is not None else None,
            style=NodeStyle(
                font_weight=style.get("fontWeight"),
                font_style=style.get("fontStyle"),
                shape=style.get("shape"),
                background_color=style.get("backgroundColor"),
                color=style.get("color"),
            ) if isinstance(style, dict) else None,
            is_collapsed=bool(record.get("collapsed", False)),
        ))
    return nodes


# ==================== Mermaid outline ====================

def _mermaid_text(text: str) -> str:
    # Mermaid mindmaps treat parentheses as shape syntax
    return re.sub(r"[()]", "", text) or MERMAID_PLACEHOLDER


def export_mermaid(nodes: List[Node]) -> str:
    """Serialize the tree as a Mermaid ``mindmap`` outline."""
    root = _find_root(nodes)
    if root is None:
        return ""
    tree = _children(nodes)
    lines = [MERMAID_HEADER]

    for node, depth in _walk(tree, root):
        lines.append(f"{MERMAID_INDENT * (depth + 1)}{_mermaid_text(node.text)}")
    return "\n".join(lines) + "\n"


def _indent_of(line: str) -> int:
    return len(line) - len(line.lstrip())


def parse_mermaid(text: str, id_factory: IdFactory,
                  center: Tuple[float, float] = (640.0, 400.0),
                  rng: Optional[random.Random] = None) -> List[Node]:
    """Parse a Mermaid outline; each node lands at a random point near ``center``."""
    rng = rng or random.Random()
    lines = text.splitlines()
    if not lines or not lines[0].strip().startswith(MERMAID_HEADER):
        raise FormatError('must start with "mindmap"', source=".mmd")

    nodes: List[Node] = []
    stack: List[Tuple[str, int]] = []
    for line in lines[1:]:
        if not line.strip():
            continue
        indent = _indent_of(line)
        while stack and stack[-1][1] >= indent:
            stack.pop()
        parent_id = stack[-1][0] if stack else None
        if parent_id is None and nodes:
            raise FormatError(f"more than one top-level node ({line.strip()!r})", source=".mmd")

        node = Node(
            id=id_factory(),
            text=line.strip(),
            x=center[0] + (rng.random() - 0.5) * MERMAID_SCATTER,
            y=center[1] + (rng.random() - 0.5) * MERMAID_SCATTER,
            parent_id=parent_id,
            style=NodeStyle(shape="rounded", background_color="#ffffff", color="#000000"),
        )
        nodes.append(node)
        stack.append((node.id, indent))

    if not nodes:
        raise FormatError("outline has no nodes", source=".mmd")
    return nodes


# ==================== Markdown ====================

def export_markdown(nodes: List[Node], title: str = "Mind Map") -> str:
    """Render the tree as a Markdown outline."""
    root = _find_root(nodes)
    if root is None:
        return ""
    tree = _children(nodes)
    now = datetime.now().isoformat()

    lines = [
        "---",
        f"title: {title}",
        f"exported: {now}",
        "---",
        "",
        f"# {root.text or title}",
        "",
    ]

    for node, depth in _walk(tree, root):
        # Heading or bullet based on depth
        if depth == 0:
            continue
        if depth == 1:
            lines.append(f"## {node.text}")
        elif depth == 2:
            lines.append(f"### {node.text}")
        else:
            indent = "  " * (depth - 3)
            lines.append(f"{indent}- {node.text}")
    return "\n".join(lines) + "\n"


# ==================== Engine glue ====================

def import_document(engine, text: str) -> Node:
    """Replace the engine's map with a ``.mind`` document; returns the new root."""
    return engine.replace_nodes(parse_document(text, engine.generate_id))


def import_mermaid(engine, text: str) -> Node:
    """Replace the engine's map with a Mermaid outline; returns the new root."""
    width, height = engine.viewport()
    nodes = parse_mermaid(text, engine.generate_id, center=(width / 2, height / 2), rng=engine.rng)
    return engine.replace_nodes(nodes)
