"""Command-line front end for mindspread.

Operates on the map stored in a local SQLite key-value file.

Usage:
  mindspread show
  mindspread add root "First idea" --direction right
  mindspread spread --seed 7
  mindspread export --format mermaid --out map.mmd
  mindspread import --format mind --file map.mind

Set MINDSPREAD_DATA_DIR to keep the database somewhere other than
~/.local/share/mindspread, or pass --db explicitly.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from mindspread.config import get_db_path, load_settings
from mindspread.engine import MindMapEngine
from mindspread.errors import FormatError, MindMapError
from mindspread.fileformat import (
    export_document, export_markdown, export_mermaid, import_document,
    import_mermaid,
)
from mindspread.storage import SqliteStore

logger = logging.getLogger("mindspread.cli")


def _open_engine(args: argparse.Namespace, store: SqliteStore) -> MindMapEngine:
    settings = load_settings(store)
    if getattr(args, "seed", None) is not None:
        settings.random_seed = args.seed
    return MindMapEngine(store=store, settings=settings)


def _resolve(engine: MindMapEngine, node_ref: str) -> str | None:
    if node_ref == "root":
        root = engine.root
        return root.id if root else None
    if node_ref in engine:
        return node_ref
    print(f"No such node: {node_ref}", file=sys.stderr)
    return None


def _cmd_show(engine: MindMapEngine, args: argparse.Namespace) -> int:
    root = engine.root
    if root is None:
        print("(empty map)")
        return 0

    stack = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        marker = "[+]" if node.is_collapsed else "   "
        label = node.text or "(untitled)"
        print(f"{'  ' * depth}{marker} {label}  <{node.id}> @ ({node.x:.0f}, {node.y:.0f})")
        if node.is_collapsed and not args.all:
            continue
        for child in reversed(engine.children_of(node.id)):
            stack.append((child, depth + 1))
    return 0


def _cmd_add(engine: MindMapEngine, args: argparse.Namespace) -> int:
    parent_id = _resolve(engine, args.parent)
    if parent_id is None:
        return 1
    node = engine.add_child(parent_id, args.direction)
    if args.text:
        engine.set_text(node.id, args.text)
    print(node.id)
    return 0


def _cmd_text(engine: MindMapEngine, args: argparse.Namespace) -> int:
    node_id = _resolve(engine, args.node)
    if node_id is None:
        return 1
    engine.set_text(node_id, args.text)
    return 0


def _cmd_delete(engine: MindMapEngine, args: argparse.Namespace) -> int:
    node_id = _resolve(engine, args.node)
    if node_id is None:
        return 1
    removed = engine.delete_subtree(node_id)
    if not removed:
        print("Nothing deleted (the root cannot be deleted)", file=sys.stderr)
        return 1
    print(f"Deleted {len(removed)} node(s)")
    return 0


def _cmd_spread(engine: MindMapEngine, args: argparse.Namespace) -> int:
    changed = engine.auto_spread()
    print("Layout updated" if changed else "Layout unchanged")
    return 0


def _cmd_fold(engine: MindMapEngine, args: argparse.Namespace) -> int:
    level = None if args.level == "all" else int(args.level)
    engine.set_global_collapse_level(level)
    return 0


def _cmd_reset(engine: MindMapEngine, args: argparse.Namespace) -> int:
    root = engine.reset_map()
    print(root.id)
    return 0


def _cmd_export(engine: MindMapEngine, args: argparse.Namespace) -> int:
    out = Path(args.out).expanduser()
    fmt = args.format
    if fmt in ("png", "pdf"):
        # pycairo is only needed for image output
        from mindspread.export import MindMapExporter

        exporter = MindMapExporter(engine)
        ok = exporter.export_png(str(out)) if fmt == "png" else exporter.export_pdf(str(out), title=args.title)
        if not ok:
            print("Nothing to export", file=sys.stderr)
            return 1
    else:
        nodes = engine.nodes()
        if fmt == "mind":
            content = export_document(nodes, title=args.title)
        elif fmt == "mermaid":
            content = export_mermaid(nodes)
        else:
            content = export_markdown(nodes, title=args.title)
        out.write_text(content, encoding="utf-8")
    print(f"Wrote {out.resolve()}")
    return 0


def _cmd_import(engine: MindMapEngine, args: argparse.Namespace) -> int:
    path = Path(args.file).expanduser()
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 1
    text = path.read_text(encoding="utf-8")
    try:
        if args.format == "mermaid":
            root = import_mermaid(engine, text)
        else:
            root = import_document(engine, text)
    except FormatError as e:
        print(f"Import failed: {e}", file=sys.stderr)
        return 1
    print(f"Imported {len(engine)} node(s), root {root.id}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="mindspread")
    parser.add_argument("--db", help="SQLite file holding the map (default: data dir)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_show = sub.add_parser("show", help="Print the map as an outline")
    p_show.add_argument("--all", action="store_true", help="Include folded branches")
    p_show.set_defaults(func=_cmd_show)

    p_add = sub.add_parser("add", help="Add a child node")
    p_add.add_argument("parent", help="Parent node id, or 'root'")
    p_add.add_argument("text", nargs="?", default="")
    p_add.add_argument("--direction", choices=["top", "bottom", "left", "right"])
    p_add.add_argument("--seed", type=int)
    p_add.set_defaults(func=_cmd_add)

    p_text = sub.add_parser("text", help="Change a node's text")
    p_text.add_argument("node")
    p_text.add_argument("text")
    p_text.set_defaults(func=_cmd_text)

    p_del = sub.add_parser("delete", help="Delete a node and its subtree")
    p_del.add_argument("node")
    p_del.set_defaults(func=_cmd_delete)

    p_spread = sub.add_parser("spread", help="Run the radial auto-spread layout")
    p_spread.add_argument("--seed", type=int, help="Seed for reproducible layouts")
    p_spread.set_defaults(func=_cmd_spread)

    p_fold = sub.add_parser("fold", help="Fold every node at or below a depth")
    p_fold.add_argument("level", help="Depth (0-5), or 'all' to unfold everything")
    p_fold.set_defaults(func=_cmd_fold)

    p_reset = sub.add_parser("reset", help="Replace the map with a single root")
    p_reset.set_defaults(func=_cmd_reset)

    p_exp = sub.add_parser("export", help="Export the map")
    p_exp.add_argument("--format", choices=["mind", "mermaid", "markdown", "png", "pdf"], default="mind")
    p_exp.add_argument("--out", required=True, help="Output path")
    p_exp.add_argument("--title", default="Mind Map")
    p_exp.set_defaults(func=_cmd_export)

    p_imp = sub.add_parser("import", help="Replace the map with a document")
    p_imp.add_argument("--format", choices=["mind", "mermaid"], default="mind")
    p_imp.add_argument("--file", required=True, help="Input path")
    p_imp.add_argument("--seed", type=int)
    p_imp.set_defaults(func=_cmd_import)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    db_path = Path(args.db).expanduser() if args.db else get_db_path()
    with SqliteStore(db_path) as store:
        engine = _open_engine(args, store)
        try:
            return int(args.func(engine, args))
        except MindMapError as e:
            logger.error(f"{args.cmd} failed: {e}")
            return 1


if __name__ == "__main__":
    raise SystemExit(main())
