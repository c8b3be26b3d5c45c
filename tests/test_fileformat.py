"""
Tests for .mind, Mermaid and Markdown interchange.
"""

import json
import random

import pytest

from mindspread.errors import FormatError
from mindspread.fileformat import (
    export_document, export_markdown, export_mermaid, import_document,
    import_mermaid, parse_document, parse_mermaid,
)
from mindspread.model import Node, NodeStyle


def _counter():
    ids = iter(range(1000))
    return lambda: f"n{next(ids)}"


@pytest.fixture
def outline(engine, root_id):
    engine.set_text(root_id, "Central")
    a = engine.add_child(root_id)
    engine.set_text(a.id, "Alpha (draft)")
    a1 = engine.add_child(a.id)
    engine.set_text(a1.id, "Alpha one")
    b = engine.add_child(root_id)
    return root_id, a.id, a1.id, b.id


class TestDocument:
    """Tests for the .mind JSON document."""

    def test_export_shape(self, engine, outline):
        document = json.loads(export_document(engine.nodes(), title="Plan"))

        assert document["version"] == "1"
        assert document["metadata"]["title"] == "Plan"
        root = document["nodes"][0]
        assert root["type"] == "root"
        assert root["parentId"] is None
        assert root["style"]["fontWeight"] == "bold"
        assert root["style"]["backgroundColor"] == "#ffffff"
        assert document["nodes"][1]["type"] == "topic"
        assert set(document["nodes"][1]["position"]) == {"x", "y"}

    def test_parse_assigns_fresh_ids(self, engine, outline):
        text = export_document(engine.nodes())
        nodes = parse_document(text, _counter())

        assert [n.id for n in nodes] == ["n0", "n1", "n2", "n3"]
        assert [n.parent_id for n in nodes] == [None, "n0", "n1", "n0"]
        assert [n.text for n in nodes] == ["Central", "Alpha (draft)", "Alpha one", ""]

    def test_parse_rejects_bad_json(self):
        with pytest.raises(FormatError) as excinfo:
            parse_document("{oops", _counter())
        assert str(excinfo.value).startswith(".mind:")

    def test_parse_requires_version(self):
        with pytest.raises(FormatError):
            parse_document(json.dumps({"nodes": []}), _counter())

    def test_parse_rejects_dangling_parent(self):
        text = json.dumps({"version": "1", "nodes": [
            {"id": "a", "parentId": None},
            {"id": "b", "parentId": "ghost"},
        ]})
        with pytest.raises(FormatError):
            parse_document(text, _counter())

    def test_parse_rejects_non_string_parent(self):
        text = json.dumps({"version": "1", "nodes": [
            {"id": "a", "parentId": None},
            {"id": "b", "parentId": []},
        ]})
        with pytest.raises(FormatError):
            parse_document(text, _counter())

    def test_parse_rejects_duplicate_ids(self):
        text = json.dumps({"version": "1", "nodes": [{"id": "a"}, {"id": "a"}]})
        with pytest.raises(FormatError):
            parse_document(text, _counter())

    def test_import_replaces_map(self, engine, outline):
        text = export_document(engine.nodes())
        old_ids = {n.id for n in engine.nodes()}
        root = import_document(engine, text)

        new_ids = {n.id for n in engine.nodes()}
        assert len(new_ids) == 4
        assert not new_ids & old_ids
        assert root.text == "Central"
        assert engine.focused_id == root.id

    def test_import_is_undoable(self, engine, outline):
        before = engine.nodes()
        import_document(engine, export_document(before))
        engine.undo()
        assert engine.nodes() == before

    def test_failed_import_leaves_state_untouched(self, engine, outline):
        before = engine.nodes()
        depth = len(engine.history.undo_stack)
        two_roots = json.dumps({"version": "1", "nodes": [{"id": "a"}, {"id": "b"}]})

        with pytest.raises(FormatError):
            import_document(engine, two_roots)

        assert engine.nodes() == before
        assert len(engine.history.undo_stack) == depth


class TestMermaid:
    """Tests for the Mermaid outline."""

    def test_export(self, engine, outline):
        text = export_mermaid(engine.nodes())
        assert text.splitlines() == [
            "mindmap",
            "  Central",
            "    Alpha draft",
            "      Alpha one",
            "    New Idea",
        ]

    def test_export_empty(self):
        assert export_mermaid([]) == ""

    def test_export_long_chain(self):
        nodes = [Node(id="n0", text="step")]
        for i in range(1, 1500):
            nodes.append(Node(id=f"n{i}", text="step", parent_id=f"n{i - 1}"))
        lines = export_mermaid(nodes).splitlines()

        assert len(lines) == 1501
        assert lines[-1] == "  " * 1500 + "step"

    def test_parse_builds_tree_from_indentation(self):
        text = "mindmap\n  Root\n    A\n      A1\n\n    B\n"
        nodes = parse_mermaid(text, _counter(), center=(0.0, 0.0), rng=random.Random(1))

        assert [(n.text, n.parent_id) for n in nodes] == [
            ("Root", None), ("A", "n0"), ("A1", "n1"), ("B", "n0"),
        ]
        assert all(abs(n.x) <= 250 and abs(n.y) <= 250 for n in nodes)
        assert nodes[0].style == NodeStyle(shape="rounded", background_color="#ffffff",
                                           color="#000000")

    def test_parse_requires_header(self):
        with pytest.raises(FormatError):
            parse_mermaid("graph TD\n  A\n", _counter())

    def test_parse_rejects_second_top_level_node(self):
        with pytest.raises(FormatError):
            parse_mermaid("mindmap\n  A\n  B\n", _counter())

    def test_parse_rejects_empty_outline(self):
        with pytest.raises(FormatError):
            parse_mermaid("mindmap\n\n", _counter())

    def test_import(self, engine):
        root = import_mermaid(engine, "mindmap\n  Trip\n    Flights\n    Hotels\n")

        assert root.text == "Trip"
        assert [n.text for n in engine.children_of(root.id)] == ["Flights", "Hotels"]


class TestMarkdown:
    """Tests for the Markdown outline."""

    def test_headings_then_bullets(self):
        nodes = [
            Node(id="r", text="Root"),
            Node(id="a", text="A", parent_id="r"),
            Node(id="b", text="B", parent_id="a"),
            Node(id="c", text="C", parent_id="b"),
            Node(id="d", text="D", parent_id="c"),
        ]
        lines = export_markdown(nodes, title="Doc").splitlines()

        assert "title: Doc" in lines
        assert lines[lines.index("# Root") + 1:] == ["", "## A", "### B", "- C", "  - D"]
