"""
Tests for the node store: creation, deletion, restructuring and editing.
"""

import math
import random

import pytest

from mindspread.engine import MindMapEngine, ROOT_OFFSET_X, ROOT_OFFSET_Y
from mindspread.model import NodeStyle, check_tree
from mindspread.storage import MemoryStore


class TestStartup:
    """Tests for the initial root."""

    def test_root_is_centred_on_viewport(self, engine):
        root = engine.root

        assert len(engine) == 1
        assert root.parent_id is None
        assert root.text == ""
        assert root.x == 1000 / 2 - ROOT_OFFSET_X
        assert root.y == 800 / 2 - ROOT_OFFSET_Y
        assert engine.focused_id == root.id

    def test_root_creation_is_not_undoable(self, engine):
        assert not engine.can_undo

    def test_create_root_refused_when_not_empty(self, engine):
        assert engine.create_root() is None
        assert len(engine) == 1

    def test_empty_engine_without_root(self):
        engine = MindMapEngine(store=MemoryStore(), create_root=False)
        assert len(engine) == 0
        assert engine.root is None

    def test_generated_ids_are_unique(self, engine):
        ids = {engine.generate_id() for _ in range(200)}
        assert len(ids) == 200


class TestAddChild:
    """Tests for add_child."""

    def test_unknown_parent(self, engine):
        assert engine.add_child("missing") is None
        assert not engine.can_undo

    def test_child_lands_on_compass_point(self, engine, root_id):
        root = engine.root
        child = engine.add_child(root_id)

        dx = child.x + 50 - root.x
        dy = child.y + 20 - root.y
        assert math.hypot(dx, dy) == pytest.approx(120)
        steps = math.atan2(dy, dx) / (math.pi / 4)
        assert abs(steps - round(steps)) < 1e-9

    def test_child_to_the_right(self, engine, root_id):
        root = engine.root
        child = engine.add_child(root_id, "right")

        assert child.x == root.x + 100 + 120
        assert abs(child.y - root.y) <= 80

    def test_child_above(self, engine, root_id):
        root = engine.root
        child = engine.add_child(root_id, "top")

        assert child.y == root.y - 40 - 120
        assert abs(child.x - root.x) <= 80

    def test_child_focused_and_selection_cleared(self, engine, root_id):
        engine.select_all()
        child = engine.add_child(root_id)

        assert engine.focused_id == child.id
        assert engine.selected_ids == set()

    def test_child_inherits_parent_style(self, engine, root_id):
        engine.set_style(root_id, color="#ff0000", shape="pill")
        child = engine.add_child(root_id)

        assert child.style == NodeStyle(color="#ff0000", shape="pill")

    def test_inherited_style_is_a_copy(self, engine, root_id):
        engine.set_style(root_id, color="#ff0000")
        child = engine.add_child(root_id)
        engine.set_style(child.id, color="#00ff00")

        assert engine.get_node(root_id).style.color == "#ff0000"

    def test_query_results_are_copies(self, engine, root_id):
        engine.get_node(root_id).text = "tampered"
        assert engine.root.text == ""


class TestAddSibling:
    """Tests for add_sibling."""

    def test_root_has_no_sibling(self, engine, root_id):
        assert engine.add_sibling(root_id) is None

    def test_sideways_branch_stacks_vertically(self, engine, root_id):
        child = engine.add_child(root_id, "right")
        sibling = engine.add_sibling(child.id)

        assert sibling.parent_id == root_id
        assert abs((sibling.y - child.y) - 60) <= 5
        assert abs(sibling.x - child.x) <= 5

    def test_vertical_branch_stacks_sideways(self, engine, root_id):
        engine.set_position(root_id, 0, 0)
        child = engine.add_child(root_id, "bottom")
        engine.set_position(child.id, 0, 160)
        child = engine.get_node(child.id)
        sibling = engine.add_sibling(child.id)

        assert abs((sibling.x - child.x) - 120) <= 5
        assert abs(sibling.y - 160) <= 5


class TestDeletion:
    """Tests for subtree deletion."""

    def test_cascade(self, engine, chain):
        root_id, a, b = chain
        removed = engine.delete_subtree(a)

        assert removed == [a, b]
        assert [n.id for n in engine.nodes()] == [root_id]

    def test_root_is_never_deleted(self, engine, root_id):
        assert engine.delete_subtree(root_id) == []
        assert len(engine) == 1

    def test_delete_drops_focus(self, engine, chain):
        _, a, b = chain
        assert engine.focused_id == b
        engine.delete_subtree(a)
        assert engine.focused_id is None

    def test_delete_selected(self, engine, root_id):
        a = engine.add_child(root_id)
        b = engine.add_child(root_id)
        c = engine.add_child(root_id)
        engine.select_node(a.id)
        engine.select_node(c.id, multi=True)

        removed = engine.delete_selected()

        assert sorted(removed) == sorted([a.id, c.id])
        assert [n.id for n in engine.nodes()] == [root_id, b.id]
        assert engine.selected_ids == set()
        assert engine.focused_id is None

    def test_delete_selected_skips_root(self, engine, root_id):
        a = engine.add_child(root_id)
        engine.select_all()

        assert engine.delete_selected() == [a.id]
        assert len(engine) == 1

    def test_reset_map(self, engine, chain):
        new_root = engine.reset_map()

        assert [n.id for n in engine.nodes()] == [new_root.id]
        assert engine.undo()
        assert len(engine) == 3


class TestRestructuring:
    """Tests for reparent, demote and promote."""

    def test_reparent_refuses_own_subtree(self, engine, chain):
        root_id, a, b = chain
        assert not engine.reparent(a, b)
        assert not engine.reparent(a, a)
        assert not engine.reparent(root_id, a)
        assert not engine.reparent(a, "missing")

    def test_reparent(self, engine, root_id):
        a = engine.add_child(root_id)
        b = engine.add_child(root_id)

        assert engine.reparent(b.id, a.id)
        assert engine.parent_of(b.id).id == a.id

    def test_demote_and_promote(self, engine, root_id):
        a = engine.add_child(root_id)
        b = engine.add_child(root_id)

        assert not engine.demote(a.id)
        assert engine.demote(b.id)
        assert engine.get_node(b.id).parent_id == a.id

        assert not engine.promote(a.id)
        assert engine.promote(b.id)
        assert engine.get_node(b.id).parent_id == root_id

    def test_random_edits_keep_a_single_tree(self, engine, root_id):
        """Any mix of mutations leaves exactly one root and no cycles."""
        rng = random.Random(7)
        for _ in range(300):
            ids = [n.id for n in engine.nodes()]
            target = rng.choice(ids)
            op = rng.randrange(8)
            if op == 0:
                engine.add_child(target)
            elif op == 1:
                engine.add_sibling(target)
            elif op == 2:
                engine.delete_subtree(target)
            elif op == 3:
                engine.reparent(target, rng.choice(ids))
            elif op == 4:
                engine.demote(target)
            elif op == 5:
                engine.promote(target)
            elif op == 6:
                engine.undo()
            else:
                engine.redo()
            assert check_tree(engine.nodes()) is None
            assert engine.root is not None


class TestEditing:
    """Tests for text, size, style and queries."""

    def test_set_text(self, engine, root_id):
        assert engine.set_text(root_id, "Central")
        assert engine.root.text == "Central"
        assert not engine.set_text(root_id, "Central")

    def test_set_size_is_not_historied(self, engine, root_id):
        assert engine.set_size(root_id, 180, 48)
        node = engine.root
        assert (node.w, node.h) == (180, 48)
        assert not engine.can_undo

    def test_style_applies_to_multi_selection(self, engine, root_id):
        a = engine.add_child(root_id)
        b = engine.add_child(root_id)
        engine.select_node(a.id)
        engine.select_node(b.id, multi=True)

        changed = engine.set_style(None, font_weight="bold")

        assert sorted(changed) == sorted([a.id, b.id])
        assert engine.get_node(a.id).style.font_weight == "bold"
        assert engine.get_node(b.id).style.font_weight == "bold"
        assert engine.root.style is None

    def test_style_defaults_to_focus(self, engine, root_id):
        child = engine.add_child(root_id)
        engine.set_style(font_style="italic")

        assert engine.get_node(child.id).style.font_style == "italic"

    def test_style_without_changes_records_nothing(self, engine, root_id):
        assert engine.set_style(root_id) == []
        assert not engine.can_undo

    def test_style_matching_current_records_nothing(self, engine, root_id):
        engine.set_style(root_id, color="#ff0000")
        depth = len(engine.history.undo_stack)

        assert engine.set_style(root_id, color="#ff0000") == []
        assert len(engine.history.undo_stack) == depth

    def test_search(self, engine, root_id):
        engine.set_text(root_id, "Planning")
        child = engine.add_child(root_id)
        engine.set_text(child.id, "Budget plan")

        hits = [n.id for n in engine.search("PLAN")]
        assert hits == [root_id, child.id]
        assert engine.search("   ") == []

    def test_depth_and_descendants(self, engine, chain):
        root_id, a, b = chain
        assert [engine.depth(i) for i in chain] == [0, 1, 2]
        assert engine.depth("missing") == -1
        assert engine.is_descendant(b, root_id)
        assert not engine.is_descendant(root_id, b)

    def test_subscribers_hear_mutations(self, engine, root_id):
        events = []
        unsubscribe = engine.subscribe(events.append)
        engine.add_child(root_id)
        engine.set_text(root_id, "x")
        unsubscribe()
        engine.set_text(root_id, "y")

        assert events == ["create", "update"]
