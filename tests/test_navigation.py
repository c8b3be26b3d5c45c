"""
Tests for directional navigation and selection.
"""

import pytest

from mindspread.navigation import Direction, score


@pytest.fixture
def cross(engine, root_id):
    """Root at (400, 400) with a near and a far node to the right and one to the left."""
    engine.set_position(root_id, 400, 400)
    near = engine.add_child(root_id, "right")
    far = engine.add_child(root_id, "right")
    left = engine.add_child(root_id, "left")
    engine.set_position(near.id, 600, 400)
    engine.set_position(far.id, 600, 625)
    engine.set_position(left.id, 200, 400)
    engine.select_node(root_id)
    return root_id, near.id, far.id, left.id


class TestDirection:
    """Tests for Direction parsing and scoring."""

    def test_parse_aliases(self):
        assert Direction.parse("up") is Direction.TOP
        assert Direction.parse("DOWN") is Direction.BOTTOM
        assert Direction.parse(Direction.LEFT) is Direction.LEFT

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            Direction.parse("sideways")

    def test_off_axis_penalty(self):
        assert score(Direction.RIGHT, 200, 0) == 200
        assert score(Direction.RIGHT, 200, 225) == pytest.approx(301.04 + 450, abs=0.01)
        assert score(Direction.TOP, 30, -40) == 50 + 60


class TestNavigate:
    """Tests for engine.navigate."""

    def test_prefers_on_axis_candidate(self, engine, cross):
        root_id, near, far, left = cross
        assert engine.navigate(root_id, "right") == near
        assert engine.focused_id == near

    def test_left(self, engine, cross):
        root_id, _, _, left = cross
        assert engine.navigate(root_id, Direction.LEFT) == left

    def test_nothing_in_direction_keeps_focus(self, engine, cross):
        root_id = cross[0]
        assert engine.navigate(root_id, "top") is None
        assert engine.focused_id == root_id

    def test_defaults_to_focused_node(self, engine, cross):
        root_id, near, _, _ = cross
        assert engine.navigate(None, "right") == near

    def test_hidden_nodes_are_skipped(self, engine, cross):
        root_id, near, far, _ = cross
        grandchild = engine.add_child(near, "bottom")
        engine.set_position(grandchild.id, 500, 400)
        engine.toggle_collapse(near)

        assert engine.navigate(root_id, "right") == near

    def test_lock_restricts_depth(self, engine, cross):
        root_id, near, _, _ = cross
        grandchild = engine.add_child(near, "bottom")
        engine.set_position(grandchild.id, 900, 900)
        engine.set_navigation_lock_level(2)

        assert engine.navigate(root_id, "right") == grandchild.id

    def test_navigation_keeps_multi_selection(self, engine, cross):
        root_id, near, far, left = cross
        engine.select_node(far)
        engine.select_node(left, multi=True)

        engine.navigate(left, "right")

        assert engine.selected_ids == {far, left}


class TestSelection:
    """Tests for select_node and friends."""

    def test_single_select_replaces_set(self, engine, cross):
        root_id, near, far, _ = cross
        engine.select_node(near)
        engine.select_node(far)
        assert engine.selected_ids == {far}
        assert engine.focused_id == far

    def test_multi_select_toggles(self, engine, cross):
        root_id, near, far, _ = cross
        engine.select_node(near)
        engine.select_node(far, multi=True)
        engine.select_node(near, multi=True)
        assert engine.selected_ids == {far}

    def test_select_unknown(self, engine):
        assert not engine.select_node("missing")

    def test_select_all_and_clear(self, engine, cross):
        engine.select_all()
        assert engine.selected_ids == set(cross)

        engine.clear_selection()
        assert engine.selected_ids == set()
        assert engine.focused_id is None
