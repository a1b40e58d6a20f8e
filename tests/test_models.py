"""
Tests for the form tree, node kinds, events and configuration.

Run with: pytest tests/test_models.py -v
"""

import pytest

from formlingo.config import SessionConfig
from formlingo.diagnostics import ERROR, DiagnosticLog
from formlingo.events import Eventful
from formlingo.kinds import KINDS, PROPERTIES, get_kind, property_label
from formlingo.models import FormTree


@pytest.fixture
def tree():
    return FormTree()


class TestPaths:
    """Absolute paths and lookup."""

    def test_nested_paths(self, tree):
        group = tree.add_node("Group", "g")
        q = tree.add_node("Text", "q", group)
        assert tree.get_absolute_path(q) == "/data/g/q"
        assert tree.get_absolute_path(q, exclude_root=True) == "/g/q"
        assert tree.get_by_path("/data/g/q") is q
        assert tree.get_by_ufid(q.ufid) is q

    def test_choice_items_have_no_path(self, tree):
        select = tree.add_node("Select", "color")
        red = tree.add_node("Item", "red", select)
        assert tree.get_absolute_path(red) is None
        assert tree.get_by_path("/data/color/red") is None

    def test_custom_root(self):
        tree = FormTree("survey")
        q = tree.add_node("Text", "q")
        assert tree.get_absolute_path(q) == "/survey/q"
        assert tree.get_by_path("/data/q") is None

    def test_walk_in_document_order(self, tree):
        g = tree.add_node("Group", "g")
        tree.add_node("Text", "a", g)
        tree.add_node("Text", "b")
        tree.add_node("Text", "first", position=0)
        assert [n.node_id for n in tree.walk()] == ["first", "g", "a", "b"]
        assert len(tree) == 4


class TestStructure:
    """Placement rules and notifications."""

    def test_item_needs_select(self, tree):
        with pytest.raises(ValueError):
            tree.add_node("Item", "x")

    def test_leaf_cannot_have_children(self, tree):
        q = tree.add_node("Text", "q")
        with pytest.raises(ValueError):
            tree.add_node("Text", "child", q)

    def test_unknown_kind(self, tree):
        with pytest.raises(ValueError):
            tree.add_node("Slider", "s")

    def test_sibling_ids_unique(self, tree):
        tree.add_node("Text", "q")
        with pytest.raises(ValueError):
            tree.add_node("Int", "q")

    def test_rename_event_carries_path_map(self, tree):
        g = tree.add_node("Group", "g")
        q = tree.add_node("Text", "q", g)
        events = []
        tree.on("node-renamed", events.append)
        tree.rename(g, "h")
        event = events[0]
        assert event.old_id == "g" and event.new_id == "h"
        assert event.path_map == {
            g.ufid: ["/data/g", "/data/h"],
            q.ufid: ["/data/g/q", "/data/h/q"],
        }

    def test_set_property_routes_node_id(self, tree):
        q = tree.add_node("Text", "q")
        events = []
        tree.on("node-renamed", events.append)
        tree.set_property(q, "node_id", "r")
        assert q.node_id == "r"
        assert len(events) == 1

    def test_unchanged_property_is_silent(self, tree):
        q = tree.add_node("Text", "q", relevant="1")
        events = []
        tree.on("property-changed", events.append)
        tree.set_property(q, "relevant", "1")
        assert events == []

    def test_duplicate_copies_properties(self, tree):
        q = tree.add_node("Text", "q", relevant="/data/x = 1")
        copy = tree.duplicate(q)
        assert copy.properties == q.properties
        assert copy.properties is not q.properties
        assert copy.ufid != q.ufid
        assert [n.node_id for n in tree.walk()] == ["q", "copy-1-of-q"]

    def test_remove(self, tree):
        g = tree.add_node("Group", "g")
        q = tree.add_node("Text", "q", g)
        events = []
        tree.on("node-removed", events.append)
        tree.remove(g)
        assert tree.get_by_ufid(q.ufid) is None
        assert events[0].removed == [g, q]
        assert events[0].old_path == "/data/g"


class TestEvents:
    """Observer lists."""

    def test_fire_in_subscription_order(self):
        source = Eventful()
        calls = []
        source.on("x", lambda e: calls.append(("first", e.value)))
        source.on("x", lambda e: calls.append(("second", e.value)))
        source.on("y", lambda e: calls.append(("other", None)))
        event = source.fire("x", value=1)
        assert calls == [("first", 1), ("second", 1)]
        assert event.type == "x"

    def test_off_by_context(self):
        source = Eventful()
        calls = []
        owner = object()
        source.on("x", calls.append, owner)
        source.on("x", calls.append)
        source.off(owner)
        source.fire("x")
        assert len(calls) == 1


class TestKindsAndConfig:

    def test_kind_slots(self):
        assert get_kind("Item").slots == ("label_itext",)
        assert get_kind("Repeat").is_special_group
        assert "repeat_count" in get_kind("Repeat").references

    def test_property_labels(self):
        assert property_label("relevant") == "Display Condition"
        assert property_label("unknown_thing") == "unknown_thing"

    def test_reference_properties_have_labels(self):
        for kind in KINDS.values():
            for name in kind.references:
                assert name in PROPERTIES, (kind.name, name)

    def test_config_round_trip(self):
        config = SessionConfig(languages=["en", "sw"], allowed_data_node_references=["meta/userID"])
        restored = SessionConfig.from_dict(config.to_dict())
        assert restored == config
        assert restored.default_language == "en"

    def test_diagnostic_log(self):
        log = DiagnosticLog()
        first = log.add(ERROR, "one")
        log.add(ERROR, "two")
        assert len(log.by_level(ERROR)) == 2
        log.clear(first.key)
        assert first.key not in log
        log.reset()
        assert len(log) == 0
