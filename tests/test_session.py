"""
End-to-end tests: edits through a FormSession keep logic and text in sync.

Run with: pytest tests/test_session.py -v
"""

import json

import pytest

from formlingo import FormSession, SessionConfig
from formlingo.diagnostics import PARSE_WARNING


@pytest.fixture
def session():
    return FormSession(SessionConfig(languages=["en", "es"]))


def label(node):
    return node.itext["label_itext"]


class TestSetup:
    """Session construction and node creation."""

    def test_languages_from_config(self, session):
        assert session.itext.get_languages() == ["en", "es"]
        assert session.itext.default_language == "en"

    def test_new_node_gets_label(self, session):
        age = session.add_node("Int", "age")
        assert label(age).default_value() == "age"
        assert session.display_name(age) == "age"

    def test_property_edit_recomputes_references(self, session):
        age = session.add_node("Int", "age")
        q = session.add_node("Text", "q")
        session.set_property(q, "relevant", "/data/age > 5")
        assert [r.ref for r in session.logic.references_from(q)] == [age.ufid]

        session.set_property(q, "relevant", "/data/nope = 1")
        assert f"{q.ufid}-relevant-badpath" in session.diagnostics

        session.set_property(q, "relevant", "")
        assert session.logic.references_from(q) == []
        assert f"{q.ufid}-relevant-badpath" not in session.diagnostics

    def test_plain_properties_are_not_parsed(self, session):
        q = session.add_node("Text", "q")
        session.set_property(q, "label", "/data/nope")
        assert len(session.diagnostics) == 0


class TestRename:
    """Renaming a question."""

    def test_expressions_follow(self, session):
        age = session.add_node("Int", "age")
        q = session.add_node("Text", "q", relevant="/data/age > 5")
        session.rename(age, "years")
        assert q.properties["relevant"] == "/data/years > 5"
        assert [r.path for r in session.logic.references_to(age)] == ["/data/years"]

    def test_label_follows_id(self, session):
        age = session.add_node("Int", "age")
        session.rename(age, "years")
        assert label(age).default_value() == "years"

    def test_custom_label_kept(self, session):
        age = session.add_node("Int", "age")
        label(age).set_default_value("How old are you?")
        session.rename(age, "years")
        assert label(age).default_value() == "How old are you?"

    def test_output_refs_follow_with_word_boundary(self, session):
        session.add_node("Text", "b")
        session.add_node("Text", "bx")
        q = session.add_node("Text", "q")
        label(q).set_default_value('Value <output value="/data/b"/> and <output value="/data/bx"/>')
        session.rename(session.get_node("b"), "c")
        assert label(q).default_value() == (
            'Value <output value="/data/c" /> and <output value="/data/bx"/>'
        )

    def test_label_change_events(self, session):
        session.add_node("Text", "name")
        q = session.add_node("Text", "q")
        label(q).set_default_value('Hi <output value="/data/name"/>')
        events = []
        session.on("label-text-changed", events.append)
        session.rename(session.get_node("name"), "first")
        nodes = [e.node for e in events]
        assert q in nodes
        assert session.get_node("first") in nodes

    def test_group_rename_moves_descendants(self, session):
        group = session.add_node("Group", "g")
        session.add_node("Int", "a", group)
        session.add_node("Int", "b", group)
        q = session.add_node("Text", "q", relevant="/data/g/a + /data/g/b > 3")
        label(q).set_default_value('Sum of <output value="/data/g/a"/>')

        changes = []
        session.tree.on("property-changed", lambda e: changes.append(e) if e.node is q else None)
        session.rename(group, "h")

        assert q.properties["relevant"] == "/data/h/a + /data/h/b > 3"
        assert label(q).default_value() == 'Sum of <output value="/data/h/a" />'
        assert len(changes) == 1

    def test_invalid_expression_untouched(self, session):
        age = session.add_node("Int", "age")
        q = session.add_node("Text", "q", relevant="/data/age >")
        session.rename(age, "years")
        assert q.properties["relevant"] == "/data/age >"

    def test_duplicate_sibling_id_rejected(self, session):
        session.add_node("Int", "age")
        other = session.add_node("Int", "other")
        with pytest.raises(ValueError):
            session.rename(other, "age")


class TestMove:
    """Moving a question into a group."""

    def test_expressions_follow(self, session):
        group = session.add_node("Group", "g")
        x = session.add_node("Int", "x")
        q = session.add_node("Text", "q", relevant="/data/x > 1")
        label(q).set_default_value('<output value="/data/x"/>')
        session.move(x, group)
        assert session.tree.get_absolute_path(x) == "/data/g/x"
        assert q.properties["relevant"] == "/data/g/x > 1"
        assert label(q).default_value() == '<output value="/data/g/x" />'

    def test_moved_node_keeps_its_own_references(self, session):
        group = session.add_node("Group", "g")
        session.add_node("Int", "age")
        q = session.add_node("Text", "q", relevant="/data/age > 1")
        session.move(q, group)
        assert q.properties["relevant"] == "/data/age > 1"
        assert session.logic.references_from(q)[0].source_path == "/data/g/q"

    def test_cannot_move_into_itself(self, session):
        group = session.add_node("Group", "g")
        inner = session.add_node("Group", "inner", group)
        with pytest.raises(ValueError):
            session.move(group, inner)


class TestDuplicate:
    """Copying a group rewrites references inside the copy only."""

    @pytest.fixture
    def form(self, session):
        group = session.add_node("Group", "g")
        session.add_node("Int", "a", group)
        b = session.add_node("Text", "b", group, relevant="/data/g/a > 1")
        label(b).set_default_value('You said <output value="/data/g/a"/>')
        outside = session.add_node("Text", "o", relevant="/data/g/a = 2")
        return group, b, outside

    def test_copy_is_rewritten(self, session, form):
        group, b, outside = form
        copy = session.duplicate(group)
        assert copy.node_id == "copy-1-of-g"
        b_copy = copy.children[1]
        assert b_copy.properties["relevant"] == "/data/copy-1-of-g/a > 1"
        assert label(b_copy).default_value() == 'You said <output value="/data/copy-1-of-g/a" />'

    def test_original_and_outside_unchanged(self, session, form):
        group, b, outside = form
        session.duplicate(group)
        assert b.properties["relevant"] == "/data/g/a > 1"
        assert label(b).default_value() == 'You said <output value="/data/g/a"/>'
        assert outside.properties["relevant"] == "/data/g/a = 2"

    def test_copy_references_point_at_copy(self, session, form):
        group, b, outside = form
        copy = session.duplicate(group)
        a_copy, b_copy = copy.children
        assert [r.ref for r in session.logic.references_from(b_copy)] == [a_copy.ufid]

    def test_copy_has_own_items(self, session, form):
        group, b, outside = form
        copy = session.duplicate(group)
        b_copy = copy.children[1]
        assert label(b_copy) is not label(b)
        assert label(b_copy).key != label(b).key

    def test_second_copy_numbered(self, session, form):
        group, _, _ = form
        session.duplicate(group)
        assert session.duplicate(group).node_id == "copy-2-of-g"


class TestRemove:
    """Deleting a referenced question."""

    def test_dependents_warn(self, session):
        age = session.add_node("Int", "age")
        q = session.add_node("Text", "q", relevant="/data/age > 5")
        session.remove(age)
        diagnostic = session.diagnostics.get(f"{q.ufid}-relevant-badpath")
        assert diagnostic.level == PARSE_WARNING
        assert "/data/age" in diagnostic.message
        assert [r.ref for r in session.logic.references_from(q)] == [""]

    def test_removed_node_records_dropped(self, session):
        session.add_node("Int", "age")
        q = session.add_node("Text", "q", relevant="/data/nope")
        session.remove(q)
        assert session.logic.all == []
        assert len(session.diagnostics) == 0


class TestDisplay:
    """Display names and itext ids."""

    def test_ids_language(self, session):
        age = session.add_node("Int", "age")
        label(age).set_default_value("Age")
        assert session.display_name(age) == "Age"
        assert session.display_name(age, "_ids") == "age"

    def test_falls_back_to_node_id(self, session):
        age = session.add_node("Int", "age")
        label(age).set_default_value("")
        assert session.display_name(age) == "age"

    def test_set_itext_id_unlink(self, session):
        a = session.add_node("Text", "a")
        b = session.add_node("Text", "b")
        b.itext["label_itext"] = label(a)
        item = session.set_itext_id(b, "label", "custom-label", unlink=True)
        assert label(b) is item
        assert label(a).id != "custom-label"
        assert item.auto_id is False

    def test_set_itext_id_missing_slot(self, session):
        group = session.add_node("Group", "g")
        with pytest.raises(KeyError):
            session.set_itext_id(group, "hint", "x")


class TestTranslations:
    """XML and TSV output from a session."""

    def test_itext_xml(self, session):
        session.add_node("Int", "age")
        xml = session.itext_xml()
        assert '<text id="age-label">' in xml
        assert '<translation lang="en" default="">' in xml

    def test_export_import(self, session):
        age = session.add_node("Int", "age")
        rows = session.export_translations().split("\n")
        assert rows[1].startswith("age-label\tage\t")
        applied = session.import_translations("label\tdefault-es\nage-label\tedad")
        assert applied == 1
        assert label(age).get("es") == "edad"

    def test_load_itext_xml_warns_on_unknown_language(self, session):
        session.load_itext_xml(
            '<itext><translation lang="de"><text id="x"><value>X</value></text></translation></itext>'
        )
        assert len(session.diagnostics.by_level(PARSE_WARNING)) == 1


class TestValidate:
    """Session validation."""

    def test_clean_form(self, session):
        session.add_node("Int", "age")
        assert session.validate() == {}

    def test_validation_message_without_condition(self, session):
        q = session.add_node("Text", "q")
        q.itext["constraint_msg_itext"].set_default_value("Too big")
        problems = session.validate()
        assert list(problems) == ["/data/q"]
        assert "Validation Condition".lower() in problems["/data/q"][0]


class TestPersistence:
    """Saving and loading project files."""

    @pytest.fixture
    def saved(self, session, tmp_path):
        group = session.add_node("Group", "g")
        session.add_node("Int", "age", group)
        q = session.add_node("Text", "q", relevant="/data/g/age > 5")
        label(q).set_default_value("Question")
        label(q).get_form("default").set_value("es", "Pregunta")
        session.set_itext_id(q, "label", "custom-q")
        path = session.save(tmp_path / "forms" / "survey.json")
        return path

    def test_file_is_json(self, saved):
        data = json.loads(saved.read_text(encoding="utf-8"))
        assert data["languages"] == ["en", "es"]
        assert data["translations"]["custom-q"]["default"] == {"en": "Question", "es": "Pregunta"}
        assert [n["id"] for n in data["nodes"]] == ["g", "q"]

    def test_round_trip(self, saved):
        loaded = FormSession.load(saved)
        q = loaded.get_node("/data/q")
        age = loaded.get_node("/data/g/age")
        assert q.properties["relevant"] == "/data/g/age > 5"
        assert [r.ref for r in loaded.logic.references_from(q)] == [age.ufid]
        assert label(q).id == "custom-q"
        assert label(q).auto_id is False
        assert label(q).get("es") == "Pregunta"
        assert label(age).auto_id is True
        assert label(age).default_value() == "age"

    def test_loaded_session_tracks_renames(self, saved):
        loaded = FormSession.load(saved)
        loaded.rename(loaded.get_node("g"), "section")
        assert loaded.get_node("q").properties["relevant"] == "/data/section/age > 5"

    def test_forward_references_resolve(self):
        data = {
            "config": {"languages": ["en"]},
            "nodes": [
                {"kind": "Text", "id": "q", "properties": {"relevant": "/data/later = 1"}},
                {"kind": "Int", "id": "later"},
            ],
        }
        loaded = FormSession.from_dict(data)
        assert len(loaded.diagnostics) == 0
        assert loaded.logic.all[0].ref == loaded.get_node("later").ufid

    def test_numeric_property_values(self):
        data = {
            "config": {"languages": ["en"]},
            "nodes": [{"kind": "Repeat", "id": "r", "properties": {"repeat_count": 3}}],
        }
        loaded = FormSession.from_dict(data)
        repeat = loaded.get_node("r")
        assert repeat.properties["repeat_count"] == 3
        assert loaded.logic.references_from(repeat) == []
        assert len(loaded.diagnostics) == 0

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FormSession.load(tmp_path / "missing.json")
