"""
Tests for reading and writing the <itext> block.

Run with: pytest tests/test_itext_xml.py -v
"""

import logging
import xml.etree.ElementTree as ET

import pytest

from formlingo.diagnostics import DiagnosticLog, PARSE_WARNING
from formlingo.itext import ItextModel
from formlingo.itext_xml import parse_itext, write_itext


@pytest.fixture
def model():
    model = ItextModel()
    model.add_language("en")
    model.add_language("fr")
    return model


SAMPLE = """
<h:html xmlns:h="http://www.w3.org/1999/xhtml" xmlns="http://www.w3.org/2002/xforms">
  <h:head>
    <model>
      <itext>
        <translation lang="en" default="">
          <text id="age-label">
            <value>How old is <output value="/data/name"/>?</value>
            <value form="audio">jr://file/commcare/audio/age.mp3</value>
          </text>
        </translation>
        <translation lang="fr">
          <text id="age-label">
            <value>Quel âge a <output value="/data/name"/> ?</value>
          </text>
        </translation>
        <translation lang="de">
          <text id="age-label">
            <value>Wie alt?</value>
          </text>
        </translation>
      </itext>
    </model>
  </h:head>
</h:html>
"""


class TestWrite:
    """Serialization of collected items."""

    def test_no_languages(self):
        assert write_itext(ItextModel(), []) == ""

    def test_structure(self, model):
        item = model.create_item("age-label")
        item.set_default_value("Age")
        item.get_or_create_form("audio").set_value("en", "age.mp3")
        root = ET.fromstring(write_itext(model, [item]))

        translations = root.findall("translation")
        assert [t.get("lang") for t in translations] == ["en", "fr"]
        assert translations[0].get("default") == ""
        assert translations[1].get("default") is None

        values = translations[0].find("text").findall("value")
        assert [(v.get("form"), v.text) for v in values] == [(None, "Age"), ("audio", "age.mp3")]

    def test_missing_translation_uses_default_language(self, model):
        item = model.create_item("q-label")
        item.set_default_value("Name")
        root = ET.fromstring(write_itext(model, [item]))
        fr_text = root.findall("translation")[1].find("text")
        assert fr_text.find("value").text == "Name"

    def test_empty_forms_not_written(self, model):
        item = model.create_item("q-label")
        item.set_default_value("Name")
        item.add_form("image")
        root = ET.fromstring(write_itext(model, [item]))
        assert len(root.find("translation/text").findall("value")) == 1

    def test_output_tags_are_markup(self, model):
        item = model.create_item("q-label")
        item.set_default_value('Hi <output value="/data/name" /> & bye')
        xml = write_itext(model, [item])
        value = ET.fromstring(xml).find("translation/text/value")
        assert value.text == "Hi "
        assert value[0].tag == "output"
        assert value[0].get("value") == "/data/name"
        assert value[0].tail == " & bye"
        assert "&amp;" in xml

    def test_other_markup_is_escaped(self, model):
        item = model.create_item("q-label")
        item.set_default_value("a < b")
        value = ET.fromstring(write_itext(model, [item])).find("translation/text/value")
        assert value.text == "a < b"
        assert len(value) == 0

    def test_malformed_output_tag_written_as_text(self, model, caplog):
        text = 'Total <output value="/data/a<b"/>'
        item = model.create_item("q-label")
        item.set_default_value(text)
        with caplog.at_level(logging.WARNING, logger="formlingo.itext_xml"):
            xml = write_itext(model, [item])
        value = ET.fromstring(xml).find("translation/text/value")
        assert value.text == text
        assert len(value) == 0
        assert "Malformed output tag" in caplog.text


class TestParse:
    """Loading translations."""

    def test_full_document(self):
        model = parse_itext(SAMPLE, ItextModel())
        assert model.get_languages() == ["en", "fr", "de"]
        assert model.default_language == "en"
        item = model.get_item("age-label")
        assert item.get("en") == 'How old is <output value="/data/name" />?'
        assert item.get("fr") == 'Quel âge a <output value="/data/name" /> ?'
        assert item.get("en", "audio") == "jr://file/commcare/audio/age.mp3"

    def test_configured_languages(self):
        warnings = DiagnosticLog()
        model = parse_itext(SAMPLE, ItextModel(), langs=["fr", "en"], warnings=warnings)
        assert model.get_languages() == ["fr", "en"]
        assert model.default_language == "fr"
        assert model.get_item("age-label").get("de") is None
        assert [d.level for d in warnings] == [PARSE_WARNING]
        assert "de" in list(warnings)[0].message

    def test_reuses_existing_items(self):
        model = ItextModel()
        existing = model.create_item("age-label")
        parse_itext(SAMPLE, model)
        assert model.get_item("age-label") is existing
        assert len(model) == 1

    def test_round_trip_keeps_output_tags(self, model):
        item = model.create_item("q-label")
        item.set_default_value('Hello <output value="/data/name" />')
        loaded = parse_itext(write_itext(model, [item]), ItextModel())
        assert loaded.get_item("q-label").get("en") == 'Hello <output value="/data/name" />'

    def test_round_trip_keeps_special_characters(self, model):
        text = 'A & b < c <output value="/data/x" /> d > e & f'
        item = model.create_item("q-label")
        item.set_default_value(text)
        once = parse_itext(write_itext(model, [item]), ItextModel())
        assert once.get_item("q-label").get("en") == text
        twice = parse_itext(write_itext(once, once.get_items()), ItextModel())
        assert twice.get_item("q-label").get("en") == text

    def test_no_itext_block(self):
        model = parse_itext("<h:html xmlns:h='http://www.w3.org/1999/xhtml'/>", ItextModel())
        assert len(model) == 0

    def test_malformed_xml(self):
        with pytest.raises(ET.ParseError):
            parse_itext("<itext><translation>", ItextModel())
