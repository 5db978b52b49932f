"""
Studio Mutations -- Happy Path Tests

Covers:
  - add into the root, free containers, and named zones (index / append)
  - container mode and zone rule rejections leave the document untouched
  - unknown types rejected unless placeholders are allowed
  - update patches merge, None deletes
  - update_state accepts only state-editable properties
"""

import pytest

from studio.kernel.document import check_integrity
from studio.kernel.errors import (
    ComponentNotFoundError,
    InvalidContainerError,
    InvalidStateError,
    NonOverridablePropertyError,
    StructuralError,
    UnknownTypeError,
)
from studio.kernel.mutations import Operation, apply_operation
from studio.kernel.types import CONTAINER_ZONES, ComponentSchema

PANEL = ComponentSchema(type="Panel", container=CONTAINER_ZONES, zones=("content",))


class TestAdd:
    def test_text_into_named_zone(self, registry, make_engine):
        registry.register("Panel", PANEL)
        engine = make_engine()
        panel = engine.add("Panel")
        text = engine.add("Text", {"text": "Hi"}, panel, index=0, zone="content")

        doc = engine.snapshot()
        assert doc["zones"][f"{panel}:content"] == [text]
        assert doc["components"][text]["zone_id"] == f"{panel}:content"
        assert doc["components"][text]["parent_id"] is None
        assert check_integrity(doc) == []

    def test_full_zone_key_accepted(self, engine):
        card = engine.add("Card")
        heading = engine.add("Heading", parent_id=card, zone=f"{card}:header")
        assert engine.snapshot()["zones"][f"{card}:header"] == [heading]

    def test_zone_key_for_other_parent_rejected(self, engine):
        card = engine.add("Card")
        other = engine.add("Card")
        with pytest.raises(InvalidContainerError):
            engine.add("Heading", parent_id=card, zone=f"{other}:header")

    def test_defaults_to_root_and_appends(self, engine):
        a = engine.add("Section")
        b = engine.add("Section")
        doc = engine.snapshot()
        assert doc["components"]["root"]["children"] == [a, b]
        assert doc["components"][a]["parent_id"] == "root"

    def test_index_inserts(self, engine):
        a = engine.add("Text")
        b = engine.add("Text")
        c = engine.add("Text", index=1)
        assert engine.snapshot()["components"]["root"]["children"] == [a, c, b]

    def test_out_of_range_index_appends(self, engine):
        a = engine.add("Text")
        b = engine.add("Text", index=99)
        assert engine.snapshot()["components"]["root"]["children"] == [a, b]

    def test_free_container_gets_children_list(self, engine):
        section = engine.add("Section")
        text = engine.add("Text", parent_id=section)
        doc = engine.snapshot()
        assert doc["components"][section]["children"] == [text]
        assert "children" not in doc["components"][text]

    def test_properties_are_copied(self, engine):
        props = {"text": "Hi", "fontSize": {"mobile": 14}}
        text = engine.add("Text", props)
        props["fontSize"]["mobile"] = 99
        assert engine.snapshot()["components"][text]["properties"]["fontSize"] == {"mobile": 14}

    def test_unknown_type_rejected(self, engine):
        before = engine.snapshot()
        with pytest.raises(UnknownTypeError):
            engine.add("Carousel")
        assert engine.snapshot() == before

    def test_unknown_type_as_placeholder(self, make_engine):
        engine = make_engine(allow_placeholders=True)
        cid = engine.add("Carousel", {"slides": 3})
        assert engine.snapshot()["components"][cid]["type"] == "Carousel"

    def test_missing_parent(self, engine):
        with pytest.raises(ComponentNotFoundError):
            engine.add("Text", parent_id="nope")


class TestContainerRules:
    def test_leaf_does_not_accept_children(self, engine):
        text = engine.add("Text")
        before = engine.snapshot()
        with pytest.raises(InvalidContainerError):
            engine.add("Text", parent_id=text)
        assert engine.snapshot() == before

    def test_zone_container_needs_a_zone(self, engine):
        card = engine.add("Card")
        with pytest.raises(InvalidContainerError):
            engine.add("Text", parent_id=card)

    def test_undeclared_zone(self, engine):
        card = engine.add("Card")
        with pytest.raises(InvalidContainerError):
            engine.add("Text", parent_id=card, zone="sidebar")

    def test_free_container_has_no_zones(self, engine):
        section = engine.add("Section")
        with pytest.raises(InvalidContainerError):
            engine.add("Text", parent_id=section, zone="content")

    def test_zone_allowed_types(self, engine):
        card = engine.add("Card")
        with pytest.raises(InvalidContainerError):
            engine.add("Button", parent_id=card, zone="header")
        engine.add("Button", parent_id=card, zone="footer")

    def test_zone_max_children(self, engine):
        card = engine.add("Card")
        engine.add("Heading", parent_id=card, zone="header")
        engine.add("Text", parent_id=card, zone="header")
        before = engine.snapshot()
        with pytest.raises(InvalidContainerError):
            engine.add("Image", parent_id=card, zone="header")
        assert engine.snapshot() == before


class TestUpdate:
    def test_patch_merges(self, engine):
        button = engine.add("Button", {"text": "Go", "link": "/a"})
        engine.update(button, {"text": "Buy"})
        props = engine.snapshot()["components"][button]["properties"]
        assert props == {"text": "Buy", "link": "/a"}

    def test_none_deletes_key(self, engine):
        button = engine.add("Button", {"text": "Go", "link": "/a"})
        engine.update(button, {"link": None})
        assert engine.snapshot()["components"][button]["properties"] == {"text": "Go"}

    def test_responsive_value_stored_whole(self, engine):
        button = engine.add("Button")
        engine.update(button, {"width": {"mobile": "100%", "desktop": "50%"}})
        assert engine.snapshot()["components"][button]["properties"]["width"] == {"mobile": "100%", "desktop": "50%"}

    def test_missing_component(self, engine):
        with pytest.raises(ComponentNotFoundError):
            engine.update("ghost", {"text": "x"})


class TestUpdateState:
    def test_hover_override(self, engine):
        button = engine.add("Button")
        engine.update_state(button, "hover", {"backgroundColor": "#111"})
        record = engine.snapshot()["components"][button]
        assert record["state_overrides"] == {"hover": {"backgroundColor": "#111"}}
        assert "backgroundColor" not in record["properties"]

    def test_non_overridable_property(self, engine):
        button = engine.add("Button", {"text": "Go"})
        before = engine.snapshot()
        revision = engine.revision
        with pytest.raises(NonOverridablePropertyError):
            engine.update_state(button, "hover", {"text": "Gone"})
        assert engine.snapshot() == before
        assert engine.revision == revision

    def test_property_editable_elsewhere_but_not_on_this_type(self, engine):
        heading = engine.add("Heading")
        with pytest.raises(NonOverridablePropertyError):
            engine.update_state(heading, "hover", {"backgroundColor": "#111"})

    def test_unknown_state(self, engine):
        button = engine.add("Button")
        with pytest.raises(InvalidStateError):
            engine.update_state(button, "visited", {"color": "#111"})

    def test_default_is_not_an_override_state(self, engine):
        button = engine.add("Button")
        with pytest.raises(InvalidStateError):
            engine.update_state(button, "default", {"color": "#111"})

    def test_empty_overrides_pruned(self, engine):
        button = engine.add("Button")
        engine.update_state(button, "hover", {"backgroundColor": "#111"})
        engine.update_state(button, "hover", {"backgroundColor": None})
        assert "state_overrides" not in engine.snapshot()["components"][button]


class TestApplyOperation:
    def test_input_document_untouched(self, engine, registry):
        doc = engine.snapshot()
        new_doc, cid = apply_operation(doc, Operation("component.add", {"type": "Text", "id": "t1"}), registry)
        assert cid == "t1"
        assert "t1" not in doc["components"]
        assert new_doc["components"]["root"]["children"] == ["t1"]

    def test_duplicate_id_rejected(self, engine, registry):
        doc, _ = apply_operation(engine.snapshot(), Operation("component.add", {"type": "Text", "id": "t1"}), registry)
        with pytest.raises(StructuralError):
            apply_operation(doc, Operation("component.add", {"type": "Text", "id": "t1"}), registry)

    def test_unknown_operation(self, engine, registry):
        with pytest.raises(ValueError):
            apply_operation(engine.snapshot(), Operation("component.explode"), registry)
