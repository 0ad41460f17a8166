"""
Unit tests for session materials

Tests the reference/attachment variant, legacy entries and validation rules.
"""

import json

import pytest

from tutorly.services.materials import (
    LEGACY_ATTACHMENT_PREFIX,
    PlainReference,
    StructuredAttachment,
    parse_material,
    parse_materials,
    readable_materials,
    serialize_material,
)


class TestParseMaterial:
    def test_plain_string_is_reference(self):
        assert parse_material("uploads/notes.pdf") == PlainReference(url="uploads/notes.pdf")

    def test_tagged_attachment(self):
        material = parse_material({
            "type": "attachment",
            "name": "Week 3 slides",
            "kind": "presentation",
            "url": "https://cdn.tutorly.lk/w3.pptx",
        })

        assert isinstance(material, StructuredAttachment)
        assert material.kind == "presentation"
        assert material.url == "https://cdn.tutorly.lk/w3.pptx"

    def test_legacy_prefixed_string(self):
        payload = {"name": "Reading", "type": "text", "content": "Chapter 4, exercises 1-10"}
        material = parse_material(LEGACY_ATTACHMENT_PREFIX + json.dumps(payload))

        assert material == StructuredAttachment(name="Reading", kind="text", content="Chapter 4, exercises 1-10")

    def test_mixed_list(self):
        materials = parse_materials([
            "https://drive.tutorly.lk/abc",
            {"type": "attachment", "name": "Quiz", "kind": "document"},
        ])

        assert [type(m) for m in materials] == [PlainReference, StructuredAttachment]

    def test_unknown_tag_rejected(self):
        with pytest.raises(ValueError):
            parse_material({"type": "mystery"})


class TestValidation:
    def test_link_requires_url(self):
        with pytest.raises(ValueError, match="URL"):
            StructuredAttachment(name="Video", kind="link")

    def test_text_requires_content(self):
        with pytest.raises(ValueError, match="content"):
            StructuredAttachment(name="Notes", kind="text", content="   ")

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            StructuredAttachment(name="Thing", kind="hologram")


class TestSerialize:
    def test_reference_stays_a_string(self):
        assert serialize_material(PlainReference(url="uploads/a.pdf")) == "uploads/a.pdf"

    def test_attachment_is_tagged_without_empty_fields(self):
        data = serialize_material(StructuredAttachment(name="Slides", kind="document", url="https://x.lk/s.pdf"))

        assert data == {"type": "attachment", "name": "Slides", "kind": "document", "url": "https://x.lk/s.pdf"}

    def test_legacy_entry_upgrades_to_tagged_form(self):
        legacy = LEGACY_ATTACHMENT_PREFIX + json.dumps({"name": "Clip", "type": "video", "url": "https://v.lk/1"})

        assert serialize_material(parse_material(legacy))["type"] == "attachment"


class TestReadableMaterials:
    """Stored entries that fail validation are shown as stored, never raised"""

    def test_invalid_legacy_link_passes_through(self):
        broken = LEGACY_ATTACHMENT_PREFIX + json.dumps({"name": "notes", "type": "link"})

        assert readable_materials(["uploads/a.pdf", broken]) == ["uploads/a.pdf", broken]

    def test_malformed_legacy_json_passes_through(self):
        broken = LEGACY_ATTACHMENT_PREFIX + "{not json"

        assert readable_materials([broken]) == [broken]

    def test_non_object_legacy_payload_passes_through(self):
        broken = LEGACY_ATTACHMENT_PREFIX + "[1, 2]"

        assert readable_materials([broken]) == [broken]

    def test_valid_entries_are_normalized(self):
        legacy = LEGACY_ATTACHMENT_PREFIX + json.dumps({"name": "Clip", "type": "video", "url": "https://v.lk/1"})

        readable, = readable_materials([legacy])

        assert readable["type"] == "attachment"
        assert readable["kind"] == "video"

    def test_reference_without_url_passes_through(self):
        broken = {"type": "reference"}

        assert readable_materials([broken]) == [broken]

    def test_empty(self):
        assert readable_materials(None) == []
