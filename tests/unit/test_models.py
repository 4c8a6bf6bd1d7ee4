"""Unit tests for core type definitions."""

import pytest
from pydantic import ValidationError

from change_relay.models import (
    DELETE_FIELD,
    Change,
    ProcessingStatus,
    RecordMetadata,
    RecordSnapshot,
    RenderedOutput,
    TemplateData,
    get_field,
)


class TestGetField:
    """Tests for get_field()."""

    def test_top_level(self):
        assert get_field({"a": 1}, "a") == 1

    def test_nested(self):
        assert get_field({"a": {"b": {"c": "x"}}}, "a.b.c") == "x"

    def test_missing_returns_default(self):
        assert get_field({"a": {}}, "a.b") is None
        assert get_field({"a": {}}, "a.b", default="d") == "d"

    def test_through_non_mapping(self):
        assert get_field({"a": "text"}, "a.b") is None

    def test_explicit_null_is_returned(self):
        assert get_field({"a": None}, "a", default="d") is None


class TestDeleteField:
    """Tests for the DELETE_FIELD sentinel."""

    def test_is_singleton(self):
        assert type(DELETE_FIELD)() is DELETE_FIELD

    def test_repr(self):
        assert repr(DELETE_FIELD) == "DELETE_FIELD"


class TestRecordMetadata:
    """Tests for RecordMetadata."""

    def test_reads_camel_case(self):
        metadata = RecordMetadata.model_validate(
            {"status": "pending", "currentVersion": 2, "inputFingerprint": "f" * 64}
        )
        assert metadata.status is ProcessingStatus.PENDING
        assert metadata.current_version == 2
        assert metadata.input_fingerprint == "f" * 64

    def test_to_document_omits_unset(self):
        metadata = RecordMetadata(status=ProcessingStatus.PROCESSED)
        assert metadata.to_document() == {"status": "processed"}

    def test_unknown_keys_survive_round_trip(self):
        metadata = RecordMetadata.model_validate({"status": "processed", "owner": "team-a"})
        assert metadata.to_document() == {"status": "processed", "owner": "team-a"}

    def test_invalid_status_rejected(self):
        with pytest.raises(ValidationError):
            RecordMetadata.model_validate({"status": "done"})

    def test_negative_version_rejected(self):
        with pytest.raises(ValidationError):
            RecordMetadata.model_validate({"currentVersion": -1})


class TestRecordSnapshot:
    """Tests for RecordSnapshot."""

    def test_missing(self):
        snapshot = RecordSnapshot.missing("requests/a")
        assert snapshot.exists is False
        assert snapshot.data == {}
        assert snapshot.metadata.status is None

    def test_get(self):
        snapshot = RecordSnapshot(record_id="requests/a", data={"req": {"url": "x"}})
        assert snapshot.get("req.url") == "x"
        assert snapshot.get("req.method") is None

    def test_metadata_not_a_mapping(self):
        snapshot = RecordSnapshot(record_id="requests/a", data={"metadata": "junk"})
        assert snapshot.metadata == RecordMetadata()

    def test_empty_record_id_rejected(self):
        with pytest.raises(ValidationError):
            RecordSnapshot(record_id="")


class TestOtherModels:
    """Tests for Change, TemplateData and RenderedOutput."""

    def test_change(self):
        change = Change(
            record_id="requests/a",
            before=RecordSnapshot.missing("requests/a"),
            after=RecordSnapshot(record_id="requests/a", data={"input": "hi"}),
            event_id="evt-1",
        )
        assert change.after.get("input") == "hi"
        assert change.event_id == "evt-1"

    def test_template_data_from_document(self):
        template = TemplateData.model_validate({"template": {"g": "Hello {{name}}"}, "version": 3})
        assert template.body == {"g": "Hello {{name}}"}
        assert template.version == 3

    def test_template_data_requires_body(self):
        with pytest.raises(ValidationError):
            TemplateData.model_validate({"version": 1})

    def test_template_data_body_must_be_mapping(self):
        with pytest.raises(ValidationError):
            TemplateData.model_validate({"template": "Hello", "version": 1})

    def test_rendered_output(self):
        rendered = RenderedOutput(data={"g": "Hello Ann"}, current_version=7)
        assert rendered.current_version == 7
