# tests/test_events.py
import pytest
from pydantic import ValidationError

from ai_review.models.events import (
    ApplicationCreatedEvent,
    ApplicationStageChangedEvent,
    DocumentProcessedEvent,
    DomainEvent,
    build_event,
    parse_event,
)


def test_stage_changed_accepts_previous_stage_alias():
    event = parse_event({
        "event_type": "application.stage_changed",
        "event_id": "e1",
        "payload": {"application_id": "A1", "previous_stage": "submitted", "new_stage": "ai_review"},
    })
    assert isinstance(event, ApplicationStageChangedEvent)
    assert event.payload.old_stage == "submitted"


def test_old_stage_wins_over_previous_stage():
    event = parse_event({
        "event_type": "application.stage_changed",
        "payload": {"application_id": "A1", "old_stage": "screen", "previous_stage": "draft", "new_stage": "ai_review"},
    })
    assert event.payload.old_stage == "screen"


def test_variants_keep_extra_payload_fields():
    event = parse_event({
        "event_type": "application.created",
        "payload": {"application_id": "A1", "stage": "ai_review", "recruiter_id": "R9"},
    })
    assert isinstance(event, ApplicationCreatedEvent)
    assert event.payload.model_extra["recruiter_id"] == "R9"


def test_document_processed_variant():
    event = parse_event({
        "event_type": "document.processed",
        "payload": {"document_id": "D1", "processing_status": "processed", "entity_type": "candidate"},
    })
    assert isinstance(event, DocumentProcessedEvent)
    assert event.payload.processing_status == "processed"


def test_unknown_event_type_falls_back_to_envelope():
    event = parse_event({"event_type": "placement.created", "payload": {"anything": 1}})
    assert type(event) is DomainEvent
    assert event.payload == {"anything": 1}


@pytest.mark.parametrize(
    "raw",
    [
        {"payload": {}},
        {"event_type": "application.created", "payload": "not a map"},
        {"event_type": "application.stage_changed", "payload": {"application_id": {"nested": True}}},
    ],
)
def test_invalid_events_raise(raw):
    with pytest.raises(ValidationError):
        parse_event(raw)


def test_build_event_sets_envelope_fields():
    event = build_event("ai_review.started", {"application_id": "A1"}, "ai-service")
    assert event.event_type == "ai_review.started"
    assert event.event_id
    assert event.timestamp
    assert event.source_service == "ai-service"


def test_numeric_ids_are_read_as_strings():
    event = parse_event({
        "event_type": "application.created",
        "event_id": 42,
        "payload": {"application_id": 7, "stage": "draft"},
    })
    assert event.event_id == "42"
    assert event.payload.application_id == "7"


def test_ids_are_optional_until_an_event_is_acted_on():
    created = parse_event({"event_type": "application.created", "payload": {"stage": "draft"}})
    moved = parse_event({"event_type": "application.stage_changed", "payload": {"new_stage": "interview"}})
    document = parse_event({"event_type": "document.processed", "payload": {"processing_status": "failed"}})
    assert created.payload.application_id is None
    assert moved.payload.application_id is None
    assert document.payload.document_id is None
