# ai_review/models/events.py
"""
Domain event envelope and the inbound event variants the AI pipeline reacts to.

Inbound payloads are loosely shaped maps. Each routing key we bind gets its own
payload model so the consumer never reads raw dicts; unknown fields are kept
(extra="allow") and unknown event types fall back to the plain envelope.
Ids are optional at parse time: an event we skip may lack them, and the
consumer checks them only once an event passes its routing predicate.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union
import uuid

from pydantic import BaseModel, ConfigDict, Field, model_validator

# ----- Inbound routing keys -----
APPLICATION_CREATED = "application.created"
APPLICATION_STAGE_CHANGED = "application.stage_changed"
DOCUMENT_PROCESSED = "document.processed"

BOUND_ROUTING_KEYS = (APPLICATION_CREATED, APPLICATION_STAGE_CHANGED, DOCUMENT_PROCESSED)

# ----- Outbound lifecycle events -----
AI_REVIEW_STARTED = "ai_review.started"
AI_REVIEW_COMPLETED = "ai_review.completed"
AI_REVIEW_FAILED = "ai_review.failed"
RESUME_METADATA_EXTRACTED = "resume.metadata.extracted"

AI_REVIEW_STAGE = "ai_review"


class MissingFieldError(ValueError):
    """An event passed its routing predicate but lacks a field needed to act on it."""


class DomainEvent(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    event_type: str
    event_id: str = ""
    timestamp: Optional[str] = None
    source_service: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)


class ApplicationCreatedPayload(_Payload):
    application_id: Optional[str] = None
    candidate_id: Optional[str] = None
    job_id: Optional[str] = None
    stage: Optional[str] = None


class ApplicationStageChangedPayload(_Payload):
    application_id: Optional[str] = None
    candidate_id: Optional[str] = None
    job_id: Optional[str] = None
    new_stage: Optional[str] = None
    # canonical name for the prior stage; producers also send "previous_stage"
    old_stage: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_prior_stage(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("old_stage") and data.get("previous_stage"):
            data = dict(data)
            data["old_stage"] = data["previous_stage"]
        return data


class DocumentProcessedPayload(_Payload):
    document_id: Optional[str] = None
    processing_status: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None


class ApplicationCreatedEvent(DomainEvent):
    event_type: Literal["application.created"]
    payload: ApplicationCreatedPayload


class ApplicationStageChangedEvent(DomainEvent):
    event_type: Literal["application.stage_changed"]
    payload: ApplicationStageChangedPayload


class DocumentProcessedEvent(DomainEvent):
    event_type: Literal["document.processed"]
    payload: DocumentProcessedPayload


InboundEvent = Union[ApplicationCreatedEvent, ApplicationStageChangedEvent, DocumentProcessedEvent, DomainEvent]

EVENT_MODELS = {
    APPLICATION_CREATED: ApplicationCreatedEvent,
    APPLICATION_STAGE_CHANGED: ApplicationStageChangedEvent,
    DOCUMENT_PROCESSED: DocumentProcessedEvent,
}


def parse_event(raw: Dict[str, Any]) -> InboundEvent:
    """
    Validate a decoded message body into the variant for its event_type.
    Raises pydantic.ValidationError when the body is not a usable event.
    """
    envelope = DomainEvent.model_validate(raw)
    model = EVENT_MODELS.get(envelope.event_type)
    if model is None:
        return envelope
    return model.model_validate(raw)


def build_event(event_type: str, payload: Dict[str, Any], source_service: str) -> DomainEvent:
    return DomainEvent(
        event_type=event_type,
        event_id=str(uuid.uuid4()),
        timestamp=datetime.now(timezone.utc).isoformat(),
        source_service=source_service,
        payload=payload,
    )
