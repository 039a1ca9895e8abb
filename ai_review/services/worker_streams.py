# ai_review/services/worker_streams.py
"""
Domain event consumer for the AI pipeline.

- One consumer group (the shared "queue") on the streams of every bound routing key
- Manual acknowledgement: an entry is XACKed only once its outcome is decided
- application.created / application.stage_changed entering ai_review -> enrich + fit review;
  any failure is requeued onto the group's private retry stream with attempts + 1 until
  WORKER_MAX_ATTEMPTS, then moved to the DLQ stream
- An event that enters ai_review without its application_id goes straight to the DLQ
- document.processed for a candidate resume -> structured extraction; failures are
  reported by the analyzer and the entry is still acked
- Everything else is acked and skipped
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ai_review.core.config import Settings, settings
from ai_review.db.mongo import close_db
from ai_review.models.events import (
    AI_REVIEW_STAGE,
    BOUND_ROUTING_KEYS,
    ApplicationCreatedEvent,
    ApplicationStageChangedEvent,
    DocumentProcessedEvent,
    InboundEvent,
    MissingFieldError,
    parse_event,
)
from ai_review.models.review import AnalysisInput
from ai_review.repositories import documents
from ai_review.services.ai_client import ChatCompletionClient
from ai_review.services.enrichment import EnrichmentResolver
from ai_review.services.fit_review import FitReviewAnalyzer
from ai_review.services.queue import (
    GROUP_NAME,
    _get_redis_client,
    ack_message,
    bind_queue,
    close_redis,
    decode_body,
    move_to_dlq,
    requeue_message,
)
from ai_review.services.resume_extraction import ResumeExtractionAnalyzer

logger = logging.getLogger(__name__)

# Worker tuning
DEFAULT_MAX_ATTEMPTS = int(settings.WORKER_MAX_ATTEMPTS)
DEFAULT_PREFETCH = max(1, int(settings.WORKER_PREFETCH))
CLAIM_IDLE_MS = int(settings.WORKER_CLAIM_IDLE_MS)  # reclaim entries a dead consumer left pending
READ_BLOCK_MS = int(settings.WORKER_READ_BLOCK_MS)
PENDING_CHECK_INTERVAL = 10  # seconds

MIN_RESUME_TEXT_LENGTH = 50
RESUME_DOCUMENT_TYPE = "resume"
CANDIDATE_ENTITY_TYPE = "candidate"


@dataclass
class Pipeline:
    resolver: EnrichmentResolver
    fit_review: FitReviewAnalyzer
    resume_extraction: ResumeExtractionAnalyzer


def build_pipeline(config: Settings = settings) -> Pipeline:
    ai_client = ChatCompletionClient(config)
    return Pipeline(
        resolver=EnrichmentResolver(config),
        fit_review=FitReviewAnalyzer(ai_client),
        resume_extraction=ResumeExtractionAnalyzer(ai_client),
    )


def _require(value: Optional[str], field: str, event: InboundEvent) -> str:
    if not value:
        raise MissingFieldError(f"{event.event_type} event {event.event_id or '?'} has no {field}")
    return value


async def _run_fit_review(application_id: str, candidate_id: Optional[str], job_id: Optional[str], pipeline: Pipeline) -> None:
    partial = AnalysisInput(application_id=application_id, candidate_id=candidate_id, job_id=job_id)
    data = await pipeline.resolver.enrich(partial)
    await pipeline.fit_review.analyze(data, auto_transition=True)


async def _handle_application_created(event: ApplicationCreatedEvent, pipeline: Pipeline) -> None:
    p = event.payload
    if p.stage != AI_REVIEW_STAGE:
        logger.debug("Application %s created in stage %s; no AI review", p.application_id, p.stage)
        return
    application_id = _require(p.application_id, "application_id", event)
    logger.info("Application %s created in ai_review; starting AI review", application_id)
    await _run_fit_review(application_id, p.candidate_id, p.job_id, pipeline)


async def _handle_stage_changed(event: ApplicationStageChangedEvent, pipeline: Pipeline) -> None:
    p = event.payload
    if p.new_stage != AI_REVIEW_STAGE:
        logger.debug("Application %s moved %s -> %s; no AI review", p.application_id, p.old_stage, p.new_stage)
        return
    application_id = _require(p.application_id, "application_id", event)
    logger.info("Application %s moved %s -> ai_review; starting AI review", application_id, p.old_stage)
    await _run_fit_review(application_id, p.candidate_id, p.job_id, pipeline)


async def _handle_document_processed(event: DocumentProcessedEvent, pipeline: Pipeline) -> None:
    p = event.payload
    if p.processing_status != "processed":
        logger.debug("Document %s status %s; skipping extraction", p.document_id, p.processing_status)
        return
    document_id = _require(p.document_id, "document_id", event)

    try:
        document = await documents.get_document(document_id)
    except Exception:
        # extraction is best-effort; a lookup failure must not fail the event
        logger.exception("Could not load document %s for resume extraction", document_id)
        return

    if document is None:
        logger.info("Document %s not found; skipping extraction", document_id)
        return
    if document.get("document_type") != RESUME_DOCUMENT_TYPE:
        logger.info("Document %s is %s, not a resume; skipping extraction", document_id, document.get("document_type"))
        return
    if document.get("entity_type") != CANDIDATE_ENTITY_TYPE:
        logger.info("Document %s belongs to %s, not a candidate; skipping extraction", document_id, document.get("entity_type"))
        return
    text = documents.get_extracted_text(document)
    if len(text.strip()) < MIN_RESUME_TEXT_LENGTH:
        logger.info("Document %s has %d chars of extracted text; skipping extraction", document_id, len(text.strip()))
        return
    if documents.has_structured_data(document):
        logger.info("Document %s already has structured data; skipping extraction", document_id)
        return

    await pipeline.resume_extraction.process_document(document, text)


async def handle_event(event: InboundEvent, pipeline: Pipeline) -> None:
    """Route one event. Raising means requeue; MissingFieldError means dead-letter."""
    if isinstance(event, ApplicationCreatedEvent):
        await _handle_application_created(event, pipeline)
    elif isinstance(event, ApplicationStageChangedEvent):
        await _handle_stage_changed(event, pipeline)
    elif isinstance(event, DocumentProcessedEvent):
        await _handle_document_processed(event, pipeline)
    else:
        logger.debug("Ignoring event type %s", event.event_type)


async def _nack_requeue(stream: str, origin: str, msg_id: str, body: Optional[str], attempts: int, max_attempts: int) -> None:
    if max_attempts and attempts >= max_attempts:
        logger.error("Message %s failed %s times; moving to DLQ", msg_id, attempts)
        await move_to_dlq(msg_id, origin, body, reason=f"exceeded {max_attempts} attempts", attempts=attempts)
    else:
        new_id = await requeue_message(origin, body, attempts)
        logger.warning("Message %s failed (attempt %s/%s); requeued as %s", msg_id, attempts, max_attempts or "inf", new_id)
    await ack_message(stream, msg_id)


async def _process_message(
    stream: str,
    msg_id: str,
    data: Dict[str, Any],
    pipeline: Pipeline,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> bool:
    """
    Handle a single stream entry and settle it (ack, requeue or DLQ).
    Returns True when the event was handled or skipped, False when it was not.
    """
    body = data.get("payload")
    attempts = int(data.get("attempts") or 0)
    # retry entries carry the exchange stream they were first delivered on
    origin = data.get("stream") or stream

    try:
        event = parse_event(decode_body(body))
    except ValueError as exc:
        # JSONDecodeError and pydantic ValidationError; redelivery cannot fix these
        logger.error("Malformed message %s on %s: %s", msg_id, stream, exc)
        await move_to_dlq(msg_id, origin, body, reason=f"malformed event: {exc}", attempts=attempts)
        await ack_message(stream, msg_id)
        return False

    logger.info("Processing %s (%s), attempt %s", event.event_type, event.event_id or msg_id, attempts + 1)
    try:
        await handle_event(event, pipeline)
    except MissingFieldError as exc:
        logger.error("Unusable message %s on %s: %s", msg_id, stream, exc)
        await move_to_dlq(msg_id, origin, body, reason=f"malformed event: {exc}", attempts=attempts)
        await ack_message(stream, msg_id)
        return False
    except Exception:
        logger.exception("Error processing %s message %s", event.event_type, msg_id)
        await _nack_requeue(stream, origin, msg_id, body, attempts + 1, max_attempts)
        return False

    await ack_message(stream, msg_id)
    return True


async def _handle_pending_claims(client, streams: List[str], consumer_name: str, pipeline: Pipeline, max_attempts: int) -> None:
    """
    Claim and process entries another consumer left pending for >= CLAIM_IDLE_MS.
    """
    for stream in streams:
        pending = await client.xpending_range(stream, GROUP_NAME, min="-", max="+", count=10)
        stale = [p["message_id"] for p in pending or [] if p.get("time_since_delivered", 0) >= CLAIM_IDLE_MS]
        if not stale:
            continue
        logger.info("Claiming %d stale message(s) on %s", len(stale), stream)
        claimed = await client.xclaim(stream, GROUP_NAME, consumer_name, min_idle_time=CLAIM_IDLE_MS, message_ids=stale)
        for cid, data in claimed or []:
            if data is None:
                # entry was trimmed while pending
                await ack_message(stream, cid)
                continue
            await _process_message(stream, cid, dict(data), pipeline, max_attempts)


async def worker_loop(
    consumer_name: str = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    prefetch: int = DEFAULT_PREFETCH,
    pipeline: Pipeline = None,
):
    """
    Main worker loop polling the bound streams via the shared consumer group.
    At most `prefetch` messages are in flight; a new read only asks for as many
    entries as there are free slots, so one slow message never holds up the rest.
    """
    consumer_name = consumer_name or f"ai-worker-{uuid.uuid4().hex[:8]}"
    pipeline = pipeline or build_pipeline()
    client = _get_redis_client()
    logger.info("Worker '%s' starting and connecting to Redis...", consumer_name)
    streams = await bind_queue(BOUND_ROUTING_KEYS)
    in_flight = set()
    last_claim_check = 0.0

    def _settled(task: asyncio.Task) -> None:
        in_flight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            # settling failed (Redis error); the entry stays pending and is reclaimed later
            logger.error("Failed to settle message: %s", task.exception())

    while True:
        try:
            if time.monotonic() - last_claim_check >= PENDING_CHECK_INTERVAL:
                last_claim_check = time.monotonic()
                try:
                    await _handle_pending_claims(client, streams, consumer_name, pipeline, max_attempts)
                except Exception:
                    logger.exception("Error while handling pending claims")

            free = prefetch - len(in_flight)
            if free <= 0:
                await asyncio.wait(set(in_flight), return_when=asyncio.FIRST_COMPLETED)
                continue

            entries = await client.xreadgroup(
                groupname=GROUP_NAME,
                consumername=consumer_name,
                streams={s: ">" for s in streams},
                count=free,
                block=READ_BLOCK_MS,
            )
            if not entries:
                await asyncio.sleep(0.05)
                continue

            for stream, messages in entries:
                for msg_id, data in messages:
                    task = asyncio.create_task(_process_message(stream, msg_id, dict(data), pipeline, max_attempts))
                    in_flight.add(task)
                    task.add_done_callback(_settled)
        except asyncio.CancelledError:
            logger.info("Worker '%s' cancelled, shutting down.", consumer_name)
            break
        except Exception:
            logger.exception("Worker main loop error, sleeping briefly before retrying")
            await asyncio.sleep(1)

    if in_flight:
        logger.info("Waiting for %d in-flight message(s)", len(in_flight))
        await asyncio.gather(*in_flight, return_exceptions=True)


async def run_worker(consumer_name: str = None, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> None:
    """Run the worker loop, then release the Mongo and Redis clients."""
    try:
        await worker_loop(consumer_name=consumer_name, max_attempts=max_attempts)
    finally:
        close_db()
        await close_redis()
        logger.info("Closed Mongo and Redis clients")


if __name__ == "__main__":
    import sys

    from ai_review.core.logging_config import configure_logging

    configure_logging()
    # Allow optional args: consumer_name and max_attempts
    cname = None
    m_attempts = DEFAULT_MAX_ATTEMPTS
    if len(sys.argv) >= 2:
        cname = sys.argv[1]
    if len(sys.argv) >= 3:
        try:
            m_attempts = int(sys.argv[2])
        except ValueError:
            logger.warning("Ignoring invalid max_attempts %r", sys.argv[2])

    logger.info("Starting worker (consumer=%s, max_attempts=%s)...", cname or "auto", m_attempts)
    try:
        asyncio.run(run_worker(consumer_name=cname, max_attempts=m_attempts))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user; exiting.")
