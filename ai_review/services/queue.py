# ai_review/services/queue.py
"""
Redis Streams transport for domain events.

The topic exchange is a family of streams named "<EVENTS_EXCHANGE>:<routing_key>".
Publishing a topic appends to its stream; a consumer "binds" a routing key by
creating its consumer group on that stream. Every entry carries two fields:
"payload" (the JSON domain event) and "attempts" (delivery attempts so far).

Exchange streams are shared with other services' groups, so this module only
ever XACKs them; trimming is the producers' job. Retries go to a retry stream
private to this service's group, which is also the only stream we XDEL from.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as aioredis

from ai_review.core.config import settings
from ai_review.models.events import build_event

logger = logging.getLogger(__name__)

GROUP_NAME = settings.AI_QUEUE_NAME

_client: Optional[aioredis.Redis] = None

def stream_key(routing_key: str) -> str:
    return f"{settings.EVENTS_EXCHANGE}:{routing_key}"

def retry_key() -> str:
    return f"{settings.EVENTS_EXCHANGE}:{GROUP_NAME}:retry"

def dlq_key() -> str:
    return f"{settings.EVENTS_EXCHANGE}:dlq"

def _get_redis_client() -> aioredis.Redis:
    global _client
    if _client is None:
        url = getattr(settings, "REDIS_URL", "redis://localhost:6379/0")
        _client = aioredis.from_url(url, decode_responses=True)
    return _client

async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

async def ensure_group_exists(stream: str, group: str = GROUP_NAME, start_id: str = "$"):
    client = _get_redis_client()
    # create stream & group if not exist. XGROUP CREATE <stream> <group> <start_id> MKSTREAM
    try:
        await client.xgroup_create(name=stream, groupname=group, id=start_id, mkstream=True)
    except Exception as exc:
        # If group exists, Redis raises BUSYGROUP; ignore
        if "BUSYGROUP" in str(exc).upper():
            return
        raise

async def bind_queue(routing_keys: Iterable[str], group: str = GROUP_NAME) -> List[str]:
    """
    Create the shared consumer group on every bound routing key plus the
    group's own retry stream; returns the stream keys to read.
    """
    streams = []
    for key in routing_keys:
        stream = stream_key(key)
        await ensure_group_exists(stream, group)
        streams.append(stream)
    # nobody else writes the retry stream, so anything already in it is ours
    await ensure_group_exists(retry_key(), group, start_id="0")
    streams.append(retry_key())
    return streams

async def publish_event(topic: str, payload: Dict[str, Any]) -> Optional[str]:
    """
    Fire-and-forget publish of a domain event. Transport errors are logged and
    swallowed; returns the stream id or None.
    """
    event = build_event(topic, payload, settings.SERVICE_NAME)
    entry = {
        "payload": event.model_dump_json(),
        "attempts": "0",
    }
    try:
        client = _get_redis_client()
        sid = await client.xadd(stream_key(topic), entry)
        logger.debug("Published %s (%s) -> %s", topic, event.event_id, sid)
        return str(sid)
    except Exception:
        logger.exception("Failed to publish event %s", topic)
        return None

async def ack_message(stream: str, msg_id: str, group: str = GROUP_NAME) -> None:
    client = _get_redis_client()
    await client.xack(stream, group, msg_id)
    if stream == retry_key():
        await client.xdel(stream, msg_id)

async def requeue_message(origin: str, body: Optional[str], attempts: int) -> str:
    """
    Queue the same body again for this group only, on the private retry stream.
    `origin` is the exchange stream the event was first delivered on.
    """
    client = _get_redis_client()
    entry = {
        "payload": body or "",
        "attempts": str(attempts),
        "stream": origin,
    }
    sid = await client.xadd(retry_key(), entry)
    return str(sid)

# helper to move to DLQ with metadata
async def move_to_dlq(stream_id: str, stream: str, body: Optional[str], reason: str, attempts: int = 0):
    client = _get_redis_client()
    entry = {
        "original_id": stream_id,
        "stream": stream,
        "payload": body or "",
        "attempts": str(attempts),
        "reason": reason,
    }
    return await client.xadd(dlq_key(), entry)

def decode_body(body: Optional[str]) -> Dict[str, Any]:
    return json.loads(body) if body else {}
