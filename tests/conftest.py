# tests/conftest.py
import copy
import uuid
from types import SimpleNamespace
from typing import Any, Dict, List
from unittest.mock import AsyncMock

import pytest

from ai_review.core.config import Settings


def _get_path(doc: Dict[str, Any], key: str):
    cur: Any = doc
    for part in key.split("."):
        if not isinstance(cur, dict):
            return None
        cur = cur.get(part)
    return cur


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, cond in query.items():
        value = _get_path(doc, key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            if "$in" in cond and value not in cond["$in"]:
                return False
            if "$gte" in cond and (value is None or value < cond["$gte"]):
                return False
            if "$lte" in cond and (value is None or value > cond["$lte"]):
                return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, items: List[Dict[str, Any]]):
        self._items = list(items)

    def sort(self, key, direction=1):
        self._items.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def skip(self, n: int):
        self._items = self._items[n:]
        return self

    def limit(self, n: int):
        if n:
            self._items = self._items[:n]
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._items:
            yield copy.deepcopy(item)


class FakeCollection:
    """Just enough of a Motor collection for the repositories."""

    def __init__(self):
        self.docs: List[Dict[str, Any]] = []

    async def insert_one(self, doc):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", str(uuid.uuid4()))
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def find_one(self, query):
        for doc in self.docs:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor([d for d in self.docs if _matches(d, query or {})])

    async def update_one(self, query, update):
        for doc in self.docs:
            if _matches(doc, query):
                for key, value in update.get("$set", {}).items():
                    target = doc
                    parts = key.split(".")
                    for part in parts[:-1]:
                        target = target.setdefault(part, {})
                    target[parts[-1]] = copy.deepcopy(value)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)


class FakeDB(dict):
    def __missing__(self, name):
        self[name] = FakeCollection()
        return self[name]


class FakeStreams:
    """
    In-memory Redis streams with real consumer-group semantics: every group
    keeps its own read position and pending set over the same entries.
    """

    def __init__(self):
        self.entries: Dict[str, Dict[str, Dict[str, str]]] = {}
        self.groups: Dict[tuple, Dict[str, Any]] = {}
        self._seq = 0

    async def xadd(self, name, fields):
        self._seq += 1
        sid = f"{self._seq}-0"
        self.entries.setdefault(name, {})[sid] = dict(fields)
        return sid

    async def xgroup_create(self, name, groupname, id="$", mkstream=False):
        if (name, groupname) in self.groups:
            raise Exception("BUSYGROUP Consumer Group name already exists")
        self.entries.setdefault(name, {})
        last = self._seq if id == "$" else 0
        self.groups[(name, groupname)] = {"last": last, "pending": set()}

    async def xreadgroup(self, groupname, consumername, streams, count=None, block=None):
        result = []
        for name in streams:
            group = self.groups[(name, groupname)]
            fresh = [
                (sid, dict(fields))
                for sid, fields in self.entries.get(name, {}).items()
                if int(sid.split("-")[0]) > group["last"]
            ]
            if count:
                fresh = fresh[:count]
            if fresh:
                group["last"] = int(fresh[-1][0].split("-")[0])
                group["pending"].update(sid for sid, _ in fresh)
                result.append((name, fresh))
        return result

    async def xack(self, name, groupname, *ids):
        pending = self.groups[(name, groupname)]["pending"]
        acked = [sid for sid in ids if sid in pending]
        pending.difference_update(acked)
        return len(acked)

    async def xdel(self, name, *ids):
        stream = self.entries.get(name, {})
        return sum(1 for sid in ids if stream.pop(sid, None) is not None)


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDB()
    monkeypatch.setattr("ai_review.repositories.reviews.get_db", lambda: db)
    monkeypatch.setattr("ai_review.repositories.documents.get_db", lambda: db)
    return db


@pytest.fixture
def test_settings():
    return Settings(
        AI_API_KEY="test-key",
        AI_BASE_URL="https://ai.test/v1",
        AI_MODEL="gpt-test",
        ATS_SERVICE_URL="http://ats.test/api/v2",
        INTERNAL_SERVICE_KEY="internal-secret",
    )


@pytest.fixture
def published():
    """Publisher double: records (topic, payload) pairs."""
    events = []

    async def _publish(topic, payload):
        events.append((topic, payload))
        return "0-1"

    _publish.events = events
    return _publish


@pytest.fixture
def fake_redis(monkeypatch):
    client = AsyncMock()
    client.xack = AsyncMock()
    client.xdel = AsyncMock()
    client.xadd = AsyncMock(return_value="2-0")
    client.xgroup_create = AsyncMock()
    client.xpending_range = AsyncMock(return_value=[])
    client.xclaim = AsyncMock(return_value=[])
    monkeypatch.setattr("ai_review.services.queue._get_redis_client", lambda: client)
    monkeypatch.setattr("ai_review.services.worker_streams._get_redis_client", lambda: client)
    return client


@pytest.fixture
def stream_store(monkeypatch):
    store = FakeStreams()
    monkeypatch.setattr("ai_review.services.queue._get_redis_client", lambda: store)
    monkeypatch.setattr("ai_review.services.worker_streams._get_redis_client", lambda: store)
    return store
