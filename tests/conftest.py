"""
RVDB Test Configuration
=======================

Shared fixtures for all tests.

FakeAsyncRedis è un doppio in memoria del client redis.asyncio: implementa
solo i comandi usati dal pacchetto (SCAN, TYPE, letture per tipo, pipeline,
DBSIZE, KEYS, HSET) con risposte in bytes come decode_responses=False.
"""

import fnmatch
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from redis.exceptions import ResponseError

from rvdb.storage import RedisSession, encode_embedding


def _b(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class FakePipeline:
    """Queues commands and runs them in order on execute()."""

    def __init__(self, client: "FakeAsyncRedis"):
        self._client = client
        self._queue: List[Tuple[str, tuple, dict]] = []

    def __getattr__(self, name):
        if not hasattr(FakeAsyncRedis, name):
            raise AttributeError(name)

        def queue(*args, **kwargs):
            self._queue.append((name, args, kwargs))
            return self

        return queue

    async def execute(self, raise_on_error: bool = True):
        self._client.pipeline_executions += 1
        results = []
        for name, args, kwargs in self._queue:
            try:
                results.append(await getattr(self._client, name)(*args, **kwargs))
            except ResponseError as e:
                results.append(e)
        self._queue = []
        if raise_on_error:
            for result in results:
                if isinstance(result, Exception):
                    raise result
        return results


class FakeAsyncRedis:
    """
    In-memory stand-in for redis.asyncio.Redis (decode_responses=False).

    Args:
        scan_page: Fixed page size returned by SCAN regardless of COUNT
        trailing_empty_page: Return one extra empty page before cursor 0
    """

    def __init__(self, scan_page: Optional[int] = None, trailing_empty_page: bool = False):
        self.data: Dict[bytes, Tuple[str, Any]] = {}
        self.scan_page = scan_page
        self.trailing_empty_page = trailing_empty_page
        self.scan_calls = 0
        self.pipeline_executions = 0
        self.closed = False

    # --- seeding helpers -------------------------------------------------

    def seed_string(self, key, value):
        self.data[_b(key)] = ("string", _b(value))

    def seed_hash(self, key, mapping: Dict[Any, Any]):
        self.data[_b(key)] = ("hash", {_b(f): _b(v) for f, v in mapping.items()})

    def seed_list(self, key, items):
        self.data[_b(key)] = ("list", [_b(i) for i in items])

    def seed_set(self, key, members):
        self.data[_b(key)] = ("set", {_b(m) for m in members})

    def seed_zset(self, key, scored: Dict[Any, float]):
        self.data[_b(key)] = ("zset", {_b(m): float(s) for m, s in scored.items()})

    def seed_raw(self, key, type_name: str, value=None):
        self.data[_b(key)] = (type_name, value)

    def seed_embedding(self, key, vector, description: str = ""):
        self.seed_hash(key, {"description": description, "embedding": encode_embedding(vector)})

    # --- commands --------------------------------------------------------

    def _wrong_type(self):
        return ResponseError("WRONGTYPE Operation against a key holding the wrong kind of value")

    def _get(self, key, expected: str):
        entry = self.data.get(_b(key))
        if entry is None:
            return None
        if entry[0] != expected:
            raise self._wrong_type()
        return entry[1]

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True

    async def info(self, section=None):
        return {"redis_version": "7.2.4", "uptime_in_seconds": 42, "connected_clients": 1}

    async def dbsize(self):
        return len(self.data)

    async def keys(self, pattern="*"):
        pattern = pattern.decode() if isinstance(pattern, bytes) else pattern
        return [k for k in self.data if fnmatch.fnmatchcase(k.decode("utf-8", "replace"), pattern)]

    async def scan(self, cursor=0, match=None, count=None, _type=None):
        self.scan_calls += 1
        ordered = list(self.data)
        cursor = int(cursor)
        if cursor >= len(ordered):
            return 0, []

        size = self.scan_page or count or 10
        end = cursor + size
        page = ordered[cursor:end]
        if end >= len(ordered):
            next_cursor = len(ordered) if self.trailing_empty_page else 0
        else:
            next_cursor = end

        if match is not None:
            page = [k for k in page if fnmatch.fnmatchcase(k.decode("utf-8", "replace"), match)]
        return next_cursor, page

    async def type(self, key):
        entry = self.data.get(_b(key))
        return _b(entry[0]) if entry else b"none"

    async def get(self, key):
        return self._get(key, "string")

    async def hgetall(self, key):
        value = self._get(key, "hash")
        return dict(value) if value is not None else {}

    async def lrange(self, key, start, end):
        value = self._get(key, "list") or []
        return value[start:end + 1] if end >= 0 else value[start:]

    async def smembers(self, key):
        value = self._get(key, "set")
        return set(value) if value is not None else set()

    async def zrange(self, key, start, end, withscores=False):
        value = self._get(key, "zset") or {}
        ordered = sorted(value.items(), key=lambda item: (item[1], item[0]))
        window = ordered[start:end + 1] if end >= 0 else ordered[start:]
        if withscores:
            return [(member, score) for member, score in window]
        return [member for member, _ in window]

    async def hset(self, key, field=None, value=None, mapping=None):
        entry = self.data.get(_b(key))
        if entry is not None and entry[0] != "hash":
            raise self._wrong_type()
        current = entry[1] if entry else {}
        items = dict(mapping or {})
        if field is not None:
            items[field] = value
        for f, v in items.items():
            current[_b(f)] = _b(v)
        self.data[_b(key)] = ("hash", current)
        return len(items)

    def pipeline(self, transaction=True):
        return FakePipeline(self)


@pytest.fixture
def fake_redis():
    """Empty in-memory Redis double."""
    return FakeAsyncRedis()


@pytest.fixture
def make_redis():
    """Factory for FakeAsyncRedis with custom SCAN behaviour."""
    return FakeAsyncRedis


@pytest_asyncio.fixture
async def session(fake_redis):
    """Connected RedisSession backed by fake_redis."""
    session = RedisSession(client=fake_redis)
    await session.connect()
    yield session
    await session.close()


class StaticEmbedder:
    """EmbeddingGenerator returning a fixed vector per text."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default=None):
        self.vectors = vectors or {}
        self.default = default
        self.calls: List[str] = []

    async def embed(self, text: str):
        self.calls.append(text)
        if text in self.vectors:
            return self.vectors[text]
        return self.default


@pytest.fixture
def static_embedder():
    """Factory for StaticEmbedder."""
    return StaticEmbedder
