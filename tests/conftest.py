"""
Shared test fixtures.

These replace real infrastructure with lightweight alternatives:
- PostgreSQL → SQLite file in the test's tmp_path (fresh database per test)
- Redis → fakeredis (pure Python Redis mock)
- Delivery channel → RecordingChannel, an in-memory channel that keeps every
  published message so tests can deliver them by hand
- HTTP server → httpx.AsyncClient with ASGI transport (no network)

This means tests:
- Run without Docker
- Are deterministic: nothing is consumed unless a test delivers it
- Are fully isolated (each test gets a fresh database)
"""

import threading
from concurrent.futures import Future

import pytest
import pytest_asyncio
from fakeredis import FakeRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from api.dependencies import get_channel, get_job_service, get_reporter, get_store
from api.main import create_app
from channel.base import ChannelError, Delivery, DeliveryChannel, PublishAck
from channel.redis_streams import RedisStreamChannel
from jobs.registry import default_registry
from models.base import Base
from service.job_service import JobService
from service.metrics import JobMetrics
from service.statistics import JobStatisticsReporter
from store.job_store import JobStore
from worker.consumer import JobConsumer


class RecordingChannel(DeliveryChannel):
    """
    In-memory channel. publish() succeeds immediately (or fails, on demand)
    and keeps the message; deliveries() turns what was published into
    Delivery objects whose acknowledge() is recorded.
    """

    def __init__(self, partitions: int = 3):
        self._partitions = partitions
        self.published: list[tuple[str, str]] = []
        self.acked: list[str] = []
        self.fail_publish = False       # publish future resolves with ChannelError
        self.raise_on_publish = False   # publish raises before returning a future
        self._lock = threading.Lock()

    @property
    def partitions(self) -> int:
        return self._partitions

    def publish(self, key: str, value: str) -> "Future[PublishAck]":
        if self.raise_on_publish:
            raise ChannelError("broker unavailable")

        future: Future = Future()
        if self.fail_publish:
            future.set_exception(ChannelError("publish timed out"))
            return future

        with self._lock:
            self.published.append((key, value))
            offset = str(len(self.published) - 1)
        future.set_result(PublishAck(partition=0, offset=offset))
        return future

    def make_delivery(self, key: str, value: str, offset: str = "0") -> Delivery:
        return Delivery(
            value=value,
            key=key,
            partition=0,
            offset=offset,
            acknowledge=lambda: self.acked.append(offset),
        )

    def deliveries(self) -> list[Delivery]:
        with self._lock:
            published = list(enumerate(self.published))
        return [self.make_delivery(key, value, str(i)) for i, (key, value) in published]

    def last_delivery(self) -> Delivery:
        return self.deliveries()[-1]

    def subscribe(self, partition, consumer_name, handler, stop_event) -> None:
        for delivery in self.deliveries():
            if stop_event.is_set():
                break
            handler(delivery)


# ── Database ────────────────────────────────────────────────────


@pytest.fixture
def db_engine(tmp_path):
    """A fresh SQLite database file for each test, shared safely across threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'jobs.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


# ── Channel ─────────────────────────────────────────────────────


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def fake_redis():
    """Create a fake Redis instance (in-memory, no real Redis needed)."""
    r = FakeRedis()
    yield r
    r.flushall()


@pytest.fixture
def redis_channel(fake_redis):
    ch = RedisStreamChannel(
        fake_redis,
        topic="test:jobs",
        partitions=2,
        group="test-group",
        block_ms=10,
        max_len=1000,
        publish_threads=1,
    )
    ch.ensure_topology()
    yield ch
    ch.close()


# ── Services ────────────────────────────────────────────────────


@pytest.fixture
def metrics():
    return JobMetrics()


@pytest.fixture
def service(store, channel, metrics):
    return JobService(
        store,
        channel,
        metrics,
        max_retries=3,
        default_priority=0,
        republish_on_retry=True,
    )


@pytest.fixture
def reporter(store, metrics):
    return JobStatisticsReporter(store, metrics)


@pytest.fixture
def registry():
    reg = default_registry()
    reg.register_function("always-fails", _always_fails)
    return reg


def _always_fails(payload: dict) -> dict:
    raise RuntimeError(payload.get("reason", "boom"))


@pytest.fixture
def consumer(service, registry, metrics):
    return JobConsumer(service, registry, metrics)


# ── HTTP ────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(service, reporter, store, channel):
    """
    Create a test HTTP client that talks directly to the FastAPI app.

    dependency_overrides tells FastAPI: "instead of reading the services from
    app.state (built by the lifespan), use these test versions." The lifespan
    never runs under ASGITransport, so nothing tries to reach Postgres or Redis.
    """
    app = create_app()

    app.dependency_overrides[get_job_service] = lambda: service
    app.dependency_overrides[get_reporter] = lambda: reporter
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_channel] = lambda: channel

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
