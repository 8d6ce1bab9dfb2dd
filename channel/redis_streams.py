"""
Redis Streams implementation of the delivery channel.

Layout:
    jobqueue:jobs:0   ┐
    jobqueue:jobs:1   ├─ one stream per partition, all read by one consumer group
    jobqueue:jobs:2   ┘

    publish(key, value)
        partition = crc32(key) % partitions
        XADD jobqueue:jobs:<partition> * key <key> value <value>

    consumer thread for partition p
        XREADGROUP GROUP job-queue-group <consumer> STREAMS jobqueue:jobs:<p> >
        handler(delivery) ... delivery.acknowledge() → XACK

Why Redis Streams instead of a plain list + BLPOP?
A list pop is destructive: if the worker dies mid-job the message is gone.
With a consumer group, a read message sits in the group's pending entries list
(PEL) until it is XACKed. When a consumer restarts under the same name it reads
its PEL first ("0" instead of ">"), so anything it was holding when it crashed
is delivered again. That is the at-least-once guarantee the consumer relies on.

Keying by job_id keeps every publish of one job (first attempt and each retry)
on the same stream, so they are seen in send order.
"""

import functools
import logging
import threading
import zlib
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from channel.base import (
    ChannelError,
    Delivery,
    DeliveryChannel,
    DeliveryHandler,
    PublishAck,
)
from config.settings import settings

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


def _field(fields: dict, name: str) -> Any:
    # Works whether or not the client was created with decode_responses=True
    value = fields.get(name.encode("utf-8"))
    return fields.get(name) if value is None else value


def _iter_streams(response: Any) -> list:
    """XREADGROUP replies are a list of [stream, entries] (RESP2) or a dict (RESP3)."""
    if not response:
        return []
    if isinstance(response, dict):
        return list(response.items())
    return list(response)


class RedisStreamChannel(DeliveryChannel):

    def __init__(
        self,
        redis_client: Redis,
        topic: Optional[str] = None,
        partitions: Optional[int] = None,
        group: Optional[str] = None,
        block_ms: Optional[int] = None,
        max_len: Optional[int] = None,
        publish_threads: Optional[int] = None,
    ):
        self._redis = redis_client
        self._topic = topic or settings.CHANNEL_TOPIC
        self._partitions = partitions or settings.CHANNEL_PARTITIONS
        self._group = group or settings.CHANNEL_CONSUMER_GROUP
        self._block_ms = block_ms if block_ms is not None else settings.CHANNEL_BLOCK_MS
        self._max_len = max_len or settings.CHANNEL_MAX_LEN
        self._publisher = ThreadPoolExecutor(
            max_workers=publish_threads or settings.CHANNEL_PUBLISH_THREADS,
            thread_name_prefix="channel-publisher",
        )

    @property
    def partitions(self) -> int:
        return self._partitions

    @property
    def group(self) -> str:
        return self._group

    def stream_key(self, partition: int) -> str:
        return f"{self._topic}:{partition}"

    def partition_for(self, key: str) -> int:
        """Stable across processes (unlike hash(), which is salted per interpreter)."""
        return zlib.crc32(key.encode("utf-8")) % self._partitions

    # ── Producer side ───────────────────────────────────────────

    def publish(self, key: str, value: str) -> "Future[PublishAck]":
        return self._publisher.submit(self._send, key, value)

    def _send(self, key: str, value: str) -> PublishAck:
        partition = self.partition_for(key)
        try:
            message_id = self._redis.xadd(
                self.stream_key(partition),
                {"key": key, "value": value},
                maxlen=self._max_len,
                approximate=True,
            )
        except RedisError as e:
            raise ChannelError(f"Failed to publish {key} to partition {partition}: {e}") from e

        ack = PublishAck(partition=partition, offset=_text(message_id))
        logger.debug(f"Published {key} to partition {partition} at offset {ack.offset}")
        return ack

    # ── Consumer side ───────────────────────────────────────────

    def ensure_topology(self) -> None:
        """Create every partition stream and the consumer group on it."""
        for partition in range(self._partitions):
            stream = self.stream_key(partition)
            try:
                self._redis.xgroup_create(stream, self._group, id="0", mkstream=True)
                logger.info(f"Created consumer group {self._group} on {stream}")
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise

    def poll(
        self,
        partition: int,
        consumer_name: str,
        count: int = 1,
        block_ms: Optional[int] = None,
        start_id: str = ">",
    ) -> list[Delivery]:
        """
        Read up to `count` messages for this consumer.

        start_id=">" reads messages never delivered to anyone in the group.
        Any other id reads this consumer's own pending (delivered but not yet
        acknowledged) messages with ids greater than start_id.
        """
        entries = self._read(partition, consumer_name, count, block_ms, start_id)
        return self._to_deliveries(partition, entries)

    def _read(
        self,
        partition: int,
        consumer_name: str,
        count: int,
        block_ms: Optional[int],
        start_id: str,
    ) -> list:
        response = self._redis.xreadgroup(
            self._group,
            consumer_name,
            {self.stream_key(partition): start_id},
            count=count,
            block=block_ms,
        )
        return [entry for _stream, entries in _iter_streams(response) for entry in entries]

    def _to_deliveries(self, partition: int, entries: list) -> list[Delivery]:
        stream = self.stream_key(partition)
        deliveries = []
        for message_id, fields in entries:
            if not fields:
                # Trimmed from the stream while still pending, nothing left to deliver
                self._redis.xack(stream, self._group, message_id)
                continue
            try:
                value = _text(_field(fields, "value"))
                key = _text(_field(fields, "key"))
            except UnicodeDecodeError as e:
                logger.error(f"Dropping undecodable message {_text(message_id)} on {stream}: {e}")
                self._redis.xack(stream, self._group, message_id)
                continue
            deliveries.append(Delivery(
                value=value,
                key=key,
                partition=partition,
                offset=_text(message_id),
                acknowledge=functools.partial(self._ack, stream, message_id),
            ))
        return deliveries

    def subscribe(
        self,
        partition: int,
        consumer_name: str,
        handler: DeliveryHandler,
        stop_event: threading.Event,
    ) -> None:
        logger.info(f"Consumer {consumer_name} subscribed to {self.stream_key(partition)}")
        self._replay_pending(partition, consumer_name, handler, stop_event)

        while not stop_event.is_set():
            try:
                deliveries = self.poll(partition, consumer_name, block_ms=self._block_ms)
            except RedisError as e:
                logger.error(f"Read error on partition {partition}: {e}")
                stop_event.wait(1.0)
                continue

            for delivery in deliveries:
                self._deliver(handler, delivery)

        logger.info(f"Consumer {consumer_name} left partition {partition}")

    def _replay_pending(
        self,
        partition: int,
        consumer_name: str,
        handler: DeliveryHandler,
        stop_event: threading.Event,
    ) -> None:
        """Redeliver what this consumer read but never acknowledged before it last stopped."""
        cursor = "0"
        replayed = 0
        while not stop_event.is_set():
            entries = self._read(partition, consumer_name, 10, None, cursor)
            if not entries:
                break
            # Advance past the whole batch, trimmed and undecodable entries included
            cursor = _text(entries[-1][0])
            for delivery in self._to_deliveries(partition, entries):
                self._deliver(handler, delivery)
                replayed += 1
        if replayed:
            logger.info(f"Replayed {replayed} unacknowledged messages on partition {partition}")

    def _deliver(self, handler: DeliveryHandler, delivery: Delivery) -> None:
        try:
            handler(delivery)
        except Exception as e:
            # Left unacknowledged: it will be replayed when this consumer restarts
            logger.error(
                f"Handler raised for message {delivery.offset} on partition "
                f"{delivery.partition}: {e}",
                exc_info=True,
            )

    def _ack(self, stream: str, message_id: Any) -> None:
        try:
            self._redis.xack(stream, self._group, message_id)
        except RedisError as e:
            logger.error(f"Failed to acknowledge {_text(message_id)} on {stream}: {e}")

    # ── Lifecycle ───────────────────────────────────────────────

    def ping(self) -> None:
        self._redis.ping()

    def close(self) -> None:
        self._publisher.shutdown(wait=True)
