"""
Abstract delivery channel (Strategy pattern, same as jobs/base.py).

The rest of the system only needs four things from a message transport:

- publish(key, value): asynchronous send, returns a Future that resolves to a
  PublishAck or raises ChannelError
- subscribe(...): deliver messages at-least-once, one Delivery at a time
- messages with the same key go to the same partition, in send order
- a message stays "in flight" until the consumer calls delivery.acknowledge();
  unacknowledged messages are redelivered after a consumer restart

Anything that satisfies this contract can be dropped in: RedisStreamChannel is
the production implementation, tests also use small in-memory fakes.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass


class ChannelError(Exception):
    """Publishing or reading failed at the transport level."""


@dataclass(frozen=True)
class PublishAck:
    """Broker confirmation for one published message."""
    partition: int
    offset: str


@dataclass
class Delivery:
    """
    One message handed to a consumer.

    acknowledge() tells the channel the message has been handled and must not
    be redelivered. Calling it more than once is harmless.
    """
    value: str
    key: str
    partition: int
    offset: str
    acknowledge: Callable[[], None]


DeliveryHandler = Callable[[Delivery], object]


class DeliveryChannel(ABC):

    @abstractmethod
    def publish(self, key: str, value: str) -> "Future[PublishAck]":
        """Queue a message for sending. Never blocks on the broker."""
        ...

    @abstractmethod
    def subscribe(
        self,
        partition: int,
        consumer_name: str,
        handler: DeliveryHandler,
        stop_event: threading.Event,
    ) -> None:
        """
        Block, feeding every message of `partition` to handler until stop_event is set.

        Runs in the caller's thread. The handler owns acknowledgement.
        """
        ...

    @property
    @abstractmethod
    def partitions(self) -> int:
        """Number of partitions; consumers run one thread per partition."""
        ...

    def ensure_topology(self) -> None:
        """Create streams/groups/topics if the transport needs it. Safe to call repeatedly."""

    def ping(self) -> None:
        """Raise if the transport is unreachable."""

    def close(self) -> None:
        """Release background resources."""
