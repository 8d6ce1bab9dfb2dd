"""
Consumer pool — one consumer thread per channel partition.

Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                    ConsumerPool                          │
    │                                                         │
    │  ThreadPoolExecutor (one thread per partition)          │
    │  ┌──────────────┐ ┌──────────────┐ ┌──────────────┐    │
    │  │ partition 0  │ │ partition 1  │ │ partition 2  │    │
    │  │ subscribe()  │ │ subscribe()  │ │ subscribe()  │    │
    │  │  → consumer  │ │  → consumer  │ │  → consumer  │    │
    │  └──────────────┘ └──────────────┘ └──────────────┘    │
    │            ▲ shared stop_event ▲                         │
    └─────────────────────────────────────────────────────────┘

Each thread runs channel.subscribe() for its partition, which blocks reading
the stream and calls the consumer for every message, one at a time. Jobs on
one partition are therefore processed in publish order; parallelism comes
from the partition count (and from running more worker processes in the same
consumer group).

Consumer names are "<CONSUMER_NAME>-<partition>". They are stable across
restarts on purpose: a restarted process reads back the pending entries of
the consumer with the same name, which is how unacknowledged messages are
redelivered after a crash.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from channel.base import DeliveryChannel, DeliveryHandler
from config.settings import settings

logger = logging.getLogger(__name__)


class ConsumerPool:

    def __init__(
        self,
        channel: DeliveryChannel,
        handler: DeliveryHandler,
        consumer_name: Optional[str] = None,
    ):
        self._channel = channel
        self._handler = handler
        self._consumer_name = consumer_name or settings.CONSUMER_NAME
        self._stop_event = threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=channel.partitions,
            thread_name_prefix="job-consumer",
        )
        self._futures: list[Future] = []

    def consumer_name_for(self, partition: int) -> str:
        return f"{self._consumer_name}-{partition}"

    def start(self) -> None:
        """Start one subscription loop per partition."""
        self._stop_event.clear()
        for partition in range(self._channel.partitions):
            future = self._executor.submit(
                self._channel.subscribe,
                partition,
                self.consumer_name_for(partition),
                self._handler,
                self._stop_event,
            )
            future.add_done_callback(self._on_subscription_done)
            self._futures.append(future)
        logger.info(
            f"Consumer pool started with {self._channel.partitions} partition threads"
        )

    def stop(self) -> None:
        """Signal every subscription loop to stop, then wait for them to exit."""
        self._stop_event.set()
        self._executor.shutdown(wait=True)
        logger.info("Consumer pool stopped")

    def _on_subscription_done(self, future: Future) -> None:
        """
        Fired when a subscription loop returns.

        During shutdown that is expected. Any exception here means the loop
        died and its partition is no longer being consumed by this process.
        """
        try:
            exc = future.exception()
            if exc:
                logger.error(f"Subscription loop crashed: {exc}")
        except Exception as e:
            logger.error(f"Callback error: {e}")
