"""Tests for ConsumerPool."""

import threading
import time

from models.enums import JobStatus
from worker.pool import ConsumerPool


class PartitionRecorder:
    """Channel stand-in that records which consumer subscribed to which partition."""

    partitions = 3

    def __init__(self):
        self.subscriptions = []
        self._lock = threading.Lock()

    def subscribe(self, partition, consumer_name, handler, stop_event):
        with self._lock:
            self.subscriptions.append((partition, consumer_name))
        stop_event.wait(5)


def test_one_subscription_per_partition():
    channel = PartitionRecorder()
    pool = ConsumerPool(channel, handler=lambda delivery: None, consumer_name="host-a")

    pool.start()
    pool.stop()

    assert sorted(channel.subscriptions) == [
        (0, "host-a-0"),
        (1, "host-a-1"),
        (2, "host-a-2"),
    ]


def test_pool_drives_consumer(service, consumer, store, channel):
    job = service.create_job("test-job", {"duration": 0})
    pool = ConsumerPool(channel, consumer, consumer_name="host-b")

    pool.start()
    try:
        deadline = time.monotonic() + 5
        while store.find_by_pk(job.id).status != JobStatus.COMPLETED.value:
            assert time.monotonic() < deadline
            time.sleep(0.02)
    finally:
        pool.stop()

    # every partition thread saw the message, only one ran it
    assert len(store.results_for(job.id)) == 1
