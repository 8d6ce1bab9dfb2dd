"""
Abstract base class for job handlers.

Each job type (test-job, email-job, ...) implements this interface.
The consumer calls handler.run(payload) without knowing which type it is —
it looks up the handler from the registry by the job_type string.

Contract:
- return a dict → the attempt succeeded, the dict is stored as the attempt result
- raise anything → the attempt failed, the exception message becomes the job's
  error_message and the retry/fail transition decides what happens next

Handlers run synchronously inside a consumer thread and must not keep state
between calls: the same instance serves every partition concurrently.
"""

import time
import random
from abc import ABC, abstractmethod


class AbstractJobHandler(ABC):

    @abstractmethod
    def run(self, payload: dict) -> dict:
        """
        Execute the job.

        Args:
            payload: job-specific parameters as submitted by the client.

        Returns:
            dict with results — stored in the job_results table.

        Raises:
            Any exception → treated as a failed attempt.
        """
        ...

    @property
    @abstractmethod
    def job_type(self) -> str:
        """Tag this handler serves (e.g., 'test-job')."""
        ...


class SimulatedWorkHandler(AbstractJobHandler):
    """
    Base for the built-in demo handlers: sleeps for a while, can fail on demand.

    Payload knobs shared by every subclass:
        {"duration": 0.2}          → override the simulated processing time
        {"fail_probability": 1.0}  → raise before doing anything (demo retries)
    """

    default_duration: float = 1.0

    def simulate(self, payload: dict) -> float:
        duration = float(payload.get("duration", self.default_duration))
        fail_probability = float(payload.get("fail_probability", 0.0))

        # Check for simulated failure BEFORE sleeping
        if random.random() < fail_probability:
            raise RuntimeError(
                f"Simulated failure (fail_probability={fail_probability})"
            )

        if duration > 0:
            time.sleep(duration)
        return duration
