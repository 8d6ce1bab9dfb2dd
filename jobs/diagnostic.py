"""
test-job handler — the smoke test for the whole pipeline.

Example payload:
    {"message": "Hello World", "number": 42}

Example result:
    {"message": "Hello World", "number": 42, "processed_for": 0.5}
"""

import logging

from jobs.base import SimulatedWorkHandler

logger = logging.getLogger(__name__)


class DiagnosticJob(SimulatedWorkHandler):

    default_duration = 0.5

    def run(self, payload: dict) -> dict:
        duration = self.simulate(payload)
        message = payload.get("message")
        number = payload.get("number")

        logger.info(f"Test job processed - message: {message}, number: {number}")
        return {"message": message, "number": number, "processed_for": duration}

    @property
    def job_type(self) -> str:
        return "test-job"
