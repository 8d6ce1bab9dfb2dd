"""
email-job handler — simulates handing a message to a mail service.

Example payload:
    {"email": "user@example.com", "subject": "Welcome"}

No mail is actually sent; the handler validates the address and sleeps to
stand in for the network call.
"""

import logging

from jobs.base import SimulatedWorkHandler

logger = logging.getLogger(__name__)


class EmailJob(SimulatedWorkHandler):

    default_duration = 1.0

    def run(self, payload: dict) -> dict:
        email = payload.get("email")
        if not email or "@" not in str(email):
            raise ValueError(f"Invalid or missing 'email' in payload: {email!r}")
        subject = payload.get("subject", "")

        self.simulate(payload)
        logger.info(f"Sending email to: {email} with subject: {subject}")
        return {"sent_to": email, "subject": subject}

    @property
    def job_type(self) -> str:
        return "email-job"
