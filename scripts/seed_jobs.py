"""
Seed script — submits a variety of sample jobs for demo purposes.

Usage:
    python -m scripts.seed_jobs

This creates:
- 1 test-job with the classic "Hello World" payload
- 1 email-job and 1 data-processing job
- 1 file-processing job (simulated, no file needed)
- 1 guaranteed-failure job (demos retry + terminal FAILED)
- 1 job of an unregistered type (fails on every attempt)

Run this with the API and at least one worker up to populate the system
with demo data.
"""

import httpx

BASE_URL = "http://localhost:8000"


def seed():
    client = httpx.Client(base_url=BASE_URL, timeout=10.0)

    jobs = [
        {
            "job_type": "test-job",
            "payload": {"message": "Hello World", "number": 42},
        },
        {
            "job_type": "email-job",
            "priority": 5,
            "payload": {"email": "ops@example.com", "subject": "Nightly report"},
        },
        {
            "job_type": "data-processing",
            "priority": 2,
            "payload": {"task": "aggregate", "records": [{"value": 3}, {"value": 5}]},
        },
        {
            "job_type": "file-processing",
            "payload": {"duration": 1.0},
        },
        {
            "job_type": "test-job",
            "max_retries": 2,
            "payload": {"duration": 0.1, "fail_probability": 1.0},
        },
        {
            "job_type": "no-such-handler",
            "max_retries": 1,
            "payload": {},
        },
    ]

    print(f"Submitting {len(jobs)} jobs to {BASE_URL}...\n")

    for job in jobs:
        resp = client.post("/jobs/", json=job)
        resp.raise_for_status()
        data = resp.json()
        print(f"  [{data['status']}] {data['job_type']} (id: {data['job_id'][:8]}...)")

    print("\nDone! Jobs are now flowing through the delivery channel.")
    print("Check status:  curl http://localhost:8000/jobs/stats")
    print("List jobs:     curl http://localhost:8000/jobs/")
    print("Metrics:       curl http://localhost:8000/metrics/job-queue")


if __name__ == "__main__":
    seed()
