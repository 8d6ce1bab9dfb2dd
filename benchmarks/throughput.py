"""
Throughput benchmark — measures end-to-end jobs/sec through the queue.

How it works:
1. Snapshot how many jobs are already finished (completed + failed)
2. Submit N short test-jobs (0.01s each — fast enough to measure throughput)
3. Wait for all of them to finish
4. Calculate: throughput = N / total_wall_clock_time

The jobs use tiny durations so the bottleneck is the queue itself (store
writes, Redis Streams round trips, consumer threads), not the job. Run it
again with more worker processes or CHANNEL_PARTITIONS to see how it scales.
"""

import time

import httpx

BASE_URL = "http://localhost:8000"


class ThroughputBenchmark:

    def __init__(self, base_url: str = BASE_URL, num_jobs: int = 100):
        self.base_url = base_url
        self.num_jobs = num_jobs
        self.client = httpx.Client(timeout=30.0)

    def submit_jobs(self) -> list[str]:
        """Submit N test-jobs with minimal duration."""
        job_ids = []
        for i in range(self.num_jobs):
            resp = self.client.post(
                f"{self.base_url}/jobs/",
                json={
                    "job_type": "test-job",
                    "priority": i % 10,                    # spread across priorities
                    "payload": {"number": i, "duration": 0.01},
                },
            )
            resp.raise_for_status()
            job_ids.append(resp.json()["job_id"])
        return job_ids

    def _get_done_count(self) -> int:
        """Get current completed + failed count from the stats endpoint."""
        stats = self.client.get(f"{self.base_url}/jobs/stats").json()
        return stats["completed"] + stats["failed"]

    def wait_for_completion(self, baseline: int, timeout: float = 120.0) -> float:
        """
        Poll until (completed+failed) increases by num_jobs from baseline.

        baseline is the done count BEFORE we submitted jobs, so we only
        wait for our batch to finish — not jobs from previous runs.
        """
        start = time.monotonic()
        target = baseline + self.num_jobs
        while time.monotonic() - start < timeout:
            done = self._get_done_count()
            if done >= target:
                return time.monotonic() - start
            time.sleep(0.5)
        raise TimeoutError(f"Jobs didn't complete within {timeout}s")

    def run(self) -> dict:
        baseline = self._get_done_count()
        submit_start = time.monotonic()
        self.submit_jobs()
        submit_elapsed = time.monotonic() - submit_start
        elapsed = self.wait_for_completion(baseline)

        return {
            "num_jobs": self.num_jobs,
            "submit_sec": round(submit_elapsed, 3),
            "wall_clock_sec": round(elapsed, 3),
            "throughput_jobs_per_sec": round(self.num_jobs / elapsed, 2),
        }
