"""
data-processing handler — runs a named task over an optional list of records.

Example payload:
    {"task": "aggregate", "records": [{"value": 3}, {"value": 4}]}

Example result:
    {"task": "aggregate", "records_processed": 2, "numeric_total": 7}
"""

from jobs.base import SimulatedWorkHandler


class DataProcessingJob(SimulatedWorkHandler):

    default_duration = 2.0

    def run(self, payload: dict) -> dict:
        task = payload.get("task")
        if not task:
            raise ValueError("Missing 'task' in payload")

        records = payload.get("records", [])
        if not isinstance(records, list):
            raise ValueError("'records' must be a list")

        self.simulate(payload)

        total = sum(
            r["value"] for r in records
            if isinstance(r, dict) and isinstance(r.get("value"), (int, float))
        )
        return {"task": task, "records_processed": len(records), "numeric_total": total}

    @property
    def job_type(self) -> str:
        return "data-processing"
