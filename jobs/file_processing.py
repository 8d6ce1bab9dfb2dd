"""
file-processing handler — counts words, lines, and characters in a text file.

Example payload:
    {"file_path": "/data/sample.txt"}

Example result:
    {
        "file_path": "/data/sample.txt",
        "word_count": 1024,
        "line_count": 42,
        "char_count": 5678
    }

Without a file_path the handler only simulates work, which is what the demo
script submits.
"""

import os

from jobs.base import SimulatedWorkHandler


class FileProcessingJob(SimulatedWorkHandler):

    default_duration = 3.0

    def run(self, payload: dict) -> dict:
        file_path = payload.get("file_path")
        if not file_path:
            duration = self.simulate(payload)
            return {"simulated": True, "processed_for": duration}

        if not os.path.exists(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            content = f.read()

        lines = content.count("\n") + (1 if content and not content.endswith("\n") else 0)

        return {
            "file_path": file_path,
            "word_count": len(content.split()),
            "line_count": lines,
            "char_count": len(content),
        }

    @property
    def job_type(self) -> str:
        return "file-processing"
