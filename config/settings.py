"""
Centralized configuration using pydantic-settings.

How it works:
- Reads environment variables automatically (e.g., REDIS_HOST env var → Settings.REDIS_HOST)
- Falls back to defaults defined here if env vars are not set
- Can also read from a .env file in the project root

Components take their tunables as constructor arguments and fall back to
`settings` when none are given, so tests can build them with small values.
"""

import socket

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── PostgreSQL ──────────────────────────────────────────────
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "jobqueue"
    POSTGRES_PASSWORD: str = "jobqueue"
    POSTGRES_DB: str = "jobqueue"

    # ── Redis ───────────────────────────────────────────────────
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # ── Delivery channel (Redis Streams) ────────────────────────
    CHANNEL_TOPIC: str = "jobqueue:jobs"          # stream key prefix, one stream per partition
    CHANNEL_PARTITIONS: int = 3                   # also the number of consumer threads per worker
    CHANNEL_CONSUMER_GROUP: str = "job-queue-group"
    CHANNEL_BLOCK_MS: int = 1000                  # XREADGROUP block timeout
    CHANNEL_MAX_LEN: int = 100_000                # approximate stream trim length
    CHANNEL_PUBLISH_THREADS: int = 2
    CONSUMER_NAME: str = socket.gethostname()     # must be stable across restarts to replay pending entries

    # ── Metrics ─────────────────────────────────────────────────
    METRICS_KEY_PREFIX: str = "jobqueue:metrics"  # shared by the API and every worker

    # ── Jobs ────────────────────────────────────────────────────
    MAX_RETRIES: int = 3
    DEFAULT_PRIORITY: int = 0                     # higher = more urgent
    REPUBLISH_ON_RETRY: bool = True

    # ── Stuck-job reconciler ────────────────────────────────────
    WORKER_TIMEOUT_MINUTES: float = 30.0
    RECONCILE_INTERVAL_SECONDS: float = 60.0
    RECONCILE_BATCH_SIZE: int = 100

    # ── App ─────────────────────────────────────────────────────
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    @property
    def database_url(self) -> str:
        """Connection string for the job store (psycopg2 driver)."""
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def redis_url(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton: import this everywhere
settings = Settings()
