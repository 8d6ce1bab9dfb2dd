"""
Job handler registry — maps job_type strings to handler instances.

When a consumer receives a job it knows the job_type ("test-job",
"email-job", ...) but needs the handler to execute it. This registry does
that lookup. It is built once per process and handed to the consumer, so
an application (or a test) can register its own handlers.

Submitting a job with a type nobody registered is allowed; the lookup fails
at execution time and the attempt is treated as a failure.
"""

from collections.abc import Callable, Iterable

from jobs.base import AbstractJobHandler
from jobs.data_processing import DataProcessingJob
from jobs.diagnostic import DiagnosticJob
from jobs.email_job import EmailJob
from jobs.file_processing import FileProcessingJob


class UnknownJobTypeError(ValueError):
    """No handler is registered for the requested job type."""


class FunctionHandler(AbstractJobHandler):
    """Adapts a plain `(payload) -> dict` function to the handler interface."""

    def __init__(self, job_type: str, func: Callable[[dict], dict]):
        self._job_type = job_type
        self._func = func

    def run(self, payload: dict) -> dict:
        return self._func(payload)

    @property
    def job_type(self) -> str:
        return self._job_type


class JobHandlerRegistry:

    def __init__(self, handlers: Iterable[AbstractJobHandler] = ()):
        self._handlers: dict[str, AbstractJobHandler] = {}
        for handler in handlers:
            self.register(handler)

    def register(self, handler: AbstractJobHandler) -> None:
        self._handlers[handler.job_type] = handler

    def register_function(self, job_type: str, func: Callable[[dict], dict]) -> None:
        self.register(FunctionHandler(job_type, func))

    def get(self, job_type: str) -> AbstractJobHandler:
        """Look up a handler by job_type string. Raises UnknownJobTypeError if unknown."""
        handler = self._handlers.get(job_type)
        if handler is None:
            raise UnknownJobTypeError(
                f"Unknown job type: '{job_type}'. Available: {self.job_types()}"
            )
        return handler

    def job_types(self) -> list[str]:
        return sorted(self._handlers)


def default_registry() -> JobHandlerRegistry:
    """Registry with every built-in handler; each handler is stateless and shared."""
    return JobHandlerRegistry([
        DiagnosticJob(),
        EmailJob(),
        DataProcessingJob(),
        FileProcessingJob(),
    ])
