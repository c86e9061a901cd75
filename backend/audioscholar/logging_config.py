"""
AudioScholar Backend — Logging Configuration
=============================================

What:  Configures stdlib logging and carries a per-task correlation id.
How:   A ContextVar holds the id of the unit of work currently executing on
       this thread; a logging.Filter copies it onto every record so the
       format string can print it.
Who:   setup_logging() is called once by the hosting process at startup.
       RobustTaskExecutor binds the context id around each task it runs.

Format:
    2024-01-15T12:00:00 [WARNING] audioscholar.services.task_executor [rec-42]: ...
"""

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from audioscholar.config import settings

# What: Correlation id of the task currently running in this context.
# ContextVar values are per-thread and per-coroutine, so concurrent workers
# never see each other's id.
task_context_var: ContextVar[str] = ContextVar("task_context", default="-")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(context_id)s]: %(message)s"


class TaskContextFilter(logging.Filter):
    """Adds `context_id` to every record passing through a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "context_id"):
            record.context_id = task_context_var.get()
        return True


@contextmanager
def task_context(context_id: str) -> Iterator[None]:
    """Binds `context_id` for log records emitted inside the block."""
    token = task_context_var.set(context_id)
    try:
        yield
    finally:
        task_context_var.reset(token)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure logging with a consistent format across all modules.

    When:    Called once during process startup (before any workers run).
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TaskContextFilter())

    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # httpx logs every request at INFO, including query strings
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
