"""
AudioScholar Backend — Robust Task Executor
============================================

What:  Runs a unit of work until it succeeds, backing off exponentially
       between failures. No attempt limit, no circuit breaker.
How:   Tenacity Retrying with stop_never and wait_exponential
       (2s → 4s → 8s → ... capped at 60s). Backoff sleeps wait on a shutdown
       Event, so shutdown cuts a sleep short and surfaces as
       OperationInterruptedError instead of being retried.
Who:   Background workers processing must-eventually-succeed jobs (e.g. a
       summarization message consumer).
When:  Only on threads that may block indefinitely. Never on a thread that
       must stay responsive.

Failure policy:
    Exception (any)               → log, sleep, retry
    OperationInterruptedError     → propagate (shutdown signal)
    BaseException (KeyboardInterrupt, SystemExit) → propagate untouched

The shutdown Event is never cleared once set, so every later backoff on this
executor is interrupted too.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_never,
    wait_exponential,
)

from audioscholar.config import Settings
from audioscholar.exceptions import OperationInterruptedError
from audioscholar.logging_config import task_context

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], None]

DEFAULT_INITIAL_DELAY_MS = 2000
DEFAULT_MAX_DELAY_MS = 60000


def make_interruptible_sleep(stop_event: threading.Event, reason: str) -> SleepFn:
    """Returns a tenacity-compatible sleep that raises once `stop_event` is set."""

    def _sleep(seconds: float) -> None:
        if stop_event.wait(seconds):
            raise OperationInterruptedError(message=reason)

    return _sleep


class RobustTaskExecutor:
    """
    Executes tasks indefinitely until they succeed.

    Args:
        initial_delay_ms:  First backoff delay.
        max_delay_ms:      Cap for the doubling delay.
        max_workers:       Thread count used by submit().
        stop_event:        Shutdown signal; created if not supplied.
        sleep:             Override for the backoff sleep (tests record delays
                           instead of waiting). Defaults to waiting on
                           `stop_event`.
    """

    def __init__(
        self,
        initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        max_workers: int = 4,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.initial_delay_ms = initial_delay_ms
        self.max_delay_ms = max_delay_ms
        self.max_workers = max_workers
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep or make_interruptible_sleep(
            self.stop_event, "Thread interrupted during robust retry"
        )
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "RobustTaskExecutor":
        return cls(
            initial_delay_ms=settings.retry_initial_delay_ms,
            max_delay_ms=settings.retry_max_delay_ms,
            max_workers=settings.executor_max_workers,
            **kwargs,
        )

    def _build_retrying(self, context_id: str, description: str) -> Retrying:
        # Fresh per call: backoff always restarts at the initial delay
        def log_failure(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            delay_ms = int(retry_state.next_action.sleep * 1000) if retry_state.next_action else 0
            logger.error(
                "[%s] Failed to %s (attempt %d). Retrying in %dms. Error: %s",
                context_id,
                description,
                retry_state.attempt_number,
                delay_ms,
                exc,
            )

        return Retrying(
            retry=(
                retry_if_exception_type(Exception)
                & retry_if_not_exception_type(OperationInterruptedError)
            ),
            stop=stop_never,
            wait=wait_exponential(
                multiplier=self.initial_delay_ms / 1000,
                exp_base=2,
                max=self.max_delay_ms / 1000,
            ),
            sleep=self._sleep,
            before_sleep=log_failure,
            reraise=True,
        )

    def execute_with_infinite_retry(
        self,
        context_id: str,
        description: str,
        operation: Callable[[], T],
    ) -> T:
        """
        Invoke `operation` until it returns, retrying every Exception.

        Args:
            context_id:   Correlation id for logs (e.g. a recording id).
            description:  Human-readable verb phrase, e.g. "generate summary".
            operation:    Zero-argument callable; should be idempotent.

        Returns:
            Whatever `operation` returns on its first successful call.

        Raises:
            OperationInterruptedError: Shutdown was signalled during a backoff.
        """
        attempts = 0

        def attempt() -> T:
            nonlocal attempts
            attempts += 1
            return operation()

        retrying = self._build_retrying(context_id, description)
        with task_context(context_id):
            result = retrying(attempt)
        if attempts > 1:
            logger.info("[%s] %s succeeded after %d attempts", context_id, description, attempts)
        return result

    # ── Background execution ──────────────────────────────────────────────

    def submit(
        self,
        context_id: str,
        description: str,
        operation: Callable[[], T],
    ) -> "Future[T]":
        """
        Run execute_with_infinite_retry on a worker thread.

        The returned Future resolves with the result, or with
        OperationInterruptedError if shutdown() is called while it is
        backing off.
        """
        if self.stop_event.is_set():
            raise OperationInterruptedError(
                message="Executor is shut down", context={"context_id": context_id}
            )
        with self._pool_lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self.max_workers, thread_name_prefix="robust-task"
                )
            pool = self._pool
        logger.debug("[%s] Submitting background task: %s", context_id, description)
        return pool.submit(self.execute_with_infinite_retry, context_id, description, operation)

    def shutdown(self, wait: bool = True) -> None:
        """Signal every backoff to stop and release the worker threads."""
        logger.info("Shutting down RobustTaskExecutor")
        self.stop_event.set()
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait, cancel_futures=True)
