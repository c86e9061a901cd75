"""
AudioScholar Backend — Gemini Smart Model Rotation
===================================================

What:  Runs one logical Gemini call across an ordered hierarchy of fallback
       models, forever, until a model answers or a non-retryable error occurs.
How:   Two retry dimensions:
         horizontal: a rate-limited/overloaded model (429/503) is skipped
                     immediately in favour of the next one, no sleep;
         vertical:   once every model in the hierarchy was skipped, back off
                     (2s → 4s → ... capped at 60s) and restart from the top.
       The vertical dimension is a tenacity Retrying whose single "attempt"
       is one full pass over the hierarchy.
Who:   GeminiService (summarization / transcription workflows).

State machine (per invocation):
    TryModel(i) ── success ─────────────→ Done(result)
        │ ─────── other exception ──────→ Failed(exception), re-raised
        │ rate limited / overloaded
        ▼
    Advance(i+1) ── i+1 < len ──→ TryModel(i+1)
        │ i+1 == len
        ▼
    Backoff ── sleep, grow backoff ──→ TryModel(0)
        │ shutdown during sleep
        ▼
    OperationInterruptedError

Backoff state is local to one invocation: a new call always starts from the
base delay, whatever earlier calls went through.
"""

import logging
import threading
from typing import Callable, Optional, Sequence, Tuple, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_never, wait_exponential

from audioscholar.config import Settings
from audioscholar.exceptions import ConfigurationError
from audioscholar.services.error_classifier import is_model_rotation_signal
from audioscholar.services.task_executor import SleepFn, make_interruptible_sleep

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BASE_BACKOFF_MS = 2000
DEFAULT_MAX_BACKOFF_MS = 60000
DEFAULT_BACKOFF_MULTIPLIER = 2.0


class _HierarchyExhausted(Exception):
    """Every model in the hierarchy was rate limited during one pass."""


class ModelRotationService:
    """
    Executes a model-parameterized call with infinite smart rotation.

    Args:
        model_hierarchy:     Ordered model names; must not be empty.
        base_backoff_ms:     Sleep after the first exhausted cycle.
        max_backoff_ms:      Cap for the growing sleep.
        backoff_multiplier:  Growth factor applied after every exhausted cycle.
        is_rotation_signal:  Classifier hook; True means "skip to next model".
        stop_event:          Shutdown signal that interrupts a backoff sleep.
        sleep:               Override for the backoff sleep (tests).
    """

    def __init__(
        self,
        model_hierarchy: Sequence[str],
        base_backoff_ms: int = DEFAULT_BASE_BACKOFF_MS,
        max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS,
        backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
        is_rotation_signal: Callable[[BaseException], bool] = is_model_rotation_signal,
        stop_event: Optional[threading.Event] = None,
        sleep: Optional[SleepFn] = None,
    ):
        self.model_hierarchy: Tuple[str, ...] = tuple(m.strip() for m in model_hierarchy if m.strip())
        if not self.model_hierarchy:
            raise ConfigurationError(
                "model_hierarchy must contain at least one model name",
                context={"model_hierarchy": list(model_hierarchy)},
            )
        self.base_backoff_ms = base_backoff_ms
        self.max_backoff_ms = max_backoff_ms
        self.backoff_multiplier = backoff_multiplier
        self._is_rotation_signal = is_rotation_signal
        self.stop_event = stop_event or threading.Event()
        self._sleep = sleep or make_interruptible_sleep(self.stop_event, "Rotation interrupted")

        logger.info(
            "ModelRotationService initialized with hierarchy=%s, backoff(base=%dms, max=%dms, x%.1f)",
            ",".join(self.model_hierarchy),
            base_backoff_ms,
            max_backoff_ms,
            backoff_multiplier,
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ModelRotationService":
        return cls(
            model_hierarchy=settings.gemini_model_hierarchy_list,
            base_backoff_ms=settings.gemini_rotation_base_backoff_ms,
            max_backoff_ms=settings.gemini_rotation_max_backoff_ms,
            backoff_multiplier=settings.gemini_rotation_backoff_multiplier,
            **kwargs,
        )

    def _run_cycle(self, operation: Callable[[str], T]) -> T:
        """One pass over the hierarchy: first model that answers wins."""
        for model in self.model_hierarchy:
            try:
                return operation(model)
            except Exception as exc:
                if not self._is_rotation_signal(exc):
                    logger.error(
                        "Non-retriable error on model %s. Stopping rotation: %s", model, exc
                    )
                    raise
                logger.warning(
                    "Model %s is rate limited/overloaded (%s). Switching to next...", model, exc
                )
        raise _HierarchyExhausted()

    def execute_with_infinite_rotation(self, operation: Callable[[str], T]) -> T:
        """
        Call `operation(model_name)` with rotation and backoff until it succeeds.

        Returns:
            The first successful result.

        Raises:
            Exception: Whatever non-rate-limit error `operation` raised first.
            OperationInterruptedError: Shutdown was signalled during a backoff.
        """

        def log_cycle(retry_state: RetryCallState) -> None:
            delay_ms = int(retry_state.next_action.sleep * 1000) if retry_state.next_action else 0
            logger.info(
                "Cycle %d complete. All models exhausted. Sleeping for %d ms before restarting at %s",
                retry_state.attempt_number,
                delay_ms,
                self.model_hierarchy[0],
            )

        retrying = Retrying(
            retry=retry_if_exception_type(_HierarchyExhausted),
            stop=stop_never,
            wait=wait_exponential(
                multiplier=self.base_backoff_ms / 1000,
                exp_base=self.backoff_multiplier,
                max=self.max_backoff_ms / 1000,
            ),
            sleep=self._sleep,
            before_sleep=log_cycle,
            reraise=True,
        )
        return retrying(self._run_cycle, operation)
