"""
AudioScholar Backend — Error Classification
============================================

What:  Maps any exception raised by a unit of work onto the ErrorKind
       taxonomy (RATE_LIMITED / TRANSIENT / FATAL / INTERRUPTED).
How:   Typed AudioScholar errors map directly; anything that carries an HTTP
       status is classified by status; network-level errors are transient;
       everything else is fatal.
Who:   ModelRotationService (rotate vs. propagate), ConvertApiService
       (report + retry vs. fail fast).

The set of statuses that count as "rate limited" differs per consumer, so it
is a parameter rather than a constant baked into the classifier:
    - key cooldown:    429, 403 (quota exhausted / key disabled)
    - model rotation:  429, 503 (too many requests / model overloaded)
"""

from enum import Enum
from typing import AbstractSet, Optional

import httpx

from audioscholar.exceptions import (
    FatalProviderError,
    OperationInterruptedError,
    ProviderError,
    RateLimitedError,
    TransientProviderError,
)

KEY_COOLDOWN_STATUSES = frozenset({429, 403})
MODEL_ROTATION_STATUSES = frozenset({429, 503})

_TRANSIENT_CLIENT_STATUSES = frozenset({408})


class ErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"
    INTERRUPTED = "interrupted"


def classify_status(
    status_code: int,
    rate_limit_statuses: AbstractSet[int] = KEY_COOLDOWN_STATUSES,
) -> ErrorKind:
    """Classify a bare HTTP status code."""
    if status_code in rate_limit_statuses:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500 or status_code in _TRANSIENT_CLIENT_STATUSES:
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def extract_status_code(exc: BaseException) -> Optional[int]:
    """Returns the HTTP status carried by `exc`, or None if it has none."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, ProviderError):
        return exc.status_code
    status = getattr(exc, "status_code", None)
    if isinstance(status, int) and not isinstance(status, bool):
        return status
    return None


def classify_exception(
    exc: BaseException,
    rate_limit_statuses: AbstractSet[int] = KEY_COOLDOWN_STATUSES,
) -> ErrorKind:
    """
    Classify a failure raised by a unit of work.

    Explicit taxonomy types win over status codes, so a RateLimitedError
    without a status is still rate limited.
    """
    if isinstance(exc, OperationInterruptedError):
        return ErrorKind.INTERRUPTED
    if isinstance(exc, RateLimitedError):
        return ErrorKind.RATE_LIMITED
    if isinstance(exc, TransientProviderError):
        return ErrorKind.TRANSIENT
    if isinstance(exc, FatalProviderError):
        return ErrorKind.FATAL

    status = extract_status_code(exc)
    if status is not None:
        return classify_status(status, rate_limit_statuses)

    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL


def is_model_rotation_signal(exc: BaseException) -> bool:
    """True when a model should be skipped in favour of the next one (429/503)."""
    return classify_exception(exc, MODEL_ROTATION_STATUSES) is ErrorKind.RATE_LIMITED


def is_key_cooldown_status(status_code: int) -> bool:
    """True when a key reported with this status should cool down (429/403)."""
    return status_code in KEY_COOLDOWN_STATUSES
