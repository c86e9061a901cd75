"""
AudioScholar Backend — Custom Exception Hierarchy
==================================================

What:  Defines the typed error taxonomy shared by every layer of the core.
How:   Each exception class carries a message and optional context dict.
       Executors match on these types (via services.error_classifier) to
       decide between rotating, backing off, retrying, or propagating.
Who:   Raised by the key pool, executors and API consumers.

Exception Hierarchy:
    AudioScholarError (base)
    ├── ValidationError             → caller passed unusable input
    ├── ConfigurationError          → deployment problem, never retried
    │   └── KeyPoolEmptyError       → provider has no credentials
    ├── ProviderError               → remote API failure with a status code
    │   ├── RateLimitedError        → 429 / 403-quota / overloaded
    │   ├── TransientProviderError  → 5xx, connection, timeout
    │   └── FatalProviderError      → other 4xx, malformed response
    ├── ConversionFailedError       → bounded retry budget exhausted
    ├── LLMServiceError             → Gemini returned an unusable response
    └── OperationInterruptedError   → shutdown signal during a backoff sleep

OperationInterruptedError is the one failure that "retry everything" loops
never absorb.
"""

from typing import Any, Dict, Optional


class AudioScholarError(Exception):
    """
    Base exception for all AudioScholar application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged, never contains raw credentials)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(AudioScholarError):
    """Raised when caller input is unusable (e.g. a blank document URL)."""

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class ConfigurationError(AudioScholarError):
    """Raised when the process is misconfigured. Never retried."""


class KeyPoolEmptyError(ConfigurationError):
    """
    Raised by get_key when a provider has no credentials configured.

    Surfaced lazily on first use rather than at startup, so a deployment that
    never touches a provider does not need its keys.
    """

    def __init__(self, provider: Any, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        ctx["provider"] = str(provider)
        super().__init__(message=f"No API keys configured for {provider}", context=ctx)
        self.provider = provider


class ProviderError(AudioScholarError):
    """
    A remote provider call failed.

    Attributes:
        status_code:  HTTP status returned by the provider, if any
        provider:     KeyProvider the call was made against, if known
    """

    def __init__(
        self,
        message: str = "Provider call failed",
        status_code: Optional[int] = None,
        provider: Any = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        if provider is not None:
            ctx["provider"] = str(provider)
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
        self.provider = provider


class RateLimitedError(ProviderError):
    """Provider refused the call because of quota or overload (429, 403-quota, 503)."""


class TransientProviderError(ProviderError):
    """Provider or network failure that is expected to clear on its own."""


class FatalProviderError(ProviderError):
    """Provider rejected the request in a way retrying cannot fix."""


class ConversionFailedError(AudioScholarError):
    """
    Raised when a bounded retry loop exhausts its attempt budget.

    The last observed failure is kept both as `last_error` and as the
    exception's `__cause__` (raised with `from`).
    """

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["attempts"] = attempts
        if last_error is not None:
            ctx["last_error_type"] = type(last_error).__name__
        super().__init__(
            message=f"Failed to convert PPTX to PDF after {attempts} attempts",
            context=ctx,
        )
        self.attempts = attempts
        self.last_error = last_error


class LLMServiceError(AudioScholarError):
    """Raised when Gemini answers successfully but the payload has no usable text."""

    def __init__(
        self,
        message: str = "Gemini returned an unusable response",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class OperationInterruptedError(AudioScholarError):
    """
    Raised when a backoff sleep is cut short by shutdown.

    Callers must treat this as a stop signal, not as a transient failure.
    """

    def __init__(
        self,
        message: str = "Operation interrupted during backoff",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
