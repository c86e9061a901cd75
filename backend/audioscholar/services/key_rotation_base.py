"""
AudioScholar Backend — Abstract Key Rotation Interface
=======================================================

What:  Abstract base class defining the contract consumers use to obtain
       credentials and report how a credential performed.
How:   DefaultKeyRotationManager implements it over in-memory key pools.
       Consumers depend on this interface only, so tests substitute a
       MagicMock(spec=KeyRotationManager) freely.
Who:   ConvertApiService and GeminiService.

Call pattern:
    key = manager.get_key(KeyProvider.CONVERTAPI)
    try:
        result = call_remote(key)
    except httpx.HTTPStatusError as exc:
        manager.report_error(KeyProvider.CONVERTAPI, key, exc.response.status_code)
        raise
    manager.report_success(KeyProvider.CONVERTAPI, key)
"""

from abc import ABC, abstractmethod

from audioscholar.models import KeyProvider


class KeyRotationManager(ABC):
    """
    Contract:
        - get_key() never blocks and never fails except on configuration error
        - report_error() / report_success() never raise
        - Implementations are safe to share across any number of threads
    """

    @abstractmethod
    def get_key(self, provider: KeyProvider) -> str:
        """
        Retrieve the next API key for `provider`, skipping keys in cooldown.

        If every key is cooling down a key is still returned (degraded mode).

        Raises:
            KeyPoolEmptyError: No keys are configured for `provider`.
        """
        ...

    @abstractmethod
    def report_error(self, provider: KeyProvider, key: str, status_code: int) -> None:
        """
        Report a failed call made with `key`.

        Rate-limit statuses (429, 403) put the key into cooldown; any other
        status is ignored.
        """
        ...

    @abstractmethod
    def report_success(self, provider: KeyProvider, key: str) -> None:
        """Report a successful call made with `key`. Must not alter pool state."""
        ...
