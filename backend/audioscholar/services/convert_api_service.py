"""
AudioScholar Backend — ConvertAPI Service
==========================================

What:  Converts an uploaded PPTX (by URL) to a PDF URL through ConvertAPI.
How:   Fixed attempt budget (default 3). Every attempt takes a fresh secret
       from the KeyRotationManager and reports the outcome back, so a
       throttled secret is skipped by the next attempt.
Who:   Called by the recording upload workflow when slides are attached.

Per-attempt outcome handling:
    2xx + Files[0].Url        → report_success, return URL
    429 / 403                 → report_error (key cools down), next attempt
    other 4xx                 → report_error, raise FatalProviderError now
    5xx / network / timeout   → next attempt, no report (not the key's fault)
    2xx with bad body         → raise FatalProviderError now
    budget exhausted          → raise ConversionFailedError from last failure
"""

import logging
from typing import Optional

import httpx

from audioscholar.config import Settings
from audioscholar.exceptions import ConversionFailedError, FatalProviderError, ValidationError
from audioscholar.models import KeyProvider
from audioscholar.services.error_classifier import (
    ErrorKind,
    KEY_COOLDOWN_STATUSES,
    classify_exception,
)
from audioscholar.services.key_rotation_base import KeyRotationManager

logger = logging.getLogger(__name__)

CONVERT_API_URL = "https://v2.convertapi.com/convert/pptx/to/pdf"
MAX_RETRIES = 3


class ConvertApiService:
    """
    Bounded-retry ConvertAPI client with key rotation.

    Args:
        key_manager:   Shared KeyRotationManager.
        http_client:   httpx.Client used for every request; the service does
                       not close a client it did not create.
        api_url:       Conversion endpoint.
        max_attempts:  Attempt budget per conversion.
    """

    def __init__(
        self,
        key_manager: KeyRotationManager,
        http_client: Optional[httpx.Client] = None,
        api_url: str = CONVERT_API_URL,
        max_attempts: int = MAX_RETRIES,
        timeout_seconds: float = 60.0,
    ):
        self.key_manager = key_manager
        self.api_url = api_url
        self.max_attempts = max_attempts
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        key_manager: KeyRotationManager,
        http_client: Optional[httpx.Client] = None,
    ) -> "ConvertApiService":
        return cls(
            key_manager=key_manager,
            http_client=http_client,
            api_url=settings.convertapi_url,
            max_attempts=settings.convertapi_max_attempts,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    def convert_pptx_url_to_pdf_url(self, pptx_url: str) -> str:
        """
        Convert the PPTX at `pptx_url` and return the URL of the stored PDF.

        Raises:
            ValidationError:        `pptx_url` is blank.
            KeyPoolEmptyError:      No ConvertAPI secrets are configured.
            FatalProviderError:     Non-retryable 4xx or malformed response.
            ConversionFailedError:  Every attempt failed with a retryable error.
        """
        if not pptx_url or not pptx_url.strip():
            raise ValidationError("PPTX URL cannot be null or empty", field="pptx_url")

        logger.info("Starting PPTX to PDF conversion for file: %s", pptx_url)
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            # KeyPoolEmptyError is a configuration problem: let it propagate
            secret = self.key_manager.get_key(KeyProvider.CONVERTAPI)

            try:
                response = self.http_client.post(
                    self.api_url,
                    params={"Secret": secret},
                    json=self._build_body(pptx_url),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                last_error = exc
                status = exc.response.status_code
                kind = classify_exception(exc, KEY_COOLDOWN_STATUSES)
                logger.warning(
                    "ConvertAPI failed with status %d (%s) on attempt %d/%d",
                    status,
                    kind.value,
                    attempt,
                    self.max_attempts,
                )
                # Server errors say nothing about the secret itself
                if status < 500:
                    self.key_manager.report_error(KeyProvider.CONVERTAPI, secret, status)
                # Any other 4xx (408 included) is final for this client
                if status >= 500 or kind is ErrorKind.RATE_LIMITED:
                    continue
                raise FatalProviderError(
                    message=f"ConvertAPI rejected the request with status {status}",
                    status_code=status,
                    provider=KeyProvider.CONVERTAPI,
                ) from exc
            except httpx.TransportError as exc:
                last_error = exc
                logger.error(
                    "ConvertAPI connection error on attempt %d/%d: %s",
                    attempt,
                    self.max_attempts,
                    exc,
                )
                continue

            pdf_url = self._extract_pdf_url(response)
            self.key_manager.report_success(KeyProvider.CONVERTAPI, secret)
            logger.info("PDF conversion successful on attempt %d.", attempt)
            return pdf_url

        raise ConversionFailedError(attempts=self.max_attempts, last_error=last_error) from last_error

    @staticmethod
    def _build_body(pptx_url: str) -> dict:
        return {
            "Parameters": [
                {"Name": "File", "FileValue": {"Url": pptx_url}},
                {"Name": "StoreFile", "Value": True},
            ]
        }

    @staticmethod
    def _extract_pdf_url(response: httpx.Response) -> str:
        """Response shape: {"Files": [{"Url": "..."}]}"""
        try:
            files = response.json().get("Files")
            url = files[0]["Url"]
        except (ValueError, AttributeError, LookupError, TypeError) as exc:
            raise FatalProviderError(
                message="Invalid response from ConvertAPI",
                status_code=response.status_code,
                provider=KeyProvider.CONVERTAPI,
            ) from exc
        if not isinstance(url, str) or not url:
            raise FatalProviderError(
                message="Invalid response from ConvertAPI",
                status_code=response.status_code,
                provider=KeyProvider.CONVERTAPI,
            )
        return url
