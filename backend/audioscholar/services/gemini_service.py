"""
AudioScholar Backend — Google Gemini Service
=============================================

What:  Sends a prompt + transcript to Gemini's generateContent endpoint and
       returns the generated text.
How:   The call runs inside ModelRotationService, so a throttled model is
       swapped for the next one in the hierarchy. Every model attempt takes
       its own key from the KeyRotationManager and reports the outcome, so a
       throttled key cools down while the rotation continues.
Who:   Summarization workflow (one call per uploaded recording).

Resilience layering:
    ModelRotationService   → rotate on 429/503, back off after a full cycle
    KeyRotationManager     → cool down keys that returned 429/403
    this service           → HTTP shape, response parsing, outcome reporting

Endpoint:
    POST {base_url}/models/{model}:generateContent
    Header x-goog-api-key: <key>
    Body   {"contents": [{"parts": [{"text": "<prompt>\\n\\n<text>"}]}]}
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

import httpx

from audioscholar.config import Settings
from audioscholar.exceptions import LLMServiceError
from audioscholar.models import KeyProvider
from audioscholar.services.key_pool import mask_key
from audioscholar.services.key_rotation_base import KeyRotationManager
from audioscholar.services.model_rotation_service import ModelRotationService

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiService:
    """
    Gemini text generation with model fallback and key rotation.

    Args:
        key_manager:       Shared KeyRotationManager.
        rotation_service:  ModelRotationService holding the model hierarchy.
        http_client:       httpx.Client; created (and owned) if omitted.
        base_url:          Gemini REST API root.
    """

    def __init__(
        self,
        key_manager: KeyRotationManager,
        rotation_service: ModelRotationService,
        http_client: Optional[httpx.Client] = None,
        base_url: str = GEMINI_BASE_URL,
        timeout_seconds: float = 60.0,
    ):
        self.key_manager = key_manager
        self.rotation_service = rotation_service
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        key_manager: KeyRotationManager,
        rotation_service: ModelRotationService,
        http_client: Optional[httpx.Client] = None,
    ) -> "GeminiService":
        return cls(
            key_manager=key_manager,
            rotation_service=rotation_service,
            http_client=http_client,
            base_url=settings.gemini_base_url,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    def generate_content(self, prompt: str, text: str) -> str:
        """
        Generate text for `prompt` applied to `text` (e.g. a transcript).

        Blocks until some model in the hierarchy answers; only non-rate-limit
        failures or shutdown end the call early.

        Raises:
            LLMServiceError:            Gemini answered without a text part.
            httpx.HTTPStatusError:      Non-rotating HTTP failure (400, 401, ...).
            OperationInterruptedError:  Shutdown during a rotation backoff.
        """
        request_id = str(uuid.uuid4())[:8]
        body = {"contents": [{"parts": [{"text": f"{prompt}\n\n{text}"}]}]}
        logger.info("[%s] Starting Gemini generation (%d chars of input)", request_id, len(text))

        return self.rotation_service.execute_with_infinite_rotation(
            lambda model: self._call_model(model, body, request_id)
        )

    def _call_model(self, model: str, body: Dict[str, Any], request_id: str) -> str:
        key = self.key_manager.get_key(KeyProvider.GEMINI)
        start_time = time.perf_counter()

        try:
            response = self.http_client.post(
                f"{self.base_url}/models/{model}:generateContent",
                headers={"x-goog-api-key": key},
                json=body,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning(
                "[%s] Gemini %s returned %d using key ...%s",
                request_id,
                model,
                status,
                mask_key(key),
            )
            self.key_manager.report_error(KeyProvider.GEMINI, key, status)
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        self.key_manager.report_success(KeyProvider.GEMINI, key)
        generated = self._extract_text(response, model)
        logger.info(
            "[%s] Gemini %s completed in %.0fms, generated %d chars",
            request_id,
            model,
            duration_ms,
            len(generated),
        )
        return generated

    @staticmethod
    def _extract_text(response: httpx.Response, model: str) -> str:
        """Response shape: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}"""
        try:
            text = response.json()["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, LookupError, TypeError) as exc:
            raise LLMServiceError(
                message="Gemini response did not contain generated text",
                context={"model": model},
            ) from exc
        if not isinstance(text, str):
            raise LLMServiceError(
                message="Gemini response did not contain generated text",
                context={"model": model},
            )
        return text.strip()
