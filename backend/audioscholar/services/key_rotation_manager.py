"""
AudioScholar Backend — Key Rotation Manager
============================================

What:  The in-process implementation of KeyRotationManager: one KeyPool per
       provider sharing a single CooldownRegistry.
How:   Built once at process start (from_settings) and passed by reference
       to every consumer. All mutable state lives in the pools' cursors and
       the cooldown registry, both thread-safe.
Who:   Constructed by the hosting process; used by ConvertApiService and
       GeminiService.

Key loading (per provider):
    1. Split the comma-separated list, trim, drop blanks.
    2. Append the legacy single-key setting if it is not already listed.
    3. Deduplicate, keeping first-seen order.
    An empty result only logs a warning here; get_key raises later.
"""

import logging
import time
from typing import Dict, Iterable, List, Mapping, Optional

from audioscholar.config import Settings
from audioscholar.exceptions import KeyPoolEmptyError
from audioscholar.models import KeyProvider
from audioscholar.services.error_classifier import is_key_cooldown_status
from audioscholar.services.key_pool import Clock, CooldownRegistry, KeyPool, KeyStatus, mask_key
from audioscholar.services.key_rotation_base import KeyRotationManager

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 60


def parse_key_list(raw: Optional[str], legacy: Optional[str] = None) -> List[str]:
    """Parse a comma-separated key list, appending the legacy key if it is new."""
    keys = [k.strip() for k in (raw or "").split(",") if k.strip()]
    if legacy and legacy.strip() and legacy.strip() not in keys:
        keys.append(legacy.strip())
    return keys


class DefaultKeyRotationManager(KeyRotationManager):
    """
    Round-robin key selection with time-boxed cooldown of rate-limited keys.

    Args:
        key_sources:       Provider → configured keys (order is preserved).
        cooldown_seconds:  How long a rate-limited key is skipped.
        clock:             Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        key_sources: Mapping[KeyProvider, Iterable[Optional[str]]],
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Clock = time.monotonic,
    ):
        self.cooldown_seconds = cooldown_seconds
        self._cooldowns = CooldownRegistry(clock=clock)
        self._pools: Dict[KeyProvider, KeyPool] = {}

        for provider, keys in key_sources.items():
            pool = KeyPool(provider, keys, self._cooldowns)
            if len(pool) == 0:
                logger.warning("No API keys found for provider: %s", provider)
            else:
                logger.info("Loaded %d keys for provider: %s", len(pool), provider)
            self._pools[provider] = pool

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = time.monotonic) -> "DefaultKeyRotationManager":
        """Build pools for every KeyProvider from application settings."""
        return cls(
            {
                KeyProvider.GEMINI: parse_key_list(
                    settings.gemini_api_keys, settings.google_ai_api_key
                ),
                KeyProvider.CONVERTAPI: parse_key_list(
                    settings.convertapi_secrets, settings.convertapi_secret
                ),
            },
            cooldown_seconds=settings.key_cooldown_seconds,
            clock=clock,
        )

    def get_key(self, provider: KeyProvider) -> str:
        pool = self._pools.get(provider)
        if pool is None:
            raise KeyPoolEmptyError(provider)
        return pool.next_key()

    def report_error(self, provider: KeyProvider, key: str, status_code: int) -> None:
        if not is_key_cooldown_status(status_code):
            logger.debug(
                "Status %d reported for %s key ...%s; no cooldown applied.",
                status_code,
                provider,
                mask_key(key),
            )
            return

        logger.warning(
            "Rate limit error (%d) reported for %s key ...%s. Putting in cooldown for %ss.",
            status_code,
            provider,
            mask_key(key),
            self.cooldown_seconds,
        )
        self._cooldowns.start(key, self.cooldown_seconds)

    def report_success(self, provider: KeyProvider, key: str) -> None:
        # Cooldowns are left to expire on their own: a single success right
        # after a 429 does not mean the quota window has reset.
        logger.debug("Successful call reported for %s key ...%s", provider, mask_key(key))

    # ── Diagnostics ───────────────────────────────────────────────────────

    def key_count(self, provider: KeyProvider) -> int:
        pool = self._pools.get(provider)
        return len(pool) if pool is not None else 0

    def snapshot(self, provider: KeyProvider) -> List[KeyStatus]:
        """Masked per-key availability for `provider` (empty if unconfigured)."""
        pool = self._pools.get(provider)
        return pool.status() if pool is not None else []
