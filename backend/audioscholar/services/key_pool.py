"""
AudioScholar Backend — Cooldown-Aware Key Pool
===============================================

What:  Per-provider ordered credential list with a round-robin cursor, plus a
       process-wide registry of keys that are temporarily cooling down.
How:   Pure in-memory data structures, no I/O. The cursor and the registry
       each guard their own tiny critical section with a lock; a selection
       never locks the whole pool.
Who:   Owned by DefaultKeyRotationManager; never used directly by consumers.

Cooldown Registry semantics:
    key → expiry (monotonic seconds). An entry whose expiry is <= now is
    treated as absent and evicted on the lookup that notices it; nothing
    sweeps the map proactively. Starting a cooldown overwrites any existing
    expiry, so repeated reports never extend the window additively.

Selection semantics (next_key):
    1. Advance the cursor, take keys[cursor % size].
    2. If that key is cooling down, advance again; try at most `size` keys.
    3. If every key is cooling down, advance once more and return that key
       anyway. Availability wins over strict rate-limit compliance here: the
       caller gets a probably-throttled key instead of a blocked thread, and
       is expected to retry at a higher layer.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from audioscholar.exceptions import KeyPoolEmptyError

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def mask_key(key: Optional[str]) -> str:
    """Returns only the last 4 characters of a key, or ******** for short keys."""
    if key is None or len(key) < 8:
        return "********"
    return key[-4:]


def dedupe_keys(keys: Iterable[Optional[str]]) -> Tuple[str, ...]:
    """Strips blanks and duplicates while keeping first-seen order."""
    cleaned = (k.strip() for k in keys if k and k.strip())
    return tuple(dict.fromkeys(cleaned))


class CooldownRegistry:
    """
    Thread-safe map of credential → cooldown expiry.

    Shared by every pool in the process. Credentials are unique across
    providers in practice, so one map keyed by the credential is enough.
    """

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._expiries: Dict[str, float] = {}
        self._lock = threading.Lock()

    def start(self, key: str, duration_seconds: float) -> float:
        """Put `key` into cooldown for `duration_seconds` from now. Returns the expiry."""
        expiry = self._clock() + duration_seconds
        with self._lock:
            self._expiries[key] = expiry
        return expiry

    def is_cooling_down(self, key: str) -> bool:
        return self.remaining(key) > 0

    def remaining(self, key: str) -> float:
        """Seconds left on `key`'s cooldown, 0.0 if it is available."""
        now = self._clock()
        with self._lock:
            expiry = self._expiries.get(key)
            if expiry is None:
                return 0.0
            if expiry <= now:
                del self._expiries[key]
                return 0.0
            return expiry - now

    def clear(self, key: str) -> None:
        with self._lock:
            self._expiries.pop(key, None)

    def __len__(self) -> int:
        # Includes expired entries that have not been looked up yet
        with self._lock:
            return len(self._expiries)


@dataclass(frozen=True)
class KeyStatus:
    """Diagnostic view of one pooled key. Never holds the raw credential."""

    masked_key: str
    cooling_down: bool
    cooldown_remaining_seconds: float


class KeyPool:
    """
    Ordered, immutable credential list for one provider with a rotating cursor.

    The key tuple is fixed at construction; only the cursor and the shared
    cooldown registry change while serving requests.
    """

    def __init__(self, provider, keys: Iterable[Optional[str]], cooldowns: CooldownRegistry):
        self.provider = provider
        self.keys: Tuple[str, ...] = dedupe_keys(keys)
        self._cooldowns = cooldowns
        self._cursor = 0
        self._cursor_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self.keys)

    def _advance(self) -> int:
        with self._cursor_lock:
            position = self._cursor
            self._cursor += 1
        return position % len(self.keys)

    def next_key(self) -> str:
        """
        Select the next key round-robin, skipping keys that are cooling down.

        Raises:
            KeyPoolEmptyError: The provider has no keys configured.
        """
        if not self.keys:
            raise KeyPoolEmptyError(self.provider)

        for _ in range(len(self.keys)):
            candidate = self.keys[self._advance()]
            if not self._cooldowns.is_cooling_down(candidate):
                return candidate

        logger.warning(
            "All %d keys for %s are in cooldown. Returning a candidate anyway.",
            len(self.keys),
            self.provider,
        )
        return self.keys[self._advance()]

    def status(self) -> List[KeyStatus]:
        statuses = []
        for key in self.keys:
            remaining = self._cooldowns.remaining(key)
            statuses.append(
                KeyStatus(
                    masked_key=mask_key(key),
                    cooling_down=remaining > 0,
                    cooldown_remaining_seconds=round(remaining, 3),
                )
            )
        return statuses
