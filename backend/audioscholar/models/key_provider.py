"""
AudioScholar Backend — Key Provider Identity
=============================================

What:  Enumerates the third-party services whose credentials are pooled.
Who:   Used as the scope for key pools, rotation cursors and log messages.
"""

from enum import Enum


class KeyProvider(str, Enum):
    """A provider whose API keys are rotated as one pool."""

    GEMINI = "gemini"
    CONVERTAPI = "convertapi"

    def __str__(self) -> str:
        return self.name
