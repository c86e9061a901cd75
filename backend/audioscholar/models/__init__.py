from audioscholar.models.key_provider import KeyProvider

__all__ = ["KeyProvider"]
