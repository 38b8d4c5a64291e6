"""Storage for lesson notes results."""

from .result_cache import LastResultCache

__all__ = ['LastResultCache']
