"""
Rate limit: limitation par client des connexions, inscriptions et
demandes de réinitialisation.
"""

from .interfaces import IRateLimiter, RateLimitAction, RateLimitOptions
from .rate_limiter import BLOCK_PREFIX, RATE_LIMIT_PREFIX, RateLimiter, block_key, counter_key

__all__ = [
    # Interfaces
    "IRateLimiter",
    # Data classes
    "RateLimitAction",
    "RateLimitOptions",
    # Implementations
    "RateLimiter",
    "counter_key",
    "block_key",
    "RATE_LIMIT_PREFIX",
    "BLOCK_PREFIX",
]
