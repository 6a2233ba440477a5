"""
Network: résilience des appels (retry avec backoff exponentiel).
"""

from .interfaces import IRetryHandler, RetryConfig, RetryResult
from .retry_handler import MaxRetriesExceededError, RetryHandler

__all__ = [
    # Interfaces
    "IRetryHandler",
    # Data classes
    "RetryConfig",
    "RetryResult",
    # Implementations
    "RetryHandler",
    # Exceptions
    "MaxRetriesExceededError",
]
