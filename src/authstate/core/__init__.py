"""
Core: configuration, horloge, matériel cryptographique.
"""

from .interfaces import AuthConfig, IConfigLoader, ICryptoProvider, SigningAlgorithm
from .clock import Clock, utc_now, to_millis, from_millis
from .config_loader import ConfigLoader, ConfigError
from .crypto_provider import CryptoProvider, CryptoProviderError, token_digest

__all__ = [
    # Interfaces
    "IConfigLoader",
    "ICryptoProvider",
    # Data classes
    "AuthConfig",
    "SigningAlgorithm",
    "Clock",
    # Implementations
    "ConfigLoader",
    "CryptoProvider",
    "utc_now",
    "to_millis",
    "from_millis",
    "token_digest",
    # Exceptions
    "ConfigError",
    "CryptoProviderError",
]
