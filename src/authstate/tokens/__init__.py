"""
Tokens: émission, validation, révocation unitaire et en masse.
"""

from .interfaces import (
    IRevocationRegistry,
    ITokenCodec,
    ITokenService,
    TokenMetadata,
    TokenPair,
    TokenPayload,
    TokenType,
)
from .token_codec import JwtTokenCodec
from .revocation_registry import BLACKLIST_PREFIX, RevocationRegistry, blacklist_key
from .token_service import METADATA_PREFIX, TokenService, metadata_key

__all__ = [
    # Interfaces
    "ITokenCodec",
    "IRevocationRegistry",
    "ITokenService",
    # Data classes
    "TokenType",
    "TokenPayload",
    "TokenPair",
    "TokenMetadata",
    # Implementations
    "JwtTokenCodec",
    "RevocationRegistry",
    "TokenService",
    "blacklist_key",
    "metadata_key",
    "BLACKLIST_PREFIX",
    "METADATA_PREFIX",
]
