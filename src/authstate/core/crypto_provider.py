"""
AuthState - Crypto Provider Implementation

Clés ECDSA-P384 pour la signature ES384 des tokens et empreinte SHA-256
utilisée comme clé de stockage des tokens.
"""

import hashlib
from typing import Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey, EllipticCurvePublicKey

from .interfaces import ICryptoProvider


class CryptoProviderError(Exception):
    """Matériel de clé invalide."""

    pass


def token_digest(token: str) -> str:
    """
    Empreinte SHA-256 d'un token brut.

    Sert de clé de blacklist et de métadonnées: taille bornée,
    le token lui-même n'est jamais écrit dans le stockage.

    Returns:
        Hash hex string (64 caractères)
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class CryptoProvider(ICryptoProvider):
    """Paire de clés ECDSA-P384 partagée par toutes les instances."""

    def __init__(self, private_key: EllipticCurvePrivateKey):
        if not isinstance(private_key.curve, ec.SECP384R1):
            raise CryptoProviderError(f"Expected P-384 key, got {private_key.curve.name}")
        self._private_key = private_key

    @classmethod
    def from_pem(cls, pem: str, password: Optional[bytes] = None) -> "CryptoProvider":
        """
        Charge une clé privée PEM.

        Raises:
            CryptoProviderError: PEM illisible ou courbe non P-384
        """
        try:
            key = serialization.load_pem_private_key(pem.encode("utf-8"), password=password)
        except (ValueError, TypeError) as e:
            raise CryptoProviderError(f"Invalid private key: {e}") from e
        if not isinstance(key, EllipticCurvePrivateKey):
            raise CryptoProviderError("Private key must be an EC key")
        return cls(key)

    @classmethod
    def generate(cls) -> "CryptoProvider":
        """Génère une nouvelle clé (tests, environnement local)."""
        return cls(ec.generate_private_key(ec.SECP384R1()))

    def signing_key(self) -> EllipticCurvePrivateKey:
        return self._private_key

    def verification_key(self) -> EllipticCurvePublicKey:
        return self._private_key.public_key()

    def private_key_pem(self) -> str:
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode("utf-8")
