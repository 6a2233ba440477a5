"""
AuthState - Taxonomie des erreurs

Erreurs domaine (mappées vers un statut utilisateur par la couche transport)
et erreurs infrastructure (stockage injoignable, timeout).
"""

from datetime import datetime
from typing import Optional


class AuthError(Exception):
    """
    Erreur domaine authentification.

    Attributes:
        code: Identifiant stable de l'erreur (mapping transport)
    """

    code: str = "auth_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)


class InvalidCredentialsError(AuthError):
    """Email inconnu ou mot de passe incorrect."""

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid email or password") -> None:
        super().__init__(message)


class AccountLockedError(AuthError):
    """Compte temporairement verrouillé après trop d'échecs."""

    code = "account_locked"

    def __init__(self, locked_until: Optional[datetime]) -> None:
        self.locked_until = locked_until
        until = locked_until.isoformat() if locked_until else "unknown"
        super().__init__(f"Account is locked until {until}")


class AccountInactiveError(AuthError):
    """Compte désactivé."""

    code = "account_inactive"

    def __init__(self, message: str = "Account is inactive") -> None:
        super().__init__(message)


class TokenInvalidError(AuthError):
    """Signature invalide ou token malformé."""

    code = "token_invalid"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class TokenExpiredError(TokenInvalidError):
    """Token expiré naturellement."""

    code = "token_expired"

    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


class TokenRevokedError(TokenInvalidError):
    """Token explicitement révoqué (blacklist)."""

    code = "token_revoked"

    def __init__(self, message: str = "Token has been revoked") -> None:
        super().__init__(message)


class TokenWrongTypeError(TokenInvalidError):
    """Type de token (access/refresh) inattendu."""

    code = "token_wrong_type"

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Invalid token type: expected {expected}, got {actual}")


class SessionNotFoundError(AuthError):
    """Session inexistante, expirée ou terminée."""

    code = "session_not_found"

    def __init__(self, session_id: str = "") -> None:
        self.session_id = session_id
        super().__init__("Session not found")


class SessionTerminationError(AuthError):
    """Terminaison de session refusée (session courante ou d'un autre utilisateur)."""

    code = "session_termination_denied"


class AlreadyExistsError(AuthError):
    """Email déjà enregistré."""

    code = "already_exists"

    def __init__(self, message: str = "User already exists") -> None:
        super().__init__(message)


class InvalidInputError(AuthError):
    """Email malformé ou mot de passe trop faible."""

    code = "invalid_input"


class RateLimitExceededError(AuthError):
    """Trop de requêtes pour cette action depuis ce client."""

    code = "rate_limited"

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Too many {action} requests, please try again later")


class RevocationIncompleteError(AuthError):
    """
    Révocation en masse partielle.

    Le résultat est inconnu pour les tokens en échec; relancer
    l'opération est sans risque (révocation idempotente).
    """

    code = "revocation_incomplete"

    def __init__(self, user_id: str, revoked: int, failed: int) -> None:
        self.user_id = user_id
        self.revoked = revoked
        self.failed = failed
        super().__init__(f"Revoked {revoked} tokens for user {user_id}, {failed} failed")


class StoreError(Exception):
    """Erreur du stockage clé/valeur."""

    pass


class StoreUnavailableError(StoreError):
    """Stockage injoignable."""

    pass


class StoreTimeoutError(StoreError):
    """
    Délai dépassé sur un appel stockage.

    Le résultat de l'écriture est INCONNU: ne jamais le considérer comme réussi.
    """

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout}s (outcome unknown)")
