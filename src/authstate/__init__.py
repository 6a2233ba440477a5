"""
AuthState - Authentification et état authentifié

Émission/révocation de tokens, sessions, verrouillage de comptes
et journal des événements de sécurité.

Point d'entrée: authstate.bootstrap.build_auth_service
"""

__version__ = "0.3.0"
