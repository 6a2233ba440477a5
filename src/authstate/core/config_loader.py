"""
AuthState - Config Loader Implementation

Construit AuthConfig depuis un fichier YAML optionnel puis
les variables d'environnement (l'environnement est prioritaire).
"""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from .interfaces import AuthConfig, IConfigLoader


class ConfigError(Exception):
    """Configuration illisible ou invalide."""

    pass


class ConfigLoader(IConfigLoader):
    """Chargement de la configuration (YAML + environnement)."""

    # Variable d'environnement -> champ AuthConfig
    ENV_MAPPING: Dict[str, str] = {
        "JWT_SECRET": "jwt_secret",
        "JWT_ALGORITHM": "jwt_algorithm",
        "JWT_PRIVATE_KEY": "jwt_private_key",
        "JWT_ISSUER": "jwt_issuer",
        "JWT_ACCESS_EXPIRY": "access_token_ttl",
        "JWT_REFRESH_EXPIRY": "refresh_token_ttl",
        "LOCKOUT_MAX_ATTEMPTS": "max_failed_login_attempts",
        "LOCKOUT_DURATION": "lockout_duration",
        "RATE_LIMIT_ENABLED": "rate_limit_enabled",
        "RATE_LIMIT_LOGIN_MAX_ATTEMPTS": "rate_limit_login_max_attempts",
        "RATE_LIMIT_LOGIN_WINDOW": "rate_limit_login_window",
        "RATE_LIMIT_LOGIN_BLOCK": "rate_limit_login_block",
        "RATE_LIMIT_REGISTRATION_MAX_ATTEMPTS": "rate_limit_registration_max_attempts",
        "RATE_LIMIT_REGISTRATION_WINDOW": "rate_limit_registration_window",
        "RATE_LIMIT_REGISTRATION_BLOCK": "rate_limit_registration_block",
        "RATE_LIMIT_PASSWORD_RESET_MAX_ATTEMPTS": "rate_limit_password_reset_max_attempts",
        "RATE_LIMIT_PASSWORD_RESET_WINDOW": "rate_limit_password_reset_window",
        "RATE_LIMIT_PASSWORD_RESET_BLOCK": "rate_limit_password_reset_block",
        "SECURITY_LOG_TTL": "security_log_ttl",
        "USER_CACHE_TTL": "user_cache_ttl",
        "REDIS_URL": "redis_url",
        "STORE_OPERATION_TIMEOUT": "store_operation_timeout",
        "EVENT_QUEUE_SIZE": "event_queue_size",
        "LOG_LEVEL": "log_level",
    }

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None

    def load(
        self,
        path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> AuthConfig:
        """
        Charge la configuration.

        Args:
            path: Fichier YAML (sinon celui du constructeur, sinon aucun)
            environ: Variables d'environnement (défaut: os.environ)

        Returns:
            Configuration validée et immuable

        Raises:
            ConfigError: Fichier inexistant, YAML invalide ou valeurs invalides
        """
        values: Dict[str, Any] = {}

        config_file = Path(path) if path else self.config_path
        if config_file is not None:
            values.update(self._load_file(config_file))

        values.update(self._load_environ(os.environ if environ is None else environ))

        try:
            return AuthConfig(**values)
        except ValidationError as e:
            raise ConfigError(f"Configuration invalide: {e}") from e

    def _load_file(self, config_file: Path) -> Dict[str, Any]:
        if not config_file.exists():
            raise ConfigError(f"Fichier de configuration introuvable: {config_file}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Erreur de parsing YAML: {e}") from e
        except OSError as e:
            raise ConfigError(f"Erreur de lecture fichier: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration doit être un objet YAML")

        unknown = set(data) - set(AuthConfig.model_fields)
        if unknown:
            raise ConfigError(f"Champs inconnus: {', '.join(sorted(unknown))}")

        return data

    def _load_environ(self, environ: Mapping[str, str]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for env_name, field_name in self.ENV_MAPPING.items():
            raw = environ.get(env_name)
            if raw is not None and raw != "":
                # pydantic convertit les chaînes numériques
                values[field_name] = raw
        return values
