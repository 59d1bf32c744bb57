"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )
    APP_NAME: str = "enablement-portal"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000

    # Stockage: SQLAlchemy si DATABASE_URL est défini, sinon dépôts en mémoire
    DATABASE_URL: str | None = None
    REDIS_URL: str | None = None
    OTLP_ENDPOINT: str | None = None

    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"
    NOTIFY_QUEUE: str = "notifications"

    # Cycle de vie
    LIFECYCLE_SWEEP_INTERVAL_SECONDS: int = 60
    LIFECYCLE_SWEEP_MAX_WORKERS: int = 1
    IDEMPOTENCY_TTL_SECONDS: int = 3600

    # RBAC (stub de dev: rôle lu dans l'en-tête X-User-Role)
    DEFAULT_ACTOR_ROLE: str = "Viewer"

    # Clés de stockage des fichiers de version
    STORAGE_KEY_PREFIX: str = "assets"


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
