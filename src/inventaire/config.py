"""
Configuration de l'application.

Toutes les valeurs viennent de variables d'environnement (ou d'un
fichier .env), avec des valeurs par défaut adaptées au développement local.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    INVENTAIRE_DB_URI: str = "sqlite:///inventaire.db"
    INVENTAIRE_LOG_LEVEL: str = "INFO"
    EMAIL_HOST: str = "localhost"
    EMAIL_PORT: int = 587
    ALERTES_STOCK_DESTINATAIRE: str = "stock@example.com"


def get_database_uri() -> str:
    return Settings().INVENTAIRE_DB_URI


def get_email_host_and_port() -> dict:
    settings = Settings()
    return dict(host=settings.EMAIL_HOST, port=settings.EMAIL_PORT)


def get_destinataire_alertes() -> str:
    return Settings().ALERTES_STOCK_DESTINATAIRE


def get_log_level() -> str:
    return Settings().INVENTAIRE_LOG_LEVEL.upper()
