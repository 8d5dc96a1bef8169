"""
Environment configuration via pydantic_settings.

This is the SINGLE SOURCE OF TRUTH for all environment variables.
Django settings files import from here and never read os.environ directly.

Usage:
    from src.config.env import env
    env.CA_URL
    env.PROVISIONER_NAME

Environment switching:
    - DJANGO_ENV is read ONCE here to determine the environment.
    - DJANGO_SETTINGS_MODULE is set accordingly in manage.py / wsgi.py / asgi.py.
    - The .env file is loaded automatically (defaults to .env.backend).
"""

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parent.parent.parent  # project root (above src/)


class AppSettings(BaseSettings):
    """
    All environment variables in one place.
    Fields have sensible dev defaults; production overrides via .env.backend.
    """

    model_config = SettingsConfigDict(
        env_file=".env.backend",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore env vars not declared here
        case_sensitive=False,
    )

    # ── Environment switch ──────────────────────────────────────────────
    # "development" | "production" | "test"
    DJANGO_ENV: str = Field(default="development")

    # ── Django core ─────────────────────────────────────────────────────
    SECRET_KEY: str = "insecure-dev-key-change-in-production"
    DEBUG: bool = True
    ALLOWED_HOSTS: list[str] = ["localhost", "127.0.0.1"]

    # ── Database ────────────────────────────────────────────────────────
    # SQLite file for development; production switches to PostgreSQL.
    DB_PATH: str = "./data/certs.db"

    POSTGRES_USER: str = "stepca"
    POSTGRES_PASSWORD: str = "changeme_postgres"
    POSTGRES_DB: str = "stepca_console"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    @property
    def DATABASE_URL(self) -> str:
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Certificate authority (step-ca) ─────────────────────────────────
    CA_URL: str = ""
    CA_ROOT: str = ""
    PROVISIONER_NAME: str = "ui-admin"
    PROVISIONER_PASSWORD_FILE: str = ""
    STEP_BIN: str = "step"
    OPENSSL_BIN: str = "openssl"
    CA_COMMAND_TIMEOUT: int = 60  # seconds, per external invocation
    # External calls a single request can make: a pfx issue runs
    # step ca certificate, step certificate chain, openssl x509 and
    # step certificate p12.
    MAX_CALLS_PER_REQUEST: int = 4

    # "openssl" shells out to openssl x509; "native" uses cryptography
    CERT_PARSER: str = "openssl"

    RENEWAL_VALIDITY_DAYS: int = 90

    # Single-tenant: every record and audit event is owned by this principal
    OWNER_USER: str = "system"

    # ── Logging ─────────────────────────────────────────────────────────
    # Level for the application loggers (src.*)
    LOG_LEVEL: str = "INFO"

    # ── CORS ────────────────────────────────────────────────────────────
    CORS_ALLOWED_ORIGINS: list[str] = [
        "http://localhost:3000",
    ]

    # ── Gunicorn ────────────────────────────────────────────────────────
    GUNICORN_WORKERS: int = 4
    GUNICORN_BIND: str = "0.0.0.0:8080"

    @field_validator("DJANGO_ENV")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "production", "test"}
        if v not in allowed:
            msg = f"DJANGO_ENV must be one of {allowed}, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in allowed:
            msg = f"LOG_LEVEL must be one of {allowed}, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("CERT_PARSER")
    @classmethod
    def validate_cert_parser(cls, v: str) -> str:
        allowed = {"openssl", "native"}
        if v not in allowed:
            msg = f"CERT_PARSER must be one of {allowed}, got '{v}'"
            raise ValueError(msg)
        return v

    @field_validator("CA_COMMAND_TIMEOUT", "RENEWAL_VALIDITY_DAYS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be a positive integer, got {v}")
        return v

    @property
    def worker_timeout(self) -> int:
        """Gunicorn worker timeout: every external call may run to its limit."""
        return max(120, self.CA_COMMAND_TIMEOUT * self.MAX_CALLS_PER_REQUEST + 30)

    @property
    def settings_module(self) -> str:
        """DJANGO_SETTINGS_MODULE matching DJANGO_ENV."""
        return {
            "production": "src.config.django.prod",
            "test": "src.config.django.test",
        }.get(self.DJANGO_ENV, "src.config.django.base")

    @property
    def is_production(self) -> bool:
        return self.DJANGO_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.DJANGO_ENV == "development"

    @property
    def is_test(self) -> bool:
        return self.DJANGO_ENV == "test"


# ── Singleton ───────────────────────────────────────────────────────────
# Instantiated once at import time. All Django settings files use this.
env = AppSettings()
