"""
Application Configuration - Pydantic Settings for type-safe config.

FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


def _split_csv(raw: str) -> list[str]:
    """Split a comma-separated setting into trimmed, non-empty entries."""
    items: list[str] = []
    for item in raw.split(","):
        item = item.strip()
        if item and item not in items:
            items.append(item)
    return items


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600
    run_migrations_on_startup: bool = False

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "GenStudio API"
    api_version: str = "0.1.0"
    api_description: str = "Prompt-to-media generation with a credit ledger"

    # Identity provider sessions (JWT issued by the identity provider)
    session_jwt_secret: str = ""  # HS256 shared secret
    session_jwt_public_key: str = ""  # PEM public key for RS256 sessions
    session_jwt_algorithms: str = "RS256,HS256"
    session_jwt_issuer: str | None = None

    # Identity provider webhooks (Svix signing secret: whsec_...)
    identity_webhook_secret: str = ""

    # Admin access
    admin_emails: str = ""
    admin_user_ids: str = ""

    # Upstream paid generation API
    kie_api_key: str = ""
    kie_base_url: str = "https://api.kie.ai"
    upstream_timeout_seconds: float = 30.0

    # Free image endpoint (no authentication)
    free_image_base_url: str = "https://pollinations.ai/prompt"
    free_image_default_model: str = "flux"
    free_image_default_width: int = 1024
    free_image_default_height: int = 1024

    # Credit ledger
    starting_credits: int = 10  # Grant for profiles created on first use
    credits_per_generation: int = 1

    # Validation
    prompt_max_length: int = 1000

    # Polling client
    status_poll_interval_seconds: float = 3.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Activity log sink
    activity_logging_enabled: bool = True
    activity_log_level: str = "info"  # debug, info, warn, error
    activity_webhook_url: str | None = None

    # Observability
    metrics_enabled: bool = True
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "genstudio-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def admin_email_list(self) -> list[str]:
        """Admin email addresses."""
        return [email.lower() for email in _split_csv(self.admin_emails)]

    @property
    def admin_user_id_list(self) -> list[str]:
        """Admin identity-provider user IDs."""
        return _split_csv(self.admin_user_ids)

    @property
    def session_algorithms(self) -> list[str]:
        """Accepted JWT algorithms for session tokens."""
        return _split_csv(self.session_jwt_algorithms)

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
            )

        if self.starting_credits < 0:
            errors.append("STARTING_CREDITS cannot be negative")

        if self.credits_per_generation <= 0:
            errors.append("CREDITS_PER_GENERATION must be positive")

        if self.prompt_max_length <= 0:
            errors.append("PROMPT_MAX_LENGTH must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self


# Global settings instance - validates at import time
settings = Settings()
