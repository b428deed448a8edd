"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables or a local .env file.
"""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "RoomVote"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - shared with the token issuer

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    # Authentication (tokens are issued elsewhere, we only verify them)
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str | None = None
    JWT_AUDIENCE: str | None = None

    # Azure Cosmos DB
    # Either the endpoint (RBAC via DefaultAzureCredential) or a connection
    # string (local emulator) must be provided.
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None
    AZURE_COSMOS_DATABASE: str = "roomvote"
    AZURE_COSMOS_DISABLE_SSL: bool = False
    AZURE_COSMOS_CREATE_CONTAINERS: bool = False

    # Optimistic concurrency: how many times a conflicting ETag write is
    # re-read and re-applied before giving up
    BALLOT_WRITE_MAX_RETRIES: int = 5
    ROOM_WRITE_MAX_RETRIES: int = 5
    NOTIFICATION_WRITE_MAX_RETRIES: int = 3

    # Ballot rules
    BALLOT_MIN_CHOICES: int = 2

    # External vote ledger (best-effort mirror, never blocks the primary write)
    LEDGER_ENABLED: bool = False
    LEDGER_API_URL: str = "http://localhost:8080"
    LEDGER_TIMEOUT_SECONDS: float = 5.0

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def cosmos_enabled(self) -> bool:
        """Whether a Cosmos DB account has been configured."""
        return bool(self.AZURE_COSMOS_ENDPOINT or self.AZURE_COSMOS_CONNECTION_STRING)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
