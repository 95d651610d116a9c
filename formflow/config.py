"""Configuration management for the application."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AdminAccount(BaseModel):
    """An administrator on the admin allow-list."""

    email: str
    password_hash: str
    name: str = "Administrator"
    division: str = "IT"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Storage
    storage_backend: Literal["local", "hosted"] = Field(default="local")
    local_store_path: str = Field(default="./data/formflow.json")
    database_url: str = Field(default="sqlite:///./data/formflow.db")
    blob_dir: str = Field(default="./data/blobs")
    blob_base_url: str = Field(default="/media")

    # JWT
    jwt_secret: str = Field(default="change-me-in-production")
    jwt_algorithm: str = Field(default="HS256")
    jwt_expiration_minutes: int = Field(default=10080)  # 7 days

    # Admin allow-list, e.g. ADMIN_ACCOUNTS='[{"email": "...", "password_hash": "..."}]'
    admin_accounts: list[AdminAccount] = Field(default_factory=list)

    # Display / export
    display_timezone: str = Field(default="UTC")
    timestamp_format: str = Field(default="%d/%m/%Y %H:%M:%S")
    http_timeout: float = Field(default=30.0)

    # API
    environment: str = Field(default="development")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:9002"]
    )

    @model_validator(mode="after")
    def validate_production_settings(self) -> "Settings":
        """Validate that production has secure settings."""
        if self.environment == "production":
            if self.jwt_secret == "change-me-in-production":  # noqa: S105
                raise ValueError("JWT_SECRET must be changed in production")
            if not self.admin_accounts:
                raise ValueError("ADMIN_ACCOUNTS must list at least one administrator")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
