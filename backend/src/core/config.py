"""Application configuration using pydantic-settings."""
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Storage
    storage_backend: Literal["postgres", "memory"] = "postgres"
    database_url: str = ""
    # Small pool: the service targets a low-memory host. Callers wait up to
    # db_pool_timeout seconds for a connection instead of failing fast.
    db_pool_size: int = Field(default=5, ge=1)
    db_max_overflow: int = Field(default=0, ge=0)
    db_pool_timeout: float = Field(default=30.0, gt=0)

    # Auth
    jwt_secret: str = Field(
        default="local-development-secret-change-me-0000",
        min_length=32,
    )
    jwt_algorithm: str = "HS256"
    jwt_expiry_days: int = Field(default=7, ge=1)

    # HTTP
    api_prefix: str = "/api"
    cors_origins_str: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )
    log_level: str = "INFO"

    # Metadata fetcher
    scraper_timeout: float = Field(default=5.0, gt=0)
    scraper_max_bytes: int = Field(default=5 * 1024 * 1024, gt=0)
    scraper_max_redirects: int = Field(default=3, ge=0)
    scraper_block_private_networks: bool = True
    favicon_service_url: str = "https://www.google.com/s2/favicons?domain={hostname}&sz=64"
    fetch_metadata_on_create: bool = True

    # Listing
    # False keeps `total` as the user's overall bookmark count, ignoring filters.
    count_filtered_total: bool = False
    max_page_size: int = Field(default=100, ge=1)

    # Collections
    default_collection_color: str = "#3B82F6"

    # Field length limits
    max_title_length: int = 500
    max_description_length: int = 2000
    max_notes_length: int = 10_000

    @model_validator(mode="after")
    def validate_database_url(self) -> "Settings":
        """Require a database URL whenever the PostgreSQL store is selected."""
        if self.storage_backend == "postgres" and not self.database_url:
            raise ValueError(
                "DATABASE_URL must be set when STORAGE_BACKEND is 'postgres'. "
                "Use STORAGE_BACKEND=memory for a throwaway in-memory store.",
            )
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
