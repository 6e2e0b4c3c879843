"""Application configuration using Pydantic settings."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Application
    app_name: str = "tasks-api"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    allowed_origins: str = "*"

    # Database
    db_user: str = "postgres"
    db_host: str = "localhost"
    db_name: str = "tasks"
    db_password: str = ""
    db_port: int = 5432
    database_url: str | None = None
    create_schema: bool = True

    # Remote log shipping (BetterStack or any JSON-over-HTTP collector)
    remote_log_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("remote_log_url", "betterstack_log_url"),
    )

    # OpenTelemetry / Base14 Scout
    otel_service_name: str = "tasks-api"
    otel_exporter_otlp_endpoint: str = "http://localhost:4318"
    otel_enabled: bool = True
    otel_sdk_disabled: bool = False
    scout_environment: str = "development"

    @property
    def sqlalchemy_url(self) -> str | URL:
        """Connection URL for the async engine.

        ``DATABASE_URL`` wins when set; otherwise the URL is assembled from
        the individual ``DB_*`` parts so passwords need no manual escaping.
        """
        if self.database_url:
            return self.database_url
        return URL.create(
            "postgresql+asyncpg",
            username=self.db_user,
            password=self.db_password or None,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )

    @property
    def telemetry_enabled(self) -> bool:
        return self.otel_enabled and not self.otel_sdk_disabled

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
