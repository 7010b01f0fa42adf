"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class DatabaseSettings(BaseSettings):
    """
    Database configuration.

    Built once at startup and handed to the access service; nothing in the
    service layer reads the environment on its own.
    """

    model_config = SettingsConfigDict(env_prefix="DB_")

    host: str = Field(default="localhost")
    port: int = Field(default=5432, ge=1, le=65535)
    database: str = Field(default="guardian")
    username: str = Field(default="postgres")
    password: str = Field(default="postgres")
    driver: str = Field(
        default="postgresql+asyncpg",
        description="SQLAlchemy dialect+driver",
    )

    pool_size: int = Field(default=5, ge=1, le=100)
    pool_overflow: int = Field(default=10, ge=0, le=100)
    pool_timeout: int = Field(
        default=5,
        ge=1,
        description="Seconds to wait for a pooled connection; must be below operation_timeout",
    )
    statement_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Per-statement timeout enforced by the driver (seconds)",
    )
    operation_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Upper bound for one service operation (seconds)",
    )
    echo: bool = Field(default=False, description="Echo SQL queries")

    @model_validator(mode="after")
    def validate_pool_timeout(self) -> "DatabaseSettings":
        if self.pool_timeout >= self.operation_timeout:
            raise ValueError("pool_timeout must be less than operation_timeout")
        return self

    @property
    def url(self) -> URL:
        """Connection URL assembled from the individual fields."""
        return URL.create(
            drivername=self.driver,
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Guardian")
    app_version: str = Field(default="0.1.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)
    workers: int = Field(default=1)
    reload: bool = Field(default=False)

    # CORS
    cors_origins: list[str] = Field(default=["http://localhost:3000"])

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or text")

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "testing"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return v

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
