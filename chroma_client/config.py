"""Client configuration using Pydantic Settings.

All configuration is loaded from environment variables.
No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ChromaSettings(BaseSettings):
    """Chroma server connection configuration."""

    model_config = SettingsConfigDict(env_prefix="CHROMA_")

    host: str = Field(
        default="localhost",
        description="Chroma server host",
    )
    port: int = Field(
        default=8000,
        description="Chroma server port",
    )
    ssl: bool = Field(
        default=False,
        description="Use https instead of http",
    )
    tenant: str = Field(
        default="default_tenant",
        description="Tenant that owns the collections",
    )
    database: str = Field(
        default="default_database",
        description="Database that holds the collections",
    )
    auth_token: SecretStr | None = Field(
        default=None,
        description="Bearer token (optional for local)",
    )
    timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds",
    )
    connect_timeout: float = Field(
        default=5.0,
        description="Connection establishment timeout in seconds",
    )
    max_connections: int = Field(
        default=10,
        ge=1,
        description="Maximum concurrent connections in the pool",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Retries for transient transport failures",
    )
    backoff_base: float = Field(
        default=0.2,
        gt=0,
        description="Initial backoff between retries in seconds",
    )
    backoff_max: float = Field(
        default=5.0,
        gt=0,
        description="Maximum backoff between retries in seconds",
    )
    max_batch_size: int = Field(
        default=256,
        ge=1,
        description="Records or query vectors sent per request",
    )
    idempotent_delete: bool = Field(
        default=True,
        description="Treat deleting a missing collection as success",
    )

    @property
    def base_url(self) -> str:
        """Server root URL built from host, port and scheme."""
        scheme = "https" if self.ssl else "http"
        return f"{scheme}://{self.host}:{self.port}"


class Settings(BaseSettings):
    """Main client settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    chroma: ChromaSettings = Field(default_factory=ChromaSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached client settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()
