"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        GROUPS_DB_HOST: Database host (default: localhost)
        GROUPS_DB_PORT: Database port (default: 5432)
        GROUPS_DB_DATABASE: Database name (default: groups)
        GROUPS_DB_USERNAME: Database user (default: groups)
        GROUPS_DB_PASSWORD: Database password (required in production)
        GROUPS_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 2)
        GROUPS_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="GROUPS_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="groups", description="Database name")
    username: str = Field(default="groups", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class GroupsSettings(BaseSettings):
    """Behavioural settings for the groups bounded context.

    Environment variables:
        GROUPS_SEARCH_DEFAULT_LIMIT: Page size when the caller gives none (default: 25)
        GROUPS_SEARCH_MAX_LIMIT: Upper bound on any page size (default: 200)
        GROUPS_CONFLICT_RETRY_ATTEMPTS: Attempts for a structural mutation (default: 3)
        GROUPS_EXTERNAL_TIMEOUT_SECONDS: Timeout for one external call (default: 5.0)
        GROUPS_EXTERNAL_RETRY_ATTEMPTS: Attempts for external read calls (default: 3)
        GROUPS_EXTERNAL_BACKOFF_SECONDS: Base exponential backoff (default: 0.2)
    """

    model_config = SettingsConfigDict(
        env_prefix="GROUPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    search_default_limit: int = Field(default=25, ge=1, le=1000)
    search_max_limit: int = Field(default=200, ge=1, le=1000)
    conflict_retry_attempts: int = Field(default=3, ge=1, le=10)
    external_timeout_seconds: float = Field(default=5.0, gt=0)
    external_retry_attempts: int = Field(default=3, ge=1, le=10)
    external_backoff_seconds: float = Field(default=0.2, ge=0)

    @model_validator(mode="after")
    def validate_search_limits(self) -> "GroupsSettings":
        """Validate default page size does not exceed the maximum."""
        if self.search_default_limit > self.search_max_limit:
            raise ValueError(
                f"search_default_limit ({self.search_default_limit}) must be <= "
                f"search_max_limit ({self.search_max_limit})"
            )
        return self


class PlacesSettings(BaseSettings):
    """Settings for the place lookup (geocoding) client.

    Environment variables:
        GROUPS_PLACES_ENABLED: Resolve place ids on create/update (default: false)
        GROUPS_PLACES_API_KEY: Google Maps Platform API key
        GROUPS_PLACES_BASE_URL: Place details endpoint base URL
    """

    model_config = SettingsConfigDict(
        env_prefix="GROUPS_PLACES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=False)
    api_key: SecretStr = Field(default=SecretStr(""))
    base_url: str = Field(default="https://maps.googleapis.com/maps/api/place")

    @model_validator(mode="after")
    def validate_api_key(self) -> "PlacesSettings":
        """An enabled client must have an API key."""
        if self.enabled and not self.api_key.get_secret_value():
            raise ValueError("GROUPS_PLACES_API_KEY is required when places are enabled")
        return self


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Group Hierarchy API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def groups(self) -> GroupsSettings:
        """Get groups settings."""
        return get_groups_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings."""
    return DatabaseSettings()


@lru_cache
def get_groups_settings() -> GroupsSettings:
    """Get cached groups settings."""
    return GroupsSettings()


@lru_cache
def get_places_settings() -> PlacesSettings:
    """Get cached place lookup settings."""
    return PlacesSettings()
