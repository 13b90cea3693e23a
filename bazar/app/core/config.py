from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - recreates tables on startup
    debug: bool = False

    # PostgreSQL settings
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "bazar"
    db_password: str = "bazar"
    db_name: str = "bazar"

    # Connection pool settings
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 30  # Seconds to wait for a connection
    db_pool_recycle: int = 300
    db_pool_pre_ping: bool = True

    # SQLite pool settings (file-based SQLite during tests)
    db_sqlite_pool_size: int = 5
    db_sqlite_max_overflow: int = 5

    db_command_timeout: float = 30.0

    # Explicit DATABASE_URL (takes priority over db_* settings)
    database_url_override: str = Field(default="", validation_alias="DATABASE_URL")

    @property
    def database_url(self) -> str:
        """Build database connection URL.

        Priority:
        1. database_url_override (from DATABASE_URL env var or .env file)
        2. Built from db_* settings
        """
        if self.database_url_override:
            return self.database_url_override

        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Read-through cache TTLs, in milliseconds
    cache_default_ttl_ms: int = 60_000
    settings_cache_ttl_ms: int = 30_000
    credits_cache_ttl_ms: int = 10_000  # drives a user-visible yes/no decision
    pot_balance_cache_ttl_ms: int = 30_000
    stats_cache_ttl_ms: int = 60_000
    donor_totals_cache_ttl_ms: int = 60_000

    # Credit policy
    default_daily_free_listings: int = 5  # used when the settings row is missing
    credit_day_timezone: str = "UTC"  # calendar day used for the daily quota reset
    ledger_compensate_partial_failures: bool = False

    @field_validator(
        "cache_default_ttl_ms",
        "settings_cache_ttl_ms",
        "credits_cache_ttl_ms",
        "pot_balance_cache_ttl_ms",
        "stats_cache_ttl_ms",
        "donor_totals_cache_ttl_ms",
    )
    @classmethod
    def validate_ttl_positive(cls, v: int) -> int:
        """Validate cache TTL values are positive."""
        if v <= 0:
            raise ValueError("cache TTL values must be positive")
        return v

    @field_validator("default_daily_free_listings")
    @classmethod
    def validate_daily_free_listings(cls, v: int) -> int:
        if v < 0:
            raise ValueError("default_daily_free_listings must not be negative")
        return v

    @field_validator("credit_day_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Validate the timezone name resolves to a zoneinfo entry."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @field_validator("db_pool_size", "db_max_overflow", "db_sqlite_pool_size")
    @classmethod
    def validate_pool_size_positive(cls, v: int) -> int:
        """Validate pool_size is positive."""
        if v < 1:
            raise ValueError("pool size values must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
