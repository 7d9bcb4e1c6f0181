"""Configuration management for homequest."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage Configuration
    sqlite_db_path: str = Field(default="./data/homequest.db", description="SQLite document store path")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # Authentication
    secret_key: str | None = Field(default=None, description="Secret used to sign caller auth tokens (required)")
    auth_token_max_age_seconds: int = Field(default=60 * 60 * 24 * 30, description="Auth token lifetime in seconds")

    # Push Notification Provider
    push_base_url: str = Field(default="http://push:8080", description="Multicast push provider base URL")
    push_api_key: str | None = Field(default=None, description="Push provider API key (optional)")

    # Quest Policy
    require_proof_review: bool = Field(
        default=False,
        description="If true, proof submission waits in PENDING_VERIFICATION for a peer approval",
    )

    # Feed Retention
    feed_retention_days: int = Field(default=30, description="Feed entries older than this are pruned")
    feed_max_entries: int = Field(default=500, description="Maximum feed entries kept per household")
    feed_prune_hour: int = Field(default=3, description="UTC hour of the daily feed prune job")
    feed_prune_minute: int = Field(default=0, description="UTC minute of the daily feed prune job")

    # Store Semantics
    transaction_max_attempts: int = Field(default=5, description="Optimistic transaction attempts before giving up")
    trigger_max_delivery_attempts: int = Field(default=3, description="Change-stream delivery attempts per event")
    trigger_retry_delay_seconds: float = Field(default=0.5, description="Base backoff between trigger redeliveries")

    # Households
    invite_code_max_attempts: int = Field(default=5, description="Invite code generation attempts before failing")

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Collections (shared contract with every client)
    USERS_COLLECTION: str = "users"
    HOUSEHOLDS_COLLECTION: str = "households"
    TASKS_SUB_COLLECTION: str = "tasks"
    COUPONS_SUB_COLLECTION: str = "coupons"
    FEED_SUB_COLLECTION: str = "activity_feed"

    # API Configuration
    API_TIMEOUT_SECONDS: int = 30

    # Level Progression (index = level - 1, value = total XP required)
    XP_THRESHOLDS: tuple[int, ...] = (0, 200, 500, 1_000, 2_000, 3_500, 6_000, 9_000, 13_000, 18_000)
    MAX_LEVEL: int = 10

    # Economy
    MIN_XP_REWARD: int = 10
    MAX_XP_REWARD: int = 500
    MIN_COIN_REWARD: int = 5
    MAX_COIN_REWARD: int = 200

    # User Defaults
    DEFAULT_LEVEL: int = 1
    DEFAULT_XP: int = 0
    DEFAULT_COIN_BALANCE: int = 0
    MAX_DISPLAY_NAME_LENGTH: int = 32

    # Households
    INVITE_CODE_LENGTH: int = 6
    INVITE_CODE_CHARS: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    MAX_HOUSEHOLD_NAME_LENGTH: int = 50

    # Tasks & Coupons
    MAX_TASK_TITLE_LENGTH: int = 80
    MAX_TASK_DESCRIPTION_LENGTH: int = 500
    MAX_COUPON_TITLE_LENGTH: int = 60

    # Feed
    FEED_PAGE_SIZE: int = 20

    # Pagination Defaults
    DEFAULT_PER_PAGE_LIMIT: int = 100


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
