"""Client configuration loaded from environment variables."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_API_URL = (
    "https://backend-museum-fqe0fsgtcddrfeff.canadacentral-01.azurewebsites.net/api"
)


class BookingConfig(BaseSettings):
    """Booking client configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Museum ticketing REST API
    museum_api_url: str = Field(
        default=DEFAULT_API_URL,
        description="Base URL of the ticketing REST API (scheme optional)",
    )
    http_timeout: float = Field(
        default=30.0,
        description="Per-request timeout in seconds",
    )

    # Paths
    state_dir: str = Field(
        default="data/state",
        description="Directory for the persisted login session",
    )

    # Session settings
    max_session_age_hours: int = Field(
        default=24,
        description="Maximum age of a stored token before logging in again",
    )

    # Bulk submission
    submit_stagger_ms: int = Field(
        default=25,
        description="Delay between successive request releases in a bulk batch",
    )
    submit_max_concurrency: int = Field(
        default=10,
        description="Maximum number of booking requests in flight at once",
    )
    submit_max_attempts: int = Field(
        default=1,
        description="Attempts per record on transient failures (1 disables retry)",
    )

    # Ingest defaults
    default_time_slot: str = Field(
        default="16:30-18:00",
        description="Time slot used for shorthand name,id rows",
    )
    default_advance_days: int = Field(
        default=5,
        description="Visit date offset (days from today) for shorthand rows",
    )

    # Ticket release window
    release_time: str = Field(
        default="17:00",
        description="Daily ticket release time (HH:MM, release timezone)",
    )
    release_window_minutes: int = Field(
        default=5,
        description="Length of the release window in minutes",
    )
    release_timezone: str = Field(
        default="Asia/Shanghai",
        description="IANA timezone the museum releases tickets in",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("submit_max_concurrency", "submit_max_attempts")
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value


# Singleton pattern
_config: BookingConfig | None = None


def get_config() -> BookingConfig:
    """Get the booking configuration singleton.

    Returns:
        BookingConfig: Booking configuration instance
    """
    global _config
    if _config is None:
        _config = BookingConfig()
    return _config
