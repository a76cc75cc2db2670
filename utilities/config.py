"""
Configuration management using environment variables.
Handles all bot settings with proper validation and defaults.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path


class BotConfig(BaseSettings):
    """
    Configuration class for the tracker bot.
    Every field is read from an environment variable prefixed with MANGADEX_BOT_.
    """

    model_config = SettingsConfigDict(
        env_prefix="MANGADEX_BOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields from .env
    )

    # Discord Configuration
    discord_token: str = Field(default="", description="Token used to authenticate the bot")
    guild_id: Optional[int] = Field(default=None, description="Guild to register commands in (global if unset)")

    # MongoDB Configuration
    connection_string: str = Field(default="mongodb://localhost:27017")
    database: str = Field(default="mangadex_bot")
    collection: str = Field(default="manga")

    # Scan Configuration
    scan_period: int = Field(default=21600, description="Seconds between the start of two scans")
    scan_delay_seconds: float = Field(default=0.25, description="Pause after each manga in a scan")
    event_queue_size: int = Field(default=1000, description="Capacity of the update event queue")
    timezone: str = Field(default="UTC")

    # MangaDex Configuration
    api_root: str = Field(default="https://api.mangadex.org")
    site_root: str = Field(default="https://mangadex.org")
    request_timeout: int = Field(default=30)
    rate_limit_per_second: float = Field(default=5.0)

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    # Development/Testing
    debug: bool = Field(default=False)
    dry_run: bool = Field(default=False, description="Log notifications instead of sending them")

    @field_validator('scan_period')
    @classmethod
    def validate_scan_period(cls, v):
        """Ensure the scan period is at least a minute."""
        if v < 60:
            raise ValueError('scan_period must be at least 60 seconds')
        return v

    @field_validator('scan_delay_seconds')
    @classmethod
    def validate_scan_delay(cls, v):
        """Ensure the pacing delay is non-negative."""
        if v < 0:
            raise ValueError('scan_delay_seconds cannot be negative')
        return v

    @field_validator('event_queue_size')
    @classmethod
    def validate_queue_size(cls, v):
        """Ensure the event queue is bounded and usable."""
        if v < 1:
            raise ValueError('event_queue_size must be at least 1')
        return v

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 5 or v > 300:
            raise ValueError('request_timeout must be between 5 and 300 seconds')
        return v

    @field_validator('rate_limit_per_second')
    @classmethod
    def validate_rate_limit(cls, v):
        """Ensure rate limit is reasonable."""
        if v < 0.1 or v > 10:
            raise ValueError('rate_limit_per_second must be between 0.1 and 10')
        return v

    @field_validator('api_root', 'site_root')
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_user_agent(self) -> str:
        """Get user agent string for requests."""
        return "mangadex-tracker-bot/1.0"

    def get_headers(self) -> dict:
        """Get default headers for MangaDex API requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "application/json",
        }


# Global configuration instance
config = BotConfig()
