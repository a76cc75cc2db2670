"""
Test cases for bot configuration.
"""

import pytest
from pydantic import ValidationError

from utilities.config import BotConfig


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove bot settings inherited from the environment."""
    for name in [
        "DISCORD_TOKEN", "GUILD_ID", "CONNECTION_STRING", "DATABASE", "COLLECTION",
        "SCAN_PERIOD", "SCAN_DELAY_SECONDS", "EVENT_QUEUE_SIZE", "API_ROOT", "SITE_ROOT",
        "REQUEST_TIMEOUT", "RATE_LIMIT_PER_SECOND", "LOG_LEVEL", "LOG_FORMAT", "DRY_RUN"
    ]:
        monkeypatch.delenv(f"MANGADEX_BOT_{name}", raising=False)


class TestBotConfig:
    """Test cases for BotConfig."""

    def test_defaults(self):
        config = BotConfig(_env_file=None)

        assert config.scan_period == 21600
        assert config.scan_delay_seconds == 0.25
        assert config.event_queue_size == 1000
        assert config.guild_id is None
        assert config.api_root == "https://api.mangadex.org"
        assert config.dry_run is False

    def test_environment_variables(self, monkeypatch):
        """Test that settings are read from MANGADEX_BOT_ variables."""
        monkeypatch.setenv("MANGADEX_BOT_DISCORD_TOKEN", "secret")
        monkeypatch.setenv("MANGADEX_BOT_GUILD_ID", "123456789012345678")
        monkeypatch.setenv("MANGADEX_BOT_CONNECTION_STRING", "mongodb://db:27017")
        monkeypatch.setenv("MANGADEX_BOT_DATABASE", "bot")
        monkeypatch.setenv("MANGADEX_BOT_COLLECTION", "tracked")
        monkeypatch.setenv("MANGADEX_BOT_SCAN_PERIOD", "600")

        config = BotConfig(_env_file=None)

        assert config.discord_token == "secret"
        assert config.guild_id == 123456789012345678
        assert config.connection_string == "mongodb://db:27017"
        assert config.database == "bot"
        assert config.collection == "tracked"
        assert config.scan_period == 600

    def test_scan_period_minimum(self):
        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, scan_period=59)

    def test_negative_scan_delay(self):
        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, scan_delay_seconds=-1)

    def test_event_queue_size_minimum(self):
        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, event_queue_size=0)

    def test_rate_limit_bounds(self):
        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, rate_limit_per_second=0)

        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, rate_limit_per_second=11)

    def test_roots_trailing_slash_stripped(self):
        config = BotConfig(_env_file=None, api_root="https://api.mangadex.test/", site_root="https://mangadex.test/")

        assert config.api_root == "https://api.mangadex.test"
        assert config.site_root == "https://mangadex.test"

    def test_log_level_normalized(self):
        assert BotConfig(_env_file=None, log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, log_level="verbose")

    def test_log_format(self):
        assert BotConfig(_env_file=None, log_format="CONSOLE").log_format == "console"

        with pytest.raises(ValidationError):
            BotConfig(_env_file=None, log_format="xml")

    def test_headers(self):
        headers = BotConfig(_env_file=None).get_headers()

        assert headers["User-Agent"] == "mangadex-tracker-bot/1.0"
        assert headers["Accept"] == "application/json"

    def test_log_file_path(self):
        assert BotConfig(_env_file=None).get_log_file_path() is None
        assert str(BotConfig(_env_file=None, log_file="logs/bot.log").get_log_file_path()) == "logs/bot.log"
