"""Tests for settings loading."""
import pytest

from stratosafe.core.config import load_settings
from stratosafe.core.errors import ConfigurationError


class TestLoadSettings:

    def test_defaults(self, settings):
        assert settings.JWT_ALGORITHM == "HS256"
        assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 24 * 60
        assert settings.BACKUP_CODE_COUNT == 10
        assert settings.MFA_VALID_WINDOW == 1
        assert settings.RATE_LIMIT == "100/15minutes"

    def test_missing_signing_key_is_fatal(self, monkeypatch):
        monkeypatch.delenv("JWT_SECRET", raising=False)
        with pytest.raises(ConfigurationError, match="JWT_SECRET"):
            load_settings(_env_file=None)

    def test_short_signing_key_is_fatal(self):
        with pytest.raises(ConfigurationError, match="JWT_SECRET"):
            load_settings(_env_file=None, JWT_SECRET="too-short")

    def test_malformed_rate_limit_is_fatal(self):
        with pytest.raises(ConfigurationError, match="RATE_LIMIT"):
            load_settings(_env_file=None, RATE_LIMIT="lots")

    def test_bcrypt_rounds_out_of_range(self):
        with pytest.raises(ConfigurationError):
            load_settings(_env_file=None, BCRYPT_ROUNDS=2)

    def test_database_url_is_composed(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        s = load_settings(_env_file=None, DB_HOST="db", DB_PORT=3307, DB_USER="u", DB_PASSWORD="p", DB_NAME="n")
        assert s.async_database_url == "mysql+aiomysql://u:p@db:3307/n?charset=utf8mb4"

    def test_explicit_database_url_wins(self):
        s = load_settings(_env_file=None, DATABASE_URL="sqlite+aiosqlite:///tmp/x.db")
        assert s.async_database_url == "sqlite+aiosqlite:///tmp/x.db"
