"""Tests for environment-driven configuration."""

from pathlib import Path

import pytest

from ciphersafe.core.config import AppConfig, load_config
from ciphersafe.core.errors import ConfigError


class TestLoadConfig:
    def test_defaults(self):
        config = load_config(env={"CIPHERSAFE_SECRET_KEY": "k"})
        assert config.secret_key == "k"
        assert config.token_ttl_seconds == 7 * 24 * 3600
        assert config.backend == "sqlite"
        assert config.db_path == Path("data/ciphersafe.db")
        assert config.password_iterations == 600_000
        assert config.min_password_length == 6
        assert config.is_production is True
        assert config.cors_origins == ("http://localhost:3000",)

    def test_generates_secret_when_unset(self):
        a = load_config(env={})
        b = load_config(env={})
        assert a.secret_key and b.secret_key
        assert a.secret_key != b.secret_key

    def test_overrides(self):
        config = load_config(
            env={
                "CIPHERSAFE_SECRET_KEY": "k",
                "CIPHERSAFE_TOKEN_TTL": "86400",
                "CIPHERSAFE_BACKEND": "Postgres",
                "DB_HOST": "db.internal",
                "DB_PORT": "6543",
                "DB_PASSWORD": "pw",
                "CIPHERSAFE_ENV": "development",
                "CIPHERSAFE_CORS_ORIGINS": "https://a.example, https://b.example",
            }
        )
        assert config.token_ttl_seconds == 86400
        assert config.backend == "postgres"
        assert config.postgres.host == "db.internal"
        assert config.postgres.port == 6543
        assert config.is_production is False
        assert config.cors_origins == ("https://a.example", "https://b.example")

    def test_secret_not_in_repr(self):
        config = load_config(env={"CIPHERSAFE_SECRET_KEY": "super-secret", "DB_PASSWORD": "pw"})
        assert "super-secret" not in repr(config)
        assert "pw'" not in repr(config.postgres)

    def test_reads_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CIPHERSAFE_TOKEN_TTL", raising=False)
        monkeypatch.setenv("CIPHERSAFE_SECRET_KEY", "from-env")
        env_file = tmp_path / ".env"
        env_file.write_text("CIPHERSAFE_TOKEN_TTL=120\n")
        config = load_config(dotenv_path=str(env_file))
        assert config.token_ttl_seconds == 120
        monkeypatch.delenv("CIPHERSAFE_TOKEN_TTL", raising=False)


class TestValidation:
    @pytest.mark.parametrize(
        "env",
        [
            {"CIPHERSAFE_BACKEND": "mongodb"},
            {"CIPHERSAFE_TOKEN_TTL": "soon"},
            {"CIPHERSAFE_TOKEN_TTL": "0"},
            {"CIPHERSAFE_ENV": "staging"},
            {"CIPHERSAFE_PASSWORD_ITERATIONS": "0"},
            {"DB_PORT": "five"},
        ],
    )
    def test_invalid_values(self, env):
        with pytest.raises(ConfigError):
            load_config(env={"CIPHERSAFE_SECRET_KEY": "k", **env})

    def test_empty_secret(self):
        with pytest.raises(ConfigError):
            AppConfig(secret_key="")
