# CipherSafe - Configuration
#
# Built once at process start from the environment (optionally seeded from
# a .env file) and passed explicitly to everything that needs it. The
# token signing secret lives here and is never mutated afterwards.

import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

VALID_BACKENDS = ("sqlite", "postgres")
VALID_ENVIRONMENTS = ("production", "development")

DEFAULT_TOKEN_TTL = 7 * 24 * 3600  # 7 days
DEFAULT_PASSWORD_ITERATIONS = 600_000  # OWASP 2023 for PBKDF2-SHA256
DEFAULT_MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class PostgresConfig:
    host: str = "localhost"
    port: int = 5432
    database: str = "ciphersafe"
    user: str = "postgres"
    password: str = field(default="", repr=False)
    min_size: int = 2
    max_size: int = 10
    command_timeout: float = 30.0


@dataclass(frozen=True)
class AppConfig:
    """Immutable server configuration.

    Attributes:
        secret_key: HMAC key used to sign session tokens
        token_ttl_seconds: Lifetime of a minted session token
        backend: "sqlite" (embedded file) or "postgres"
        db_path: SQLite database file
        postgres: Connection parameters for the postgres backend
        password_iterations: PBKDF2 iteration count for new hashes
        min_password_length: Registration password minimum
        environment: "production" hides storage error details from clients
        cors_origins: Allowed browser origins
        log_level: Root log level name
    """

    secret_key: str = field(repr=False)
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL
    backend: str = "sqlite"
    db_path: Path = Path("data/ciphersafe.db")
    postgres: PostgresConfig = PostgresConfig()
    password_iterations: int = DEFAULT_PASSWORD_ITERATIONS
    min_password_length: int = DEFAULT_MIN_PASSWORD_LENGTH
    environment: str = "production"
    cors_origins: Tuple[str, ...] = ("http://localhost:3000",)
    log_level: str = "INFO"

    def __post_init__(self):
        if not self.secret_key:
            raise ConfigError("secret_key must not be empty")
        if self.backend not in VALID_BACKENDS:
            raise ConfigError(
                f"Unknown backend '{self.backend}'. Must be one of: {VALID_BACKENDS}"
            )
        if self.environment not in VALID_ENVIRONMENTS:
            raise ConfigError(
                f"Unknown environment '{self.environment}'. "
                f"Must be one of: {VALID_ENVIRONMENTS}"
            )
        if self.token_ttl_seconds <= 0:
            raise ConfigError("token_ttl_seconds must be positive")
        if self.password_iterations < 1:
            raise ConfigError("password_iterations must be positive")
        if self.min_password_length < 1:
            raise ConfigError("min_password_length must be positive")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def load_config(
    env: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> AppConfig:
    """Build an AppConfig from environment variables.

    Args:
        env: Mapping to read instead of os.environ (tests pass a dict).
        dotenv_path: Optional .env file to load into os.environ first.

    Raises:
        ConfigError: If any value is invalid.
    """
    if env is None:
        load_dotenv(dotenv_path)
        env = os.environ

    secret_key = env.get("CIPHERSAFE_SECRET_KEY", "")
    if not secret_key:
        # Tokens will not survive a restart, and multiple workers will
        # reject each other's tokens.
        secret_key = secrets.token_urlsafe(32)
        logger.warning(
            "CIPHERSAFE_SECRET_KEY not set; generated an ephemeral signing key"
        )

    origins = env.get("CIPHERSAFE_CORS_ORIGINS", "http://localhost:3000")

    return AppConfig(
        secret_key=secret_key,
        token_ttl_seconds=_int_env(env, "CIPHERSAFE_TOKEN_TTL", DEFAULT_TOKEN_TTL),
        backend=env.get("CIPHERSAFE_BACKEND", "sqlite").strip().lower(),
        db_path=Path(env.get("CIPHERSAFE_DB_PATH", "data/ciphersafe.db")),
        postgres=PostgresConfig(
            host=env.get("DB_HOST", "localhost"),
            port=_int_env(env, "DB_PORT", 5432),
            database=env.get("DB_NAME", "ciphersafe"),
            user=env.get("DB_USER", "postgres"),
            password=env.get("DB_PASSWORD", ""),
        ),
        password_iterations=_int_env(
            env, "CIPHERSAFE_PASSWORD_ITERATIONS", DEFAULT_PASSWORD_ITERATIONS
        ),
        min_password_length=_int_env(
            env, "CIPHERSAFE_MIN_PASSWORD_LENGTH", DEFAULT_MIN_PASSWORD_LENGTH
        ),
        environment=env.get("CIPHERSAFE_ENV", "production").strip().lower(),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        log_level=env.get("CIPHERSAFE_LOG_LEVEL", "INFO").upper(),
    )
