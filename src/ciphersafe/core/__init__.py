# CipherSafe - Core Module
#
# Shared plumbing used by every other module:
# - Configuration (AppConfig, load_config)
# - Error taxonomy
# - Structured logging
# - SQLite connection helper

from .config import AppConfig, PostgresConfig, load_config
from .errors import (
    AccountExists,
    CipherSafeError,
    ConfigError,
    InvalidCredentials,
    InvalidInput,
    StorageFailure,
    TokenExpired,
    TokenInvalid,
    TokenMissing,
    VersionConflict,
)
from .logging import EventType, configure_logging, log_security_event

__all__ = [
    # Configuration
    "AppConfig",
    "PostgresConfig",
    "load_config",
    # Errors
    "CipherSafeError",
    "ConfigError",
    "InvalidInput",
    "AccountExists",
    "InvalidCredentials",
    "TokenMissing",
    "TokenInvalid",
    "TokenExpired",
    "VersionConflict",
    "StorageFailure",
    # Logging
    "EventType",
    "configure_logging",
    "log_security_event",
]
