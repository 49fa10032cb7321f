# CipherSafe - Structured Logging
#
# structlog JSON output layered on stdlib logging. Operational messages use
# plain `logging.getLogger(__name__)`; security-relevant events go through
# log_security_event() so they share one shape.
#
# Never pass passwords, tokens, hashes or vault payloads as details.

import logging
import sys
from enum import Enum
from typing import Any

import structlog

SECURITY_LOGGER_NAME = "ciphersafe.security"


class EventType(str, Enum):
    """Security events worth a structured record."""

    USER_REGISTERED = "user.registered"
    REGISTRATION_REJECTED = "user.registration.rejected"
    LOGIN_SUCCEEDED = "user.login"
    LOGIN_FAILED = "user.login.failed"
    TOKEN_REJECTED = "session.token.rejected"
    VAULT_CREATED = "vault.created"
    VAULT_SAVED = "vault.saved"
    VAULT_CONFLICT = "vault.conflict"
    SETTINGS_UPDATED = "settings.updated"
    STORAGE_ERROR = "storage.error"
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install the structlog processor chain and a stderr handler.

    Safe to call more than once; only the level is updated on repeat calls.
    """
    global _configured

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if _configured:
        return

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))  # structlog renders
    root_logger.addHandler(handler)
    _configured = True


def get_security_logger():
    return structlog.get_logger(SECURITY_LOGGER_NAME)


def log_security_event(
    event_type: EventType,
    message: str,
    level: str = "info",
    **details: Any,
) -> None:
    """Emit one structured security event.

    Args:
        event_type: Kind of event (EventType)
        message: Human-readable description
        level: structlog method name ("info", "warning", "error")
        **details: Extra context (user_id, reason, versions...)
    """
    log = get_security_logger()
    getattr(log, level)(message, event_type=event_type.value, **details)
