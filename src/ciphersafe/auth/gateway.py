"""
Request-time authorization gate.

Pulls the bearer token out of the Authorization header and hands it to the
SessionIssuer. Composed in front of every protected use case.
"""

from typing import Mapping, Optional

from ..core.errors import TokenExpired, TokenInvalid, TokenMissing
from ..core.logging import EventType, log_security_event
from .sessions import Identity, SessionIssuer

BEARER_SCHEME = "bearer"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    # Starlette Headers are already case-insensitive; plain dicts are not.
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, candidate in headers.items():
        if key.lower() == lowered:
            return candidate
    return None


class AuthGateway:
    """Verifies `Authorization: Bearer <token>` headers."""

    def __init__(self, issuer: SessionIssuer):
        self.issuer = issuer

    def extract_token(self, headers: Mapping[str, str]) -> str:
        """Return the raw bearer token, or raise TokenMissing/TokenInvalid."""
        raw = _header(headers, "Authorization")
        if raw is None or not raw.strip():
            raise TokenMissing()

        scheme, _, token = raw.strip().partition(" ")
        if scheme.lower() != BEARER_SCHEME:
            raise TokenInvalid()
        token = token.strip()
        if not token:
            raise TokenMissing()
        return token

    def authorize(self, headers: Mapping[str, str]) -> Identity:
        """Return the verified identity for a request's headers.

        Raises:
            TokenMissing, TokenInvalid, TokenExpired
        """
        try:
            return self.issuer.verify(self.extract_token(headers))
        except (TokenMissing, TokenInvalid, TokenExpired) as exc:
            log_security_event(
                EventType.TOKEN_REJECTED,
                "Request rejected by auth gateway",
                level="warning",
                reason=exc.code,
            )
            raise
