# CipherSafe - Session Tokens
#
# Stateless bearer tokens: base64url(JSON claims) "." base64url(HMAC-SHA256)
# Claims: sub (user id), email, iat, exp, typ="auth"
#
# There is no server-side session table and no revocation list; expiry is
# the only way a token stops working.

import base64
import binascii
import hashlib
import hmac
import json
import math
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.errors import TokenExpired, TokenInvalid, TokenMissing

TOKEN_TYPE = "auth"


@dataclass(frozen=True)
class Identity:
    """Verified caller identity carried by a session token."""

    user_id: str
    email: str
    issued_at: int
    expires_at: int


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode((data + padding).encode("ascii"))


class SessionIssuer:
    """Mints and verifies signed, time-limited session tokens.

    Args:
        secret_key: HMAC signing key, fixed for the issuer's lifetime.
        ttl_seconds: Lifetime of minted tokens.
        clock: Returns the current UNIX time. Injectable for tests.
    """

    def __init__(
        self,
        secret_key: str,
        ttl_seconds: int,
        clock: Callable[[], float] = time.time,
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._key = secret_key.encode("utf-8")
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def _sign(self, signing_input: bytes) -> bytes:
        return hmac.new(self._key, signing_input, hashlib.sha256).digest()

    def mint(self, user_id: str, email: str, ttl_seconds: Optional[int] = None) -> str:
        """Create a token for the given identity.

        Args:
            user_id: Owner's opaque identifier
            email: Owner's email (informational claim)
            ttl_seconds: Override the issuer's default lifetime

        Returns:
            The signed token string
        """
        now = self._clock()
        # Round exp up so a token never lives shorter than its TTL.
        claims = {
            "sub": user_id,
            "email": email,
            "iat": int(now),
            "exp": math.ceil(now + (ttl_seconds or self.ttl_seconds)),
            "typ": TOKEN_TYPE,
        }
        body = _b64encode(json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8"))
        signature = _b64encode(self._sign(body.encode("ascii")))
        return f"{body}.{signature}"

    def verify(self, token: Optional[str]) -> Identity:
        """Check signature and expiry, returning the embedded identity.

        Raises:
            TokenMissing: No token supplied
            TokenInvalid: Malformed token, bad signature or bad claims
            TokenExpired: Signature fine but past its expiry
        """
        if not token:
            raise TokenMissing()

        body, sep, signature = token.partition(".")
        if not sep or not body or not signature:
            raise TokenInvalid()

        try:
            body_bytes = body.encode("ascii")
            signature_bytes = signature.encode("ascii")
        except UnicodeEncodeError:
            raise TokenInvalid() from None
        expected = _b64encode(self._sign(body_bytes)).encode("ascii")

        # Constant-time comparison to prevent timing attacks
        if not secrets.compare_digest(signature_bytes, expected):
            raise TokenInvalid()

        try:
            claims = json.loads(_b64decode(body))
        except (binascii.Error, ValueError):
            raise TokenInvalid() from None

        if not isinstance(claims, dict) or claims.get("typ") != TOKEN_TYPE:
            raise TokenInvalid()

        user_id = claims.get("sub")
        email = claims.get("email")
        issued_at = claims.get("iat")
        expires_at = claims.get("exp")
        if not isinstance(user_id, str) or not user_id or not isinstance(email, str):
            raise TokenInvalid()
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise TokenInvalid()

        if self._clock() >= expires_at:
            raise TokenExpired()

        return Identity(
            user_id=user_id,
            email=email,
            issued_at=issued_at,
            expires_at=expires_at,
        )
