"""Tests for signed session tokens (mint / verify / expiry)."""

import base64
import json

import pytest

from ciphersafe.auth.sessions import Identity, SessionIssuer
from ciphersafe.core.errors import TokenExpired, TokenInvalid, TokenMissing


def _decode_claims(token: str) -> dict:
    body = token.split(".")[0]
    return json.loads(base64.urlsafe_b64decode(body + "=" * (-len(body) % 4)))


def _forge(claims: dict, signature: str) -> str:
    body = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
    return f"{body}.{signature}"


class TestMint:
    def test_embeds_identity_and_expiry(self, issuer, clock):
        token = issuer.mint("user-1", "alice@example.com")
        claims = _decode_claims(token)
        assert claims["sub"] == "user-1"
        assert claims["email"] == "alice@example.com"
        assert claims["iat"] == int(clock.now)
        assert claims["exp"] == int(clock.now) + 7 * 24 * 3600
        assert claims["typ"] == "auth"

    def test_ttl_override(self, issuer, clock):
        claims = _decode_claims(issuer.mint("u", "u@example.com", ttl_seconds=60))
        assert claims["exp"] - claims["iat"] == 60

    def test_requires_secret(self):
        with pytest.raises(ValueError):
            SessionIssuer("", 60)

    def test_requires_positive_ttl(self):
        with pytest.raises(ValueError):
            SessionIssuer("secret", 0)


class TestVerify:
    def test_round_trip(self, issuer):
        identity = issuer.verify(issuer.mint("user-1", "alice@example.com"))
        assert isinstance(identity, Identity)
        assert identity.user_id == "user-1"
        assert identity.email == "alice@example.com"

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing(self, issuer, token):
        with pytest.raises(TokenMissing):
            issuer.verify(token)

    @pytest.mark.parametrize("token", ["garbage", "a.", ".b", "a.b.c", "ünï.cödé"])
    def test_malformed(self, issuer, token):
        with pytest.raises(TokenInvalid):
            issuer.verify(token)

    def test_tampered_claims(self, issuer):
        token = issuer.mint("user-1", "alice@example.com")
        claims = _decode_claims(token)
        claims["sub"] = "user-2"
        forged = _forge(claims, token.split(".")[1])
        with pytest.raises(TokenInvalid):
            issuer.verify(forged)

    def test_other_secret_rejected(self, issuer, clock):
        other = SessionIssuer("some-other-secret", 3600, clock=clock)
        with pytest.raises(TokenInvalid):
            issuer.verify(other.mint("user-1", "alice@example.com"))

    def test_one_second_token_expires_after_two_seconds(self, config, clock):
        short = SessionIssuer(config.secret_key, 1, clock=clock)
        token = short.mint("user-1", "alice@example.com")
        short.verify(token)
        clock.advance(2)
        with pytest.raises(TokenExpired):
            short.verify(token)

    def test_fractional_mint_time_keeps_full_ttl(self, config, clock):
        clock.advance(0.9)
        short = SessionIssuer(config.secret_key, 1, clock=clock)
        token = short.mint("user-1", "alice@example.com")
        clock.advance(0.95)
        assert short.verify(token).user_id == "user-1"
        clock.advance(0.2)
        with pytest.raises(TokenExpired):
            short.verify(token)

    def test_expires_exactly_at_exp(self, issuer, clock):
        token = issuer.mint("u", "u@example.com", ttl_seconds=10)
        clock.advance(9)
        issuer.verify(token)
        clock.advance(1)
        with pytest.raises(TokenExpired):
            issuer.verify(token)

    def test_bad_signature_beats_expiry(self, issuer, clock):
        token = issuer.mint("u", "u@example.com", ttl_seconds=1)
        clock.advance(5)
        with pytest.raises(TokenInvalid):
            issuer.verify(token[:-2] + ("AA" if not token.endswith("AA") else "BB"))

    def test_signed_but_wrong_type(self, config, clock):
        import hashlib
        import hmac

        claims = {"sub": "u", "email": "u@example.com", "iat": 1, "exp": 2**40, "typ": "refresh"}
        body = base64.urlsafe_b64encode(json.dumps(claims).encode()).rstrip(b"=").decode()
        sig = hmac.new(config.secret_key.encode(), body.encode(), hashlib.sha256).digest()
        token = f"{body}.{base64.urlsafe_b64encode(sig).rstrip(b'=').decode()}"
        issuer = SessionIssuer(config.secret_key, 60, clock=clock)
        with pytest.raises(TokenInvalid):
            issuer.verify(token)
