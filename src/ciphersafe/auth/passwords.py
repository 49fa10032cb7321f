# CipherSafe - Password Hashing
#
# Login password -> stored hash (PBKDF2-HMAC-SHA256)
# Random per-user salt, cost stored alongside the hash.
#
# Encoded form: pbkdf2_sha256$<iterations>$<b64 salt>$<b64 hash>

import base64
import os
from typing import Optional, Tuple

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.config import DEFAULT_PASSWORD_ITERATIONS

ALGORITHM = "pbkdf2_sha256"


class PasswordHasher:
    """
    Salted, cost-parameterized one-way password hashing.

    Flow:
    1. Registration: hash() with a fresh 256-bit salt
    2. Login: verify() re-derives with the salt and iteration count that
       were stored with the hash, so raising the cost later does not
       invalidate existing accounts
    3. Comparison is constant time (PBKDF2HMAC.verify)
    """

    KEY_LENGTH = 32  # 256 bits
    SALT_LENGTH = 32  # 256-bit salt

    def __init__(self, iterations: int = DEFAULT_PASSWORD_ITERATIONS):
        if iterations < 1:
            raise ValueError("iterations must be positive")
        self.iterations = iterations
        # Verified against when the account does not exist, so unknown
        # emails cost the same as wrong passwords.
        self._dummy_hash: Optional[str] = None

    @classmethod
    def _kdf(cls, salt: bytes, iterations: int) -> PBKDF2HMAC:
        return PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=cls.KEY_LENGTH,
            salt=salt,
            iterations=iterations,
            backend=default_backend(),
        )

    def hash(self, password: str) -> str:
        """Hash a password for storage. Returns the encoded string."""
        salt = os.urandom(self.SALT_LENGTH)
        derived = self._kdf(salt, self.iterations).derive(password.encode("utf-8"))
        return "$".join(
            (
                ALGORITHM,
                str(self.iterations),
                base64.b64encode(salt).decode("ascii"),
                base64.b64encode(derived).decode("ascii"),
            )
        )

    @staticmethod
    def _decode(encoded: str) -> Tuple[int, bytes, bytes]:
        algorithm, iterations, salt_b64, hash_b64 = encoded.split("$")
        if algorithm != ALGORITHM:
            raise ValueError(f"unsupported algorithm {algorithm!r}")
        return (
            int(iterations),
            base64.b64decode(salt_b64.encode("ascii"), validate=True),
            base64.b64decode(hash_b64.encode("ascii"), validate=True),
        )

    def verify(self, password: str, encoded: str) -> bool:
        """Check a password against a stored hash.

        Malformed or foreign hashes verify as False rather than raising.
        """
        try:
            iterations, salt, expected = self._decode(encoded)
        except (ValueError, TypeError):
            return False
        if iterations < 1:
            return False
        try:
            self._kdf(salt, iterations).verify(password.encode("utf-8"), expected)
        except InvalidKey:
            return False
        return True

    def verify_dummy(self, password: str) -> bool:
        """Burn one verification's worth of work. Always returns False."""
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("ciphersafe-dummy-password")
        self.verify(password, self._dummy_hash)
        return False

    def needs_rehash(self, encoded: str) -> bool:
        """True if the stored hash used a different cost than configured."""
        try:
            iterations, _, _ = self._decode(encoded)
        except (ValueError, TypeError):
            return True
        return iterations != self.iterations
