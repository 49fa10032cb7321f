"""
Shared pytest fixtures for the CipherSafe test suite.

Every test gets its own SQLite file under tmp_path, a fast password hasher
(low PBKDF2 iteration count) and a controllable clock for token expiry.
"""

import pytest
import pytest_asyncio

from ciphersafe.auth import (
    AuthGateway,
    CredentialStore,
    PasswordHasher,
    SessionIssuer,
)
from ciphersafe.core.config import AppConfig
from ciphersafe.services import AccountService, VaultService
from ciphersafe.storage import SQLiteBackend

TEST_SECRET = "test-secret-key-0123456789"
TEST_ITERATIONS = 1_000
START_TIME = 1_700_000_000


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        secret_key=TEST_SECRET,
        db_path=tmp_path / "ciphersafe.db",
        password_iterations=TEST_ITERATIONS,
        environment="development",
    )


@pytest_asyncio.fixture
async def backend(config):
    backend = SQLiteBackend(config.db_path)
    await backend.initialize()
    yield backend
    await backend.close()


@pytest.fixture
def hasher():
    return PasswordHasher(iterations=TEST_ITERATIONS)


@pytest.fixture
def issuer(config, clock):
    return SessionIssuer(config.secret_key, config.token_ttl_seconds, clock=clock)


@pytest.fixture
def gateway(issuer):
    return AuthGateway(issuer)


@pytest.fixture
def credentials(backend, hasher):
    return CredentialStore(backend, hasher, min_password_length=6)


@pytest.fixture
def accounts(credentials, issuer):
    return AccountService(credentials, issuer)


@pytest.fixture
def vault_service(gateway, backend):
    return VaultService(gateway, backend)
