"""
Shared fixtures for the Box portal tests.

No test talks to Box: HTTP calls are mocked with respx and the service
account key is generated on the fly.
"""
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import (
    BestAvailableEncryption,
    Encoding,
    PrivateFormat,
)

from config.settings import BoxSettings

KEY_PASSPHRASE = "correct horse battery staple"


class FakeClock:
    """Manually advanced monotonic clock for cache tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def encrypted_private_key_pem(rsa_key) -> str:
    return rsa_key.private_bytes(
        Encoding.PEM,
        PrivateFormat.PKCS8,
        BestAvailableEncryption(KEY_PASSPHRASE.encode()),
    ).decode()


@pytest.fixture
def box_settings(encrypted_private_key_pem) -> BoxSettings:
    return BoxSettings(
        client_id="user_client",
        client_secret="user_secret",
        redirect_uri="https://localhost:3001/api/auth/callback",
        service_client_id="service_client",
        service_client_secret="service_secret",
        enterprise_id="12345",
        jwt_private_key=encrypted_private_key_pem,
        jwt_passphrase=KEY_PASSPHRASE,
        jwt_public_key_id="kid42",
        http_timeout=5.0,
        folder_info_cache_ttl=60.0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
