import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from tollgate.client.primitives.storage import MemoryStore
from tollgate.config import ClientConfig, VerifierConfig
from tollgate.verifier.signature import LocalKeySignatureVerifier

NOW = 1_700_000_000
ISSUER = "example.com"
AUDIENCE = "api.example.com"
KEY_ID = "key-1"


def b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def signature_verifier(rsa_private_key):
    return LocalKeySignatureVerifier({KEY_ID: rsa_private_key.public_key()})


@pytest.fixture
def verifier_config():
    return VerifierConfig(issuer=ISSUER, audience=AUDIENCE)


@pytest.fixture
def valid_claims():
    return {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "sub": "user-123",
        "email": "user@example.com",
        "exp": NOW + 3600,
        "iat": NOW - 10,
        "language": "en",
    }


@pytest.fixture
def make_token(rsa_private_key, valid_claims):
    """Build a compact RS256 JWT signed with the session key."""

    def _make(claims=None, header=None, overrides=None):
        header = header if header is not None else {"alg": "RS256", "kid": KEY_ID}
        claims = dict(valid_claims if claims is None else claims)
        claims.update(overrides or {})

        header_segment = b64url(json.dumps(header).encode())
        payload_segment = b64url(json.dumps(claims).encode())
        message = f"{header_segment}.{payload_segment}".encode("ascii")
        signature = rsa_private_key.sign(message, padding.PKCS1v15(), hashes.SHA256())
        return f"{header_segment}.{payload_segment}.{b64url(signature)}"

    return _make


@pytest.fixture
def client_config():
    return ClientConfig(
        client_id="client-456",
        redirect_uri="https://myapp.com/callback",
        authorization_endpoint="https://auth.example.com/v1/",
        token_endpoint="https://api.auth.example.com/v1/token",
        api_endpoint="https://api.example.com/token-data",
        language="en",
        locale="en-CA",
    )


@pytest.fixture
def flow_backend():
    return MemoryStore()


@pytest.fixture
def token_backend():
    return MemoryStore()


@pytest.fixture
def http_client():
    return AsyncMock()


@pytest.fixture
def make_response():
    def _make(status_code=200, body=None, json_error=None):
        response = MagicMock()
        response.status_code = status_code
        if json_error is not None:
            response.json.side_effect = json_error
        else:
            response.json.return_value = body if body is not None else {}
        return response

    return _make
