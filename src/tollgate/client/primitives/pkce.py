"""PKCE (Proof Key for Code Exchange) primitives.

Implements RFC 7636 S256 parameter generation. Random values are 32 bytes
from the operating system's secure source, base64url-encoded without
padding, which always yields 43 characters.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

from tollgate.client.models.errors import EnvironmentUnsupportedError
from tollgate.client.models.security import AuthorizationRequestSecrets, PKCEParameters

RANDOM_BYTES = 32


def _urlsafe_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_random() -> str:
    """Generate a cryptographically strong, URL-safe random string.

    Returns:
        43-character base64url string without padding

    Raises:
        EnvironmentUnsupportedError: If no secure randomness source exists
    """
    try:
        raw = secrets.token_bytes(RANDOM_BYTES)
    except Exception as e:
        raise EnvironmentUnsupportedError(
            f"Could not generate random value: {e}"
        ) from e

    return _urlsafe_encode(raw)


def build_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge from a code verifier.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier))).
    The verifier is hashed as its exact UTF-8 bytes.

    Raises:
        EnvironmentUnsupportedError: If no SHA-256 digest is available
    """
    try:
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
    except (AttributeError, ValueError) as e:
        raise EnvironmentUnsupportedError(
            f"Could not get a hash of the string: {e}"
        ) from e

    return _urlsafe_encode(digest)


def generate_secrets() -> AuthorizationRequestSecrets:
    """Generate a fresh code verifier and state for one authorization attempt."""
    return AuthorizationRequestSecrets(
        code_verifier=generate_random(),
        state=generate_random(),
    )


def build_pkce_parameters(secrets_: AuthorizationRequestSecrets) -> PKCEParameters:
    return PKCEParameters(code_challenge=build_code_challenge(secrets_.code_verifier))
