"""Signature verification capability.

The verifier never holds private key material. It asks a
SignatureVerifier, keyed by key identifier, whether a signature is valid.
Two implementations are provided: one holding RSA public keys in process,
and one calling a KMS-style remote ``verify`` endpoint.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Protocol

import httpx
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from tollgate.verifier.models import SignatureServiceError

logger = logging.getLogger(__name__)


class SigningAlgorithm(str, Enum):
    """Signing schemes, named as the signing service names them."""

    RSASSA_PKCS1_V1_5_SHA_256 = "RSASSA_PKCS1_V1_5_SHA_256"

    @classmethod
    def from_jwt_alg(cls, alg: str | None) -> SigningAlgorithm | None:
        return JWT_ALGORITHMS.get(alg) if alg else None


JWT_ALGORITHMS = {"RS256": SigningAlgorithm.RSASSA_PKCS1_V1_5_SHA_256}


class SignatureVerifier(Protocol):
    """Verifies a signature with the key named by ``key_id``.

    Returns False for a signature that does not verify. Raises when no
    answer can be given (unknown service state, network failure).
    """

    async def verify(
        self,
        key_id: str,
        message: bytes,
        signature: bytes,
        algorithm: SigningAlgorithm,
    ) -> bool: ...


class LocalKeySignatureVerifier:
    """Verifies RS256 signatures against RSA public keys held in memory."""

    def __init__(self, keys: Mapping[str, rsa.RSAPublicKey]):
        self._keys = dict(keys)

    @classmethod
    def from_pem(cls, pems: Mapping[str, bytes | str]) -> LocalKeySignatureVerifier:
        """Load PEM-encoded public keys keyed by key identifier.

        Raises:
            ValueError: If a key is not a PEM RSA public key
        """
        keys = {}
        for key_id, pem in pems.items():
            data = pem.encode("ascii") if isinstance(pem, str) else pem
            try:
                key = serialization.load_pem_public_key(data)
            except UnsupportedAlgorithm as e:
                raise ValueError(f"Unsupported key type for {key_id}") from e
            if not isinstance(key, rsa.RSAPublicKey):
                raise ValueError(f"Key {key_id} is not an RSA public key")
            keys[key_id] = key
        return cls(keys)

    async def verify(
        self,
        key_id: str,
        message: bytes,
        signature: bytes,
        algorithm: SigningAlgorithm,
    ) -> bool:
        key = self._keys.get(key_id)
        if key is None:
            logger.warning(f"Unknown key id {key_id}")
            return False
        if algorithm is not SigningAlgorithm.RSASSA_PKCS1_V1_5_SHA_256:
            return False

        try:
            key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True


class HttpSignatureVerifier:
    """Calls a remote signing service's ``verify`` operation.

    Request body mirrors a KMS ``Verify`` call: ``KeyId``, base64
    ``Message`` with ``MessageType: RAW``, base64 ``Signature`` and
    ``SigningAlgorithm``. The response must carry ``SignatureValid``.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 3.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def verify(
        self,
        key_id: str,
        message: bytes,
        signature: bytes,
        algorithm: SigningAlgorithm,
    ) -> bool:
        payload = {
            "KeyId": key_id,
            "Message": base64.b64encode(message).decode("ascii"),
            "MessageType": "RAW",
            "Signature": base64.b64encode(signature).decode("ascii"),
            "SigningAlgorithm": algorithm.value,
        }

        try:
            response = await self._http_client.post(self.endpoint, json=payload)
        except httpx.HTTPError as e:
            raise SignatureServiceError(f"Signature service unreachable: {e}") from e

        if response.status_code != 200:
            raise SignatureServiceError(
                f"Signature service returned {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise SignatureServiceError("Signature service returned invalid JSON") from e

        valid = data.get("SignatureValid") if isinstance(data, dict) else None
        if not isinstance(valid, bool):
            raise SignatureServiceError("Signature service response missing SignatureValid")
        return valid

    async def close(self) -> None:
        await self._http_client.aclose()
