"""Bearer token verification.

Checks run in a fixed order and stop at the first failure, so the error
code always names the earliest problem:

 1. three dot-separated segments            BAD_TOKEN
 2. header and payload are base64url JSON   BAD_TOKEN
 3. exp present and not passed              EXPIRED_TOKEN
 4. nbf, if present, has come               NBF_TOKEN
 5. iat present and not in the future       IAT_TOKEN
 6. iss matches                             BAD_ISS_TOKEN
 7. aud matches                             BAD_AUD_TOKEN
 8. alg is RS256                            BAD_ALG_TOKEN
 9. kid present                             NO_KID_TOKEN
10. signature verifies                      INVALID_SIGNATURE

Any failure, timeout or error from the signature service denies.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import math
import time
from collections.abc import Callable
from typing import Any

from tollgate.config import VerifierConfig
from tollgate.verifier.models import (
    ANONYMOUS_PRINCIPAL,
    ErrorCode,
    ParsedToken,
    TokenClaims,
    TokenHeader,
    VerificationResult,
)
from tollgate.verifier.signature import SignatureVerifier, SigningAlgorithm

logger = logging.getLogger(__name__)


class TokenFormatError(ValueError):
    pass


def base64url_decode(segment: str) -> bytes:
    """Decode unpadded base64url.

    Only the canonical encoding is accepted: unused bits in the last
    character must be zero, so no two segments decode to the same bytes.

    Raises:
        TokenFormatError: If the segment is not canonical base64url
    """
    padded = segment + "=" * (-len(segment) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
    except (binascii.Error, ValueError) as e:
        raise TokenFormatError(f"Invalid base64url segment: {e}") from e

    if base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") != segment:
        raise TokenFormatError("Non-canonical base64url segment")
    return raw


def _is_number(value: Any) -> bool:
    # JSON NaN compares false with everything, so it must not count.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _decode_json_segment(segment: str) -> dict[str, Any]:
    try:
        data = json.loads(base64url_decode(segment).decode("utf-8"))
    except ValueError as e:
        raise TokenFormatError(f"Segment is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise TokenFormatError("Segment is not a JSON object")
    return data


def parse_token(token: str) -> ParsedToken:
    """Split and decode a JWT without checking any claim.

    Raises:
        TokenFormatError: If the token is structurally invalid
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise TokenFormatError(f"Expected 3 segments, got {len(parts)}")

    header_segment, payload_segment, signature_segment = parts
    header = _decode_json_segment(header_segment)
    payload = _decode_json_segment(payload_segment)

    return ParsedToken(
        header_segment=header_segment,
        payload_segment=payload_segment,
        signature_segment=signature_segment,
        header=TokenHeader.model_validate(header),
        claims=TokenClaims.model_validate(payload),
        payload=payload,
    )


class BearerTokenVerifier:
    """Validates presented JWTs and renders an allow/deny result.

    Stateless: one instance can serve concurrent calls.
    """

    def __init__(
        self,
        config: VerifierConfig,
        signature_verifier: SignatureVerifier,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._signature_verifier = signature_verifier
        self._clock = clock

    async def verify(self, token: str, now: int | None = None) -> VerificationResult:
        """Verify a bearer token.

        Args:
            token: The compact JWT, without the ``Bearer`` prefix
            now: Current time in epoch seconds; defaults to the clock

        Returns:
            VerificationResult: Allow with the payload, or Deny with a code
        """
        if now is None:
            now = int(self._clock())

        try:
            parsed = parse_token(token)
        except TokenFormatError as e:
            logger.warning(f"Wrong token format: {e}")
            return VerificationResult.deny(ErrorCode.BAD_TOKEN)

        error_code = self._check_claims(parsed, now)
        if error_code is None:
            error_code = await self._check_signature(parsed)
        if error_code is not None:
            return VerificationResult.deny(error_code)

        sub = parsed.claims.sub
        principal = sub if isinstance(sub, str) and sub else ANONYMOUS_PRINCIPAL
        logger.info(f"Token accepted for {principal}")
        return VerificationResult.allow(principal, parsed.payload)

    def _check_claims(self, parsed: ParsedToken, now: int) -> ErrorCode | None:
        claims = parsed.claims
        who = claims.email or claims.sub

        if not _is_number(claims.exp) or now > claims.exp:
            logger.warning(f"Token expired. User: {who}. Now: {now}. Exp: {claims.exp}")
            return ErrorCode.EXPIRED_TOKEN
        if claims.nbf is not None and (not _is_number(claims.nbf) or now < claims.nbf):
            logger.warning(
                f"NBF time has not come. User: {who}. Now: {now}. Nbf: {claims.nbf}"
            )
            return ErrorCode.NBF_TOKEN
        if not _is_number(claims.iat) or now < claims.iat:
            logger.warning(
                "IAT must be before the current time. "
                f"User: {who}. Now: {now}. Iat: {claims.iat}"
            )
            return ErrorCode.IAT_TOKEN

        if claims.iss != self._config.issuer:
            logger.warning(f"Bad ISS. User: {who}. Iss: {claims.iss}")
            return ErrorCode.BAD_ISS_TOKEN
        # Scalar comparison only: an array audience never matches.
        if claims.aud != self._config.audience:
            logger.warning(f"Bad AUD. User: {who}. Aud: {claims.aud}")
            return ErrorCode.BAD_AUD_TOKEN

        if parsed.header.alg != "RS256":
            logger.warning(f"Algorithm is not RS256. User: {who}")
            return ErrorCode.BAD_ALG_TOKEN
        if not isinstance(parsed.header.kid, str) or not parsed.header.kid:
            logger.warning(f"Key ID is not specified. User: {who}")
            return ErrorCode.NO_KID_TOKEN

        return None

    async def _check_signature(self, parsed: ParsedToken) -> ErrorCode | None:
        algorithm = SigningAlgorithm.from_jwt_alg(parsed.header.alg)
        try:
            signature = base64url_decode(parsed.signature_segment)
        except TokenFormatError as e:
            logger.warning(f"Malformed signature segment: {e}")
            return ErrorCode.INVALID_SIGNATURE

        try:
            valid = await asyncio.wait_for(
                self._signature_verifier.verify(
                    key_id=parsed.header.kid,
                    message=parsed.signed_message,
                    signature=signature,
                    algorithm=algorithm,
                ),
                timeout=self._config.signature_timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Signature verification timed out")
            return ErrorCode.INVALID_SIGNATURE
        except Exception as e:
            logger.error(f"Signature verification failed: {e}")
            return ErrorCode.INVALID_SIGNATURE

        if valid is not True:
            logger.warning(f"Invalid signature for key {parsed.header.kid}")
            return ErrorCode.INVALID_SIGNATURE
        return None
