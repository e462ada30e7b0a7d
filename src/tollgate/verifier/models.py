"""Models for bearer token verification.

Contains the error taxonomy, the typed JWT header and claims, and the
verification result handed to the policy builder.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

ANONYMOUS_PRINCIPAL = "nobody"


class ErrorCode(str, Enum):
    """Why a token was denied. The value is what callers get to see."""

    BAD_TOKEN = "BAD_TOKEN"  # structural
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    NBF_TOKEN = "NBF_TOKEN"
    IAT_TOKEN = "IAT_TOKEN"
    BAD_ISS_TOKEN = "BAD_ISS_TOKEN"
    BAD_AUD_TOKEN = "BAD_AUD_TOKEN"
    BAD_ALG_TOKEN = "BAD_ALG_TOKEN"
    NO_KID_TOKEN = "NO_KID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class Decision(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


class UnauthorizedError(Exception):
    """Raised when the caller presented no usable bearer credential.

    Distinct from a Deny decision: the enforcement layer answers 401 here
    and 403 for a Deny.
    """

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class SignatureServiceError(Exception):
    """Raised when the signature verification service cannot give an answer."""

    pass


class TokenHeader(BaseModel):
    """JOSE header of a JWT.

    Values are kept as raw JSON; the verifier checks their types itself.
    """

    model_config = ConfigDict(extra="allow")

    alg: Any = None
    kid: Any = None


class TokenClaims(BaseModel):
    """JWT payload.

    Claims are raw JSON values: a value of an unexpected type fails the
    check that reads it, never parsing. Unregistered claims are kept as
    extra fields, and the raw JSON object is what reaches the context.
    """

    model_config = ConfigDict(extra="allow")

    iss: Any = None
    aud: Any = None
    exp: Any = None
    nbf: Any = None
    iat: Any = None
    sub: Any = None
    email: Any = None


@dataclass(frozen=True)
class ParsedToken:
    """A JWT split into its segments and decoded header and payload."""

    header_segment: str
    payload_segment: str
    signature_segment: str
    header: TokenHeader
    claims: TokenClaims
    payload: dict[str, Any]

    @property
    def signed_message(self) -> bytes:
        return f"{self.header_segment}.{self.payload_segment}".encode("ascii")


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of verifying one bearer token."""

    decision: Decision
    principal: str
    error_code: ErrorCode | None = None
    claims: dict[str, Any] | None = None

    @property
    def allowed(self) -> bool:
        return self.decision is Decision.ALLOW

    @classmethod
    def allow(cls, principal: str, claims: dict[str, Any]) -> VerificationResult:
        return cls(Decision.ALLOW, principal, None, claims)

    @classmethod
    def deny(cls, error_code: ErrorCode) -> VerificationResult:
        return cls(Decision.DENY, ANONYMOUS_PRINCIPAL, error_code, None)
