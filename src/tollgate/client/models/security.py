"""Security-related models for the PKCE authorization flow.

Contains the per-flow secrets and the PKCE parameters derived from them.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AuthorizationRequestSecrets:
    """Per-flow secrets for a single authorization attempt.

    Generated once per unauthenticated attempt and reused if the user retries
    before the flow completes. Deleted on successful code exchange or on a
    state mismatch.
    """

    code_verifier: str
    state: str

    def __post_init__(self) -> None:
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not self.state:
            raise ValueError("state must not be empty")


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters sent with the redirect."""

    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if len(self.code_challenge) != 43:
            raise ValueError("S256 code_challenge must be 43 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
