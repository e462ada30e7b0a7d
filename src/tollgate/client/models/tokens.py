"""Token models for the token endpoint.

Contains the persisted token pair, the token endpoint requests and the
response body parsing.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict

from tollgate.client.models.errors import TokenError


@dataclass(frozen=True)
class TokenPair:
    """Access and refresh tokens with their absolute expiry (epoch seconds)."""

    access_token: str
    access_token_expiry: int
    refresh_token: str
    refresh_token_expiry: int


@dataclass(frozen=True)
class StoredTokens:
    """Tokens read back from storage.

    A field is None when the token is absent, including tokens that are
    still nominally valid but inside the expiry margin.
    """

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def has_access_token(self) -> bool:
        return self.access_token is not None

    @property
    def has_refresh_token(self) -> bool:
        return self.refresh_token is not None


@dataclass(frozen=True)
class CodeExchangeRequest:
    """Authorization code exchange request, sent with POST."""

    # Required fields first
    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str
    code_verifier: str  # RFC 7636 PKCE

    # Optional fields with defaults last
    grant_type: str = "authorization_code"

    def to_json_body(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh request, sent with PATCH. Rotates the refresh token."""

    token_endpoint: str
    refresh_token: str
    grant_type: str = "refresh_token"

    def to_json_body(self) -> dict[str, str]:
        return {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
        }


@dataclass(frozen=True)
class RevocationRequest:
    """Revocation request, sent with DELETE on logout."""

    token_endpoint: str
    refresh_token: str

    def to_json_body(self) -> dict[str, str]:
        return {"refresh_token": self.refresh_token}


class TokenResponse(BaseModel):
    """Success body returned by the token endpoint.

    Carries ``access_token``/``exp`` and ``refresh_token``/``rt_exp``. Error
    bodies are classified from the raw JSON by ``classify_failure``.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str | None = None
    exp: int | None = None
    refresh_token: str | None = None
    rt_exp: int | None = None

    def to_token_pair(self) -> TokenPair:
        """Convert a successful response into a TokenPair.

        Raises:
            TokenError: If any of the four token fields is missing
        """
        missing = [
            name
            for name in ("access_token", "exp", "refresh_token", "rt_exp")
            if getattr(self, name) is None
        ]
        if missing:
            raise TokenError(
                f"Token response missing required fields: {', '.join(missing)}"
            )

        return TokenPair(
            access_token=self.access_token,
            access_token_expiry=self.exp,
            refresh_token=self.refresh_token,
            refresh_token_expiry=self.rt_exp,
        )
