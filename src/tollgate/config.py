"""Immutable configuration for the client flow and the token verifier.

Both objects are built once at start-up and passed to each component.
Nothing reads settings from module globals after that.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from dotenv import load_dotenv

from tollgate.client.models.errors import ConfigurationError

DEFAULT_EXPIRY_MARGIN = 30  # seconds


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name)
    if not value:
        raise ConfigurationError(f"Missing required setting {name}")
    return value


def _load_environ(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    if environ is None:
        load_dotenv()
        return os.environ
    return environ


@dataclass(frozen=True)
class ClientConfig:
    """Settings for the client side of the authorization code flow."""

    client_id: str
    redirect_uri: str
    authorization_endpoint: str
    token_endpoint: str
    api_endpoint: str
    language: str | None = None  # two-character code, e.g. "fr"
    locale: str | None = None  # locale name, e.g. "fr-CA"
    timeout: float = 30.0
    expiry_margin: int = DEFAULT_EXPIRY_MARGIN

    def __post_init__(self) -> None:
        for name in (
            "client_id",
            "redirect_uri",
            "authorization_endpoint",
            "token_endpoint",
            "api_endpoint",
        ):
            if not getattr(self, name):
                raise ConfigurationError(f"{name} must not be empty")

    @property
    def storage_prefix(self) -> str:
        return f"{self.client_id}-"

    @classmethod
    def for_auth_server(
        cls,
        client_id: str,
        redirect_uri: str,
        auth_server: str,
        api_version: str,
        api_endpoint: str,
        **kwargs,
    ) -> ClientConfig:
        """Derive the authorization and token endpoints from a server name.

        The authorization endpoint is ``https://<server>/<version>/`` and the
        token endpoint ``https://api.<server>/<version>/token``.
        """
        return cls(
            client_id=client_id,
            redirect_uri=redirect_uri,
            authorization_endpoint=f"https://{auth_server}/{api_version}/",
            token_endpoint=f"https://api.{auth_server}/{api_version}/token",
            api_endpoint=api_endpoint,
            **kwargs,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build the configuration from ``TOLLGATE_*`` environment variables.

        Reads a ``.env`` file first when no explicit mapping is given.
        """
        environ = _load_environ(environ)
        return cls.for_auth_server(
            client_id=_require(environ, "TOLLGATE_CLIENT_ID"),
            redirect_uri=_require(environ, "TOLLGATE_REDIRECT_URI"),
            auth_server=_require(environ, "TOLLGATE_AUTH_SERVER"),
            api_version=_require(environ, "TOLLGATE_AUTH_API_VERSION"),
            api_endpoint=_require(environ, "TOLLGATE_API_URI"),
            language=environ.get("TOLLGATE_LANGUAGE") or None,
            locale=environ.get("TOLLGATE_LOCALE") or None,
        )


@dataclass(frozen=True)
class VerifierConfig:
    """Expected token identity for the bearer token verifier."""

    issuer: str
    audience: str
    signature_timeout: float = 3.0

    def __post_init__(self) -> None:
        if not self.issuer or not self.audience:
            raise ConfigurationError("issuer and audience must not be empty")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> VerifierConfig:
        """Build the configuration from ``TOKEN_ISS`` and ``TOKEN_AUD``."""
        environ = _load_environ(environ)
        return cls(
            issuer=_require(environ, "TOKEN_ISS"),
            audience=_require(environ, "TOKEN_AUD"),
        )
