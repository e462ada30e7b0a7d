"""Exception hierarchy for the client side of the authorization flow.

Each failure mode gets its own type so callers can tell a fatal environment
problem apart from a recoverable CSRF rejection or a broken redirect.
"""

from __future__ import annotations


class TollgateError(Exception):
    """Base exception for all tollgate errors."""

    pass


class ConfigurationError(TollgateError):
    """Raised when required settings are missing or invalid."""

    pass


class EnvironmentUnsupportedError(TollgateError):
    """Raised when the platform lacks secure randomness or a SHA-256 digest.

    The flow cannot proceed at all. This is never retried and is surfaced
    separately from authentication failures.
    """

    pass


class AuthorizationCallbackError(TollgateError):
    """Raised when a redirect from the authorization server cannot be used."""

    pass


class MalformedRedirectError(AuthorizationCallbackError):
    """Raised when the redirect location cannot be parsed.

    Covers unparsable URLs and repeated ``code``/``state`` parameters. The
    flow halts loudly instead of guessing which value to trust.
    """

    pass


class StateMismatchError(AuthorizationCallbackError):
    """Raised when the returned state does not match the stored value.

    Indicates a forged or stale redirect. Recoverable: the secrets are
    cleared and the flow restarts.
    """

    pass


class TokenError(TollgateError):
    """Raised when a token endpoint response cannot be turned into a pair."""

    pass
