"""Token authorizer: the verifier invocation contract.

Takes ``{authorizationToken: "Bearer <token>", methodArn}`` and returns an
authorizer response document. A header that is not a bearer credential
raises UnauthorizedError instead of producing a Deny.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from tollgate.verifier.models import UnauthorizedError
from tollgate.verifier.policy import AccessDecision, PolicyResponseBuilder
from tollgate.verifier.verifier import BearerTokenVerifier

logger = logging.getLogger(__name__)

BEARER_PATTERN = re.compile(r"^(?i:bearer)\s+(?P<token>\S+)\s*$")


def parse_bearer(authorization: Any) -> str:
    """Extract the token from an ``Authorization`` header value.

    The scheme is case-insensitive; a token part is required.

    Raises:
        UnauthorizedError: If the value is not a bearer credential
    """
    if not isinstance(authorization, str) or not authorization:
        raise UnauthorizedError()
    match = BEARER_PATTERN.match(authorization)
    if match is None:
        raise UnauthorizedError()
    return match.group("token")


class TokenAuthorizer:
    def __init__(
        self,
        verifier: BearerTokenVerifier,
        builder: PolicyResponseBuilder | None = None,
    ):
        self._verifier = verifier
        self._builder = builder or PolicyResponseBuilder()

    async def authorize(
        self, authorization: Any, resource: str
    ) -> AccessDecision:
        """Verify the presented credential for ``resource``.

        Raises:
            UnauthorizedError: If ``authorization`` is not a bearer credential
        """
        token = parse_bearer(authorization)
        result = await self._verifier.verify(token)
        decision = self._builder.build(result, resource)
        logger.debug(f"{decision.effect.value} {decision.principal} on {resource}")
        return decision

    async def handle(self, event: Mapping[str, Any]) -> dict[str, Any]:
        """Handle a token authorizer event.

        The resource is read from ``methodArn`` or ``resourceIdentifier``.

        Raises:
            UnauthorizedError: If the event carries no bearer credential
        """
        resource = event.get("methodArn") or event.get("resourceIdentifier") or ""
        decision = await self.authorize(event.get("authorizationToken"), resource)
        return decision.to_policy()
