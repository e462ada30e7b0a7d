"""Access decision rendering for the enforcing gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tollgate.verifier.models import Decision, VerificationResult

POLICY_VERSION = "2012-10-17"
INVOKE_ACTION = "execute-api:Invoke"
DENY_STATUS_CODE = 403


@dataclass(frozen=True)
class AccessDecision:
    """Principal, effect and context for one protected resource.

    On Allow the context is the token's claims. On Deny it is exactly
    ``{"statusCode": 403, "statusText": <error code>}``; the gateway's
    response template reads those two keys by name.
    """

    principal: str
    effect: Decision
    resource: str
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def allowed(self) -> bool:
        return self.effect is Decision.ALLOW

    def to_policy(self) -> dict[str, Any]:
        """Render as an IAM-style authorizer response document."""
        return {
            "principalId": self.principal,
            "policyDocument": {
                "Version": POLICY_VERSION,
                "Statement": [
                    {
                        "Action": INVOKE_ACTION,
                        "Effect": self.effect.value,
                        "Resource": self.resource,
                    }
                ],
            },
            "context": dict(self.context),
        }


class PolicyResponseBuilder:
    def build(self, result: VerificationResult, resource: str) -> AccessDecision:
        if result.allowed:
            return AccessDecision(
                principal=result.principal,
                effect=Decision.ALLOW,
                resource=resource,
                context=dict(result.claims or {}),
            )

        return AccessDecision(
            principal=result.principal,
            effect=Decision.DENY,
            resource=resource,
            context={
                "statusCode": DENY_STATUS_CODE,
                "statusText": result.error_code.value,
            },
        )
