"""Tests for the token authorizer and its policy documents."""

import pytest

from tollgate.verifier.authorizer import TokenAuthorizer, parse_bearer
from tollgate.verifier.models import (
    Decision,
    ErrorCode,
    UnauthorizedError,
    VerificationResult,
)
from tollgate.verifier.policy import AccessDecision, PolicyResponseBuilder
from tollgate.verifier.verifier import BearerTokenVerifier

NOW = 1_700_000_000
ARN = "arn:aws:execute-api:ca-central-1:123456789012:abc123/prod/GET/token-data"


@pytest.fixture
def authorizer(verifier_config, signature_verifier):
    verifier = BearerTokenVerifier(verifier_config, signature_verifier, clock=lambda: NOW)
    return TokenAuthorizer(verifier)


class TestParseBearer:
    @pytest.mark.parametrize(
        "header", ["Bearer abc.def.ghi", "bearer abc.def.ghi", "BEARER  abc.def.ghi "]
    )
    def test_scheme_is_case_insensitive(self, header):
        assert parse_bearer(header) == "abc.def.ghi"

    @pytest.mark.parametrize(
        "header",
        [None, "", "Bearer", "Bearer ", "Basic dXNlcjpwYXNz", "abc.def.ghi", "Bearer a b"],
    )
    def test_malformed_header_is_unauthorized(self, header):
        with pytest.raises(UnauthorizedError):
            parse_bearer(header)


class TestPolicyResponseBuilder:
    def test_deny_context_has_status_code_and_text_only(self):
        # Arrange
        result = VerificationResult.deny(ErrorCode.EXPIRED_TOKEN)

        # Act
        decision = PolicyResponseBuilder().build(result, ARN)

        # Assert
        assert decision.effect is Decision.DENY
        assert decision.principal == "nobody"
        assert decision.context == {"statusCode": 403, "statusText": "EXPIRED_TOKEN"}

    def test_allow_context_is_the_claims(self):
        claims = {"sub": "user-123", "exp": NOW + 60, "roles": ["reader"]}
        result = VerificationResult.allow("user-123", claims)

        decision = PolicyResponseBuilder().build(result, ARN)

        assert decision.allowed
        assert decision.principal == "user-123"
        assert decision.context == claims

    def test_policy_document_shape(self):
        decision = AccessDecision(
            principal="user-123",
            effect=Decision.ALLOW,
            resource=ARN,
            context={"sub": "user-123"},
        )

        assert decision.to_policy() == {
            "principalId": "user-123",
            "policyDocument": {
                "Version": "2012-10-17",
                "Statement": [
                    {
                        "Action": "execute-api:Invoke",
                        "Effect": "Allow",
                        "Resource": ARN,
                    }
                ],
            },
            "context": {"sub": "user-123"},
        }


class TestTokenAuthorizer:
    async def test_valid_token_is_allowed_for_subject(self, authorizer, make_token):
        # Act
        policy = await authorizer.handle(
            {"authorizationToken": f"Bearer {make_token()}", "methodArn": ARN}
        )

        # Assert
        assert policy["principalId"] == "user-123"
        statement = policy["policyDocument"]["Statement"][0]
        assert statement["Effect"] == "Allow"
        assert statement["Resource"] == ARN
        assert policy["context"]["email"] == "user@example.com"

    async def test_denied_token_carries_error_code(self, authorizer, make_token):
        token = make_token(overrides={"iss": "evil.com"})

        policy = await authorizer.handle(
            {"authorizationToken": f"Bearer {token}", "methodArn": ARN}
        )

        assert policy["principalId"] == "nobody"
        assert policy["policyDocument"]["Statement"][0]["Effect"] == "Deny"
        assert policy["context"] == {"statusCode": 403, "statusText": "BAD_ISS_TOKEN"}

    async def test_resource_identifier_is_accepted(self, authorizer, make_token):
        policy = await authorizer.handle(
            {"authorizationToken": f"Bearer {make_token()}", "resourceIdentifier": ARN}
        )

        assert policy["policyDocument"]["Statement"][0]["Resource"] == ARN

    async def test_missing_bearer_raises_unauthorized(self, authorizer):
        with pytest.raises(UnauthorizedError):
            await authorizer.handle({"authorizationToken": "Basic abc", "methodArn": ARN})

    @pytest.mark.parametrize("token", [12345, ["Bearer x"], {"Bearer": "x"}])
    async def test_non_string_token_raises_unauthorized(self, authorizer, token):
        with pytest.raises(UnauthorizedError):
            await authorizer.handle({"authorizationToken": token, "methodArn": ARN})

    async def test_garbage_bearer_is_denied_not_unauthorized(self, authorizer):
        decision = await authorizer.authorize("Bearer garbage", ARN)

        assert not decision.allowed
        assert decision.context["statusText"] == "BAD_TOKEN"
