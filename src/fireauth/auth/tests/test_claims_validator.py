"""Tests for Firebase claim validation."""

import pytest

from src.fireauth.auth.claims_validator import (
    ID_TOKEN_ISSUER_PREFIX,
    SESSION_COOKIE_ISSUER_PREFIX,
    validate_claims,
)
from src.fireauth.auth.exceptions import ErrorKind, TokenVerificationError

NOW = 1_700_000_000


@pytest.fixture
def claims(project_id):
    return {
        "aud": project_id,
        "iss": f"{ID_TOKEN_ISSUER_PREFIX}{project_id}",
        "sub": "firebase-uid",
        "exp": NOW + 3600,
        "iat": NOW - 10,
        "auth_time": NOW - 10,
    }


def assert_rejected(claims, project_id, kind, **kwargs):
    kwargs.setdefault("issuer_prefix", ID_TOKEN_ISSUER_PREFIX)
    with pytest.raises(TokenVerificationError) as exc_info:
        validate_claims(claims, project_id=project_id, now=NOW, **kwargs)
    assert exc_info.value.kind is kind


class TestValidateClaims:
    """Tests for validate_claims."""

    def test_valid_claims_pass(self, claims, project_id):
        validate_claims(claims, project_id=project_id, issuer_prefix=ID_TOKEN_ISSUER_PREFIX, now=NOW)

    def test_session_cookie_issuer(self, claims, project_id):
        claims["iss"] = f"{SESSION_COOKIE_ISSUER_PREFIX}{project_id}"
        validate_claims(
            claims, project_id=project_id, issuer_prefix=SESSION_COOKIE_ISSUER_PREFIX, now=NOW
        )

    @pytest.mark.parametrize("missing", [None, ""])
    def test_missing_project_id(self, claims, missing):
        assert_rejected(claims, missing, ErrorKind.MISSING_PROJECT_ID)

    def test_invalid_audience(self, claims):
        assert_rejected(claims, "other-proj", ErrorKind.INVALID_AUDIENCE)

    def test_id_token_issuer_rejected_for_session_cookie(self, claims, project_id):
        assert_rejected(
            claims,
            project_id,
            ErrorKind.INVALID_ISSUER,
            issuer_prefix=SESSION_COOKIE_ISSUER_PREFIX,
        )

    def test_issuer_for_other_project(self, claims, project_id):
        claims["iss"] = f"{ID_TOKEN_ISSUER_PREFIX}wrong-issuer"
        assert_rejected(claims, project_id, ErrorKind.INVALID_ISSUER)

    @pytest.mark.parametrize("sub", ["", 10, None])
    def test_invalid_sub(self, claims, project_id, sub):
        claims["sub"] = sub
        assert_rejected(claims, project_id, ErrorKind.INVALID_SUB)

    @pytest.mark.parametrize("exp", [NOW, NOW - 1, "9999999999", True, None])
    def test_expired(self, claims, project_id, exp):
        claims["exp"] = exp
        assert_rejected(claims, project_id, ErrorKind.TOKEN_EXPIRED)

    def test_expired_uses_policy_kind(self, claims, project_id):
        claims["exp"] = NOW - 1
        assert_rejected(
            claims, project_id, ErrorKind.COOKIE_EXPIRED, expired_kind=ErrorKind.COOKIE_EXPIRED
        )

    @pytest.mark.parametrize("iat", [NOW + 1, None, "0"])
    def test_invalid_iat(self, claims, project_id, iat):
        claims["iat"] = iat
        assert_rejected(claims, project_id, ErrorKind.INVALID_IAT)

    def test_iat_equal_to_now_is_accepted(self, claims, project_id):
        claims["iat"] = NOW
        claims["auth_time"] = NOW
        validate_claims(claims, project_id=project_id, issuer_prefix=ID_TOKEN_ISSUER_PREFIX, now=NOW)

    @pytest.mark.parametrize("auth_time", [NOW + 1, None])
    def test_invalid_auth_time(self, claims, project_id, auth_time):
        claims["auth_time"] = auth_time
        assert_rejected(claims, project_id, ErrorKind.INVALID_AUTH_TIME)

    def test_nan_iat_is_rejected(self, claims, project_id):
        claims["iat"] = float("nan")
        assert_rejected(claims, project_id, ErrorKind.INVALID_IAT)

    def test_infinite_exp_is_rejected(self, claims, project_id):
        claims["exp"] = float("inf")
        assert_rejected(claims, project_id, ErrorKind.TOKEN_EXPIRED)

    def test_float_timestamps_are_numeric(self, claims, project_id):
        claims["exp"] = NOW + 0.5
        claims["iat"] = NOW - 0.5
        validate_claims(claims, project_id=project_id, issuer_prefix=ID_TOKEN_ISSUER_PREFIX, now=NOW)

    def test_first_failing_check_wins(self, claims):
        """Test aud is reported before iss, sub and exp."""
        claims.update({"aud": "other", "iss": "other", "sub": "", "exp": 0})
        assert_rejected(claims, "test-proj", ErrorKind.INVALID_AUDIENCE)

        claims["aud"] = "test-proj"
        assert_rejected(claims, "test-proj", ErrorKind.INVALID_ISSUER)
