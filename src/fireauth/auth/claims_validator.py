"""Claim checks shared by ID token and session cookie verification."""

import math
from typing import Any

from src.fireauth.auth.exceptions import ErrorKind, TokenVerificationError

ID_TOKEN_ISSUER_PREFIX = "https://securetoken.google.com/"
SESSION_COOKIE_ISSUER_PREFIX = "https://session.firebase.google.com/"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not isinstance(value, float) or math.isfinite(value)


def validate_claims(
    claims: dict[str, Any],
    *,
    project_id: str | None,
    issuer_prefix: str,
    now: float,
    expired_kind: ErrorKind = ErrorKind.TOKEN_EXPIRED,
) -> None:
    """
    Validate decoded claims against Firebase rules.

    Checks run in a fixed order and the first failure is raised:
    project id, aud, iss, sub, exp, iat, auth_time.

    Args:
        claims: Decoded payload whose signature was already verified
        project_id: Expected Firebase project id
        issuer_prefix: Issuer URL without the project id
        now: Current Unix time in seconds
        expired_kind: Kind raised for an expired exp claim

    Raises:
        TokenVerificationError: With the kind of the first failing check
    """
    if not project_id:
        raise TokenVerificationError(
            ErrorKind.MISSING_PROJECT_ID,
            "Firebase project id is not configured (set FIREBASE_PROJECT_ID or pass project_id)",
        )

    if claims.get("aud") != project_id:
        raise TokenVerificationError(
            ErrorKind.INVALID_AUDIENCE, f"Expected audience '{project_id}'"
        )

    expected_issuer = f"{issuer_prefix}{project_id}"
    if claims.get("iss") != expected_issuer:
        raise TokenVerificationError(
            ErrorKind.INVALID_ISSUER, f"Expected issuer '{expected_issuer}'"
        )

    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub:
        raise TokenVerificationError(ErrorKind.INVALID_SUB, "'sub' must be a non-empty string")

    exp = claims.get("exp")
    if not _is_number(exp) or exp <= now:
        raise TokenVerificationError(expired_kind, "Token has expired")

    iat = claims.get("iat")
    if not _is_number(iat) or iat > now:
        raise TokenVerificationError(ErrorKind.INVALID_IAT, "'iat' must be in the past")

    auth_time = claims.get("auth_time")
    if not _is_number(auth_time) or auth_time > now:
        raise TokenVerificationError(
            ErrorKind.INVALID_AUTH_TIME, "'auth_time' must be in the past"
        )
