"""FastAPI dependencies for Firebase ID token and session cookie authentication."""

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.fireauth.auth.adapters import TokenValidator
from src.fireauth.auth.exceptions import ErrorKind, TokenVerificationError
from src.fireauth.auth.models import AuthContext, User, user_from_claims
from src.fireauth.config import settings

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

# Key endpoint trouble is on our side; the client may retry
_UNAVAILABLE_KINDS = {ErrorKind.KEY_FETCH_FAILED, ErrorKind.NO_KEYS_AVAILABLE}

# Global token validator instance (initialized in main.py startup)
_token_validator: TokenValidator | None = None


def set_token_validator(validator: TokenValidator | None) -> None:
    """
    Set the global token validator instance.

    Called during application startup to install the configured adapter.

    Args:
        validator: TokenValidator instance (None to reset)
    """
    global _token_validator
    _token_validator = validator


def get_token_validator() -> TokenValidator:
    """
    Get the global token validator instance.

    Returns:
        TokenValidator instance

    Raises:
        RuntimeError: If token validator not initialized
    """
    if _token_validator is None:
        raise RuntimeError(
            "Token validator not initialized. "
            "Ensure application startup event calls set_token_validator()."
        )
    return _token_validator


def _auth_error(error: TokenVerificationError, scheme: str) -> HTTPException:
    if error.kind in _UNAVAILABLE_KINDS:
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication temporarily unavailable",
        )
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=f"Invalid authentication credentials: {error.kind.value}",
        headers={"WWW-Authenticate": scheme},
    )


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthContext:
    """
    Verify the bearer ID token and build the request's AuthContext.

    Args:
        credentials: Bearer token from Authorization header

    Returns:
        AuthContext with token, claims and user

    Raises:
        HTTPException: 401 if token missing/invalid, 503 if public keys are unavailable

    Example:
        @router.get("/me")
        async def get_profile(auth: AuthContext = Depends(get_auth_context)):
            return {"uid": auth.user.firebase_uid}
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": 'Bearer realm="firebase"'},
        )

    validator = get_token_validator()
    try:
        claims = await validator.verify_id_token(credentials.credentials)
    except TokenVerificationError as e:
        logger.warning(
            f"ID token rejected: {e.kind.value}",
            extra={"error_type": e.kind.value},
        )
        raise _auth_error(e, 'Bearer realm="firebase"') from e

    logger.info(f"User authenticated: {claims.user_id}")
    return AuthContext(
        token=credentials.credentials, claims=claims, user=user_from_claims(claims)
    )


async def get_current_user(auth: AuthContext = Depends(get_auth_context)) -> User:
    """Return the authenticated User (requires a valid bearer ID token)."""
    return auth.user


async def get_optional_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthContext:
    """
    Like get_auth_context, but anonymous requests and invalid tokens yield an empty AuthContext.

    Returns:
        AuthContext, with all fields None when no valid token was sent
    """
    if credentials is None:
        return AuthContext()

    validator = get_token_validator()
    try:
        claims = await validator.verify_id_token(credentials.credentials)
    except TokenVerificationError as e:
        logger.info(
            f"Ignoring invalid ID token: {e.kind.value}",
            extra={"error_type": e.kind.value},
        )
        return AuthContext()

    return AuthContext(
        token=credentials.credentials, claims=claims, user=user_from_claims(claims)
    )


async def get_session_auth(request: Request) -> AuthContext:
    """
    Verify the session cookie and build the request's AuthContext.

    The cookie name comes from ``settings.session_cookie_name``.

    Raises:
        HTTPException: 401 if the cookie is missing/invalid, 503 if public keys are unavailable
    """
    cookie = request.cookies.get(settings.session_cookie_name)
    if not cookie:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing session cookie",
        )

    validator = get_token_validator()
    try:
        claims = await validator.verify_session_cookie(cookie)
    except TokenVerificationError as e:
        logger.warning(
            f"Session cookie rejected: {e.kind.value}",
            extra={"error_type": e.kind.value},
        )
        raise _auth_error(e, "Cookie") from e

    return AuthContext(token=cookie, claims=claims, user=user_from_claims(claims))


async def get_session_user(auth: AuthContext = Depends(get_session_auth)) -> User:
    """Return the User behind a valid session cookie."""
    return auth.user
