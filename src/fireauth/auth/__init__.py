"""Authentication module for Firebase ID token and session cookie verification."""

from src.fireauth.auth.adapters import (
    FirebaseTokenValidator,
    MockTokenValidator,
    TokenValidator,
    build_token_validator,
)
from src.fireauth.auth.dependencies import (
    get_auth_context,
    get_current_user,
    get_optional_auth,
    get_session_auth,
    get_session_user,
    get_token_validator,
    set_token_validator,
)
from src.fireauth.auth.exceptions import (
    AuthenticationError,
    ErrorKind,
    KeyFetchError,
    TokenVerificationError,
)
from src.fireauth.auth.jwt_validator import (
    ID_TOKEN_POLICY,
    SESSION_COOKIE_POLICY,
    FirebaseJWTValidator,
)
from src.fireauth.auth.models import (
    AuthContext,
    Claims,
    User,
    claims_from_raw,
    claims_to_user,
    get_identity,
    has_identity,
    identities,
    user_from_claims,
)
from src.fireauth.auth.public_keys import (
    PublicKeyCache,
    identity_toolkit_public_keys,
    secure_token_public_keys,
)

__all__ = [
    "get_auth_context",
    "get_current_user",
    "get_optional_auth",
    "get_session_auth",
    "get_session_user",
    "get_token_validator",
    "set_token_validator",
    "TokenValidator",
    "FirebaseTokenValidator",
    "MockTokenValidator",
    "build_token_validator",
    "FirebaseJWTValidator",
    "ID_TOKEN_POLICY",
    "SESSION_COOKIE_POLICY",
    "PublicKeyCache",
    "secure_token_public_keys",
    "identity_toolkit_public_keys",
    "AuthenticationError",
    "ErrorKind",
    "KeyFetchError",
    "TokenVerificationError",
    "AuthContext",
    "Claims",
    "User",
    "claims_from_raw",
    "claims_to_user",
    "user_from_claims",
    "identities",
    "has_identity",
    "get_identity",
]
