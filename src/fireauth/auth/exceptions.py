"""Custom exceptions for Firebase token and session cookie verification."""

from enum import Enum


class ErrorKind(str, Enum):
    """Every way a token or session cookie can be rejected."""

    # Malformed input
    INVALID_TOKEN_FORMAT = "invalid_token_format"
    INVALID_COOKIE_FORMAT = "invalid_cookie_format"
    INVALID_TOKEN = "invalid_token"
    INVALID_COOKIE = "invalid_cookie"
    INVALID_HEADER = "invalid_header"

    # Policy rejection
    INVALID_ALG = "invalid_alg"
    NO_KID = "no_kid"

    # Key resolution
    CERT_NOT_FOUND = "cert_not_found"
    NO_KEYS_AVAILABLE = "no_keys_available"
    KEY_FETCH_FAILED = "key_fetch_failed"

    # Cryptographic failure
    INVALID_SIGNATURE = "invalid_signature"

    # Claim policy
    MISSING_PROJECT_ID = "missing_project_id"
    INVALID_AUDIENCE = "invalid_audience"
    INVALID_ISSUER = "invalid_issuer"
    INVALID_SUB = "invalid_sub"
    TOKEN_EXPIRED = "token_expired"
    COOKIE_EXPIRED = "cookie_expired"
    INVALID_IAT = "invalid_iat"
    INVALID_AUTH_TIME = "invalid_auth_time"


class AuthenticationError(Exception):
    """Raised when authentication fails (invalid credentials, expired tokens, etc.)."""

    pass


class TokenVerificationError(AuthenticationError):
    """
    Raised when an ID token or session cookie is rejected.

    Attributes:
        kind: Discriminator telling the caller which check failed
        message: Human readable description (never contains the token)

    Example:
        >>> try:
        ...     claims = await validator.verify(token)
        ... except TokenVerificationError as e:
        ...     if e.kind is ErrorKind.TOKEN_EXPIRED:
        ...         ...
    """

    def __init__(self, kind: ErrorKind, message: str | None = None):
        self.kind = kind
        self.message = message or kind.value
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, message={self.message!r})"


class KeyFetchError(TokenVerificationError):
    """Raised when the public key endpoint cannot be reached or returns garbage."""

    def __init__(self, message: str):
        super().__init__(ErrorKind.KEY_FETCH_FAILED, message)
