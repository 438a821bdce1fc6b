"""Token validator adapters: Firebase for production, mock for local development and tests."""

import logging
import time
from abc import ABC, abstractmethod

from src.fireauth.auth.exceptions import ErrorKind, TokenVerificationError
from src.fireauth.auth.jwt_validator import (
    ID_TOKEN_POLICY,
    SESSION_COOKIE_POLICY,
    FirebaseJWTValidator,
)
from src.fireauth.auth.models import Claims, claims_from_raw
from src.fireauth.auth.public_keys import (
    PublicKeyCache,
    identity_toolkit_public_keys,
    secure_token_public_keys,
)
from src.fireauth.config import Settings

logger = logging.getLogger(__name__)


class TokenValidator(ABC):
    """Provider-neutral interface for verifying ID tokens and session cookies."""

    @abstractmethod
    async def verify_id_token(self, token: str, project_id: str | None = None) -> Claims:
        """Verify a Firebase ID token and return its claims."""

    @abstractmethod
    async def verify_session_cookie(self, cookie: str, project_id: str | None = None) -> Claims:
        """Verify a Firebase session cookie and return its claims."""

    async def prefetch(self) -> None:
        """Warm up any caches before serving traffic."""

    async def close(self) -> None:
        """Release resources held by the validator."""


class FirebaseTokenValidator(TokenValidator):
    """
    Verifies real Firebase tokens against Google's published keys.

    Owns one public key cache per signer: SecureToken keys for ID tokens and
    Identity Toolkit keys for session cookies. The two caches never share
    state.

    Example:
        >>> validator = FirebaseTokenValidator.from_settings(settings)
        >>> await validator.prefetch()
        >>> claims = await validator.verify_id_token(token)
    """

    def __init__(
        self,
        id_token_keys: PublicKeyCache,
        session_cookie_keys: PublicKeyCache,
        project_id: str | None = None,
    ):
        self.id_token_keys = id_token_keys
        self.session_cookie_keys = session_cookie_keys
        self.project_id = project_id
        self._id_tokens = FirebaseJWTValidator(id_token_keys, ID_TOKEN_POLICY, project_id)
        self._session_cookies = FirebaseJWTValidator(
            session_cookie_keys, SESSION_COOKIE_POLICY, project_id
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "FirebaseTokenValidator":
        cache_options = {
            "fallback_ttl": config.public_keys_fallback_ttl_seconds,
            "retry_backoff": config.public_keys_retry_backoff_seconds,
            "timeout": config.public_keys_fetch_timeout_seconds,
        }
        return cls(
            id_token_keys=secure_token_public_keys(**cache_options),
            session_cookie_keys=identity_toolkit_public_keys(**cache_options),
            project_id=config.firebase_project_id,
        )

    async def verify_id_token(self, token: str, project_id: str | None = None) -> Claims:
        return await self._id_tokens.verify(token, project_id)

    async def verify_session_cookie(self, cookie: str, project_id: str | None = None) -> Claims:
        return await self._session_cookies.verify(cookie, project_id)

    async def prefetch(self) -> None:
        await self.id_token_keys.prefetch()
        await self.session_cookie_keys.prefetch()

    async def close(self) -> None:
        await self.id_token_keys.close()
        await self.session_cookie_keys.close()


class MockTokenValidator(TokenValidator):
    """Accepts deterministic test tokens only.

    Expected token format:
    - ``test:<user_id>``
    - ``test:<user_id>:<email>``
    """

    project_id = "mock-project"

    async def verify_id_token(self, token: str, project_id: str | None = None) -> Claims:
        return self._claims_for(
            token,
            ErrorKind.INVALID_TOKEN,
            f"https://securetoken.google.com/{project_id or self.project_id}",
            project_id,
        )

    async def verify_session_cookie(self, cookie: str, project_id: str | None = None) -> Claims:
        return self._claims_for(
            cookie,
            ErrorKind.INVALID_COOKIE,
            f"https://session.firebase.google.com/{project_id or self.project_id}",
            project_id,
        )

    def _claims_for(
        self, token: str, invalid: ErrorKind, issuer: str, project_id: str | None
    ) -> Claims:
        parts = token.split(":") if isinstance(token, str) else []
        if len(parts) not in (2, 3) or parts[0] != "test":
            raise TokenVerificationError(invalid, "Invalid test token")

        user_id = parts[1].strip()
        if not user_id:
            raise TokenVerificationError(ErrorKind.INVALID_SUB, "Test token missing user identity")

        now = int(time.time())
        raw = {
            "iss": issuer,
            "aud": project_id or self.project_id,
            "sub": user_id,
            "user_id": user_id,
            "iat": now,
            "auth_time": now,
            "exp": now + 3600,
            "firebase": {"sign_in_provider": "custom", "identities": {}},
        }
        if len(parts) == 3 and parts[2].strip():
            raw["email"] = parts[2].strip()
        return claims_from_raw(raw)


def build_token_validator(config: Settings) -> TokenValidator:
    """Select the validator adapter once, from ``config.auth_provider``."""
    if config.auth_provider == "mock":
        logger.warning("Using mock token validator; do not enable in production")
        return MockTokenValidator()
    return FirebaseTokenValidator.from_settings(config)
