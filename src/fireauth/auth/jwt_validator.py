"""Local verification of Firebase ID tokens and session cookies."""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from jose import jws
from jose.exceptions import JOSEError
from jose.utils import base64url_decode

from src.fireauth.auth.claims_validator import (
    ID_TOKEN_ISSUER_PREFIX,
    SESSION_COOKIE_ISSUER_PREFIX,
    validate_claims,
)
from src.fireauth.auth.exceptions import ErrorKind, TokenVerificationError
from src.fireauth.auth.models import Claims, claims_from_raw
from src.fireauth.auth.public_keys import PublicKeyCache
from src.fireauth.config import resolve_project_id

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"


@dataclass(frozen=True)
class VerificationPolicy:
    """Signer specific settings for FirebaseJWTValidator."""

    name: str
    issuer_prefix: str
    format_error: ErrorKind
    malformed_error: ErrorKind
    expired_error: ErrorKind


ID_TOKEN_POLICY = VerificationPolicy(
    name="id_token",
    issuer_prefix=ID_TOKEN_ISSUER_PREFIX,
    format_error=ErrorKind.INVALID_TOKEN_FORMAT,
    malformed_error=ErrorKind.INVALID_TOKEN,
    expired_error=ErrorKind.TOKEN_EXPIRED,
)

SESSION_COOKIE_POLICY = VerificationPolicy(
    name="session_cookie",
    issuer_prefix=SESSION_COOKIE_ISSUER_PREFIX,
    format_error=ErrorKind.INVALID_COOKIE_FORMAT,
    malformed_error=ErrorKind.INVALID_COOKIE,
    expired_error=ErrorKind.COOKIE_EXPIRED,
)


class FirebaseJWTValidator:
    """
    Verifies Firebase-signed JWTs locally against cached Google public keys.

    Only RS256 is accepted. The pipeline runs cheapest check first and stops
    at the first failure:

    1. Token splits into exactly three dot-separated segments
    2. Protected header decodes to a JSON object
    3. Header alg is RS256 (before any key lookup)
    4. Header carries a non-empty kid
    5. Public key for kid is resolved through the cache
    6. RS256 signature verifies against that key
    7. aud, iss, sub, exp, iat and auth_time pass ``validate_claims``

    Attributes:
        key_cache: Public key cache for this signer
        policy: ID token or session cookie policy
        project_id: Default Firebase project id for verify() calls

    Example:
        >>> validator = FirebaseJWTValidator(secure_token_public_keys(), ID_TOKEN_POLICY)
        >>> claims = await validator.verify(id_token, project_id="my-project")
        >>> claims.subject
        'firebase-uid'
    """

    def __init__(
        self,
        key_cache: PublicKeyCache,
        policy: VerificationPolicy = ID_TOKEN_POLICY,
        project_id: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize Firebase JWT validator.

        Args:
            key_cache: Public key cache for the signer the policy expects
            policy: ID_TOKEN_POLICY or SESSION_COOKIE_POLICY
            project_id: Project id used when verify() gets none (falls back to settings)
            clock: Returns the current Unix time in seconds
        """
        self.key_cache = key_cache
        self.policy = policy
        self.project_id = project_id
        self._clock = clock

    async def verify(self, token: str, project_id: str | None = None) -> Claims:
        """
        Verify a token and return its claims.

        Args:
            token: Compact JWT (without "Bearer " prefix)
            project_id: Expected Firebase project id for this call

        Returns:
            Claims built from the verified payload

        Raises:
            TokenVerificationError: With the kind of the first failing step
        """
        try:
            claims = await self._verify(token, project_id)
        except TokenVerificationError as e:
            logger.warning(
                f"{self.policy.name} verification failed: {e.message}",
                extra={"error_type": e.kind.value, "policy": self.policy.name},
            )
            raise

        logger.debug(
            f"{self.policy.name} verified successfully",
            extra={"user_id": claims.user_id, "exp": claims.expires_at},
        )
        return claims

    async def _verify(self, token: str, project_id: str | None) -> Claims:
        if not isinstance(token, str) or token.count(".") != 2:
            raise TokenVerificationError(
                self.policy.format_error, "Expected three dot-separated segments"
            )

        header = self._peek_header(token)

        alg = header.get("alg")
        if alg != ALGORITHM:
            raise TokenVerificationError(
                ErrorKind.INVALID_ALG, f"Expected alg '{ALGORITHM}', got {alg!r}"
            )

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise TokenVerificationError(ErrorKind.NO_KID, "JWT header missing 'kid' (key ID)")

        pem = await self.key_cache.get_key_for_kid(kid)
        payload = self._verify_signature(token, pem, kid)

        validate_claims(
            payload,
            project_id=resolve_project_id(project_id or self.project_id),
            issuer_prefix=self.policy.issuer_prefix,
            now=self._clock(),
            expired_kind=self.policy.expired_error,
        )
        return claims_from_raw(payload)

    def _peek_header(self, token: str) -> dict[str, Any]:
        header_segment = token.split(".", 1)[0]
        try:
            header = json.loads(base64url_decode(header_segment.encode("ascii")))
        except (ValueError, UnicodeError, RecursionError) as e:
            raise TokenVerificationError(
                self.policy.malformed_error, "Could not decode JWT header"
            ) from e

        if not isinstance(header, dict):
            raise TokenVerificationError(ErrorKind.INVALID_HEADER, "JWT header is not a JSON object")
        return header

    def _verify_signature(self, token: str, pem: str, kid: str) -> dict[str, Any]:
        try:
            payload = jws.verify(token, pem, algorithms=[ALGORITHM])
        except JOSEError as e:
            raise TokenVerificationError(
                ErrorKind.INVALID_SIGNATURE, "Signature verification failed"
            ) from e
        except Exception as e:
            logger.error(
                f"Unexpected error during signature verification: {e}",
                exc_info=True,
                extra={"error_type": "signature_verification_error", "kid": kid},
            )
            raise TokenVerificationError(
                ErrorKind.INVALID_SIGNATURE, "Signature verification failed"
            ) from e

        try:
            claims = json.loads(payload)
        except (ValueError, RecursionError) as e:
            raise TokenVerificationError(
                self.policy.malformed_error, "Could not decode JWT payload"
            ) from e

        if not isinstance(claims, dict):
            raise TokenVerificationError(
                self.policy.malformed_error, "JWT payload is not a JSON object"
            )
        return claims
