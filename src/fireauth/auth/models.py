"""Data models for verified Firebase claims and the users derived from them."""

import math
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

ProviderIdentityMap = dict[str, list[str]]


class Claims(BaseModel):
    """
    Verified Firebase ID token or session cookie claims.

    Built once by ``claims_from_raw`` right after verification and never
    mutated afterwards. ``raw_claims`` keeps the full decoded payload for
    custom claims this model does not know about.

    Attributes:
        subject: Firebase uid from 'sub' claim
        issuer: Token issuer from 'iss' claim
        audience: Firebase project id from 'aud' claim
        expires_at: 'exp' as Unix seconds
        issued_at: 'iat' as Unix seconds
        auth_time: 'auth_time' as Unix seconds
        user_id: 'user_id' claim, falls back to subject
        email: 'email' claim
        email_verified: 'email_verified' claim
        display_name: 'name' claim
        picture_url: 'picture' claim
        sign_in_provider: 'firebase.sign_in_provider' (e.g. "google.com")
        identities: 'firebase.identities', provider -> list of provider uids
        raw_claims: Full decoded claim map

    Example:
        >>> claims = claims_from_raw({"sub": "uid-1", "aud": "my-project"})
        >>> claims.user_id
        'uid-1'
    """

    model_config = ConfigDict(frozen=True)

    subject: str
    issuer: str | None = None
    audience: str | None = None
    expires_at: int | None = None
    issued_at: int | None = None
    auth_time: int | None = None
    user_id: str
    email: str | None = None
    email_verified: bool | None = None
    display_name: str | None = None
    picture_url: str | None = None
    sign_in_provider: str | None = None
    identities: ProviderIdentityMap | None = None
    raw_claims: dict[str, Any] = {}


class User(BaseModel):
    """
    Application facing user derived from Claims.

    Always built with ``user_from_claims``. ``identities`` is None rather
    than an empty dict when the token carries no linked providers.
    """

    model_config = ConfigDict(frozen=True)

    firebase_uid: str
    email: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None
    email_verified: bool | None = None
    sign_in_provider: str | None = None
    identities: ProviderIdentityMap | None = None


class AuthContext(BaseModel):
    """
    What a request knows about its caller.

    All fields are None for anonymous requests.
    """

    model_config = ConfigDict(frozen=True)

    token: str | None = None
    claims: Claims | None = None
    user: User | None = None

    @property
    def identities(self) -> ProviderIdentityMap | None:
        return self.user.identities if self.user is not None else None


class HasIdentities(Protocol):
    identities: ProviderIdentityMap | None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _timestamp(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _parse_identities(value: Any) -> ProviderIdentityMap | None:
    if not isinstance(value, dict):
        return None

    # Drop anything that is not provider -> [uid, ...]
    parsed: ProviderIdentityMap = {}
    for provider, uids in value.items():
        if not isinstance(provider, str) or not isinstance(uids, list):
            continue
        parsed[provider] = [uid for uid in uids if isinstance(uid, str)]
    return parsed


def claims_from_raw(raw: dict[str, Any]) -> Claims:
    """
    Build Claims from a decoded JWT payload.

    Never fails: claims with an unexpected JSON type are treated as absent.

    Args:
        raw: Decoded claim map (string keys as provided by the JWT)

    Returns:
        Claims with every known field extracted and ``raw_claims`` set
    """
    firebase = raw.get("firebase")
    if not isinstance(firebase, dict):
        firebase = {}

    subject = _str_or_none(raw.get("sub")) or ""
    email_verified = raw.get("email_verified")

    return Claims(
        subject=subject,
        issuer=_str_or_none(raw.get("iss")),
        audience=_str_or_none(raw.get("aud")),
        expires_at=_timestamp(raw.get("exp")),
        issued_at=_timestamp(raw.get("iat")),
        auth_time=_timestamp(raw.get("auth_time")),
        user_id=_str_or_none(raw.get("user_id")) or subject,
        email=_str_or_none(raw.get("email")),
        email_verified=email_verified if isinstance(email_verified, bool) else None,
        display_name=_str_or_none(raw.get("name")),
        picture_url=_str_or_none(raw.get("picture")),
        sign_in_provider=_str_or_none(firebase.get("sign_in_provider")),
        identities=_parse_identities(firebase.get("identities")),
        raw_claims=dict(raw),
    )


def user_from_claims(claims: Claims) -> User:
    """Project verified Claims onto a User."""
    return User(
        firebase_uid=claims.user_id,
        email=claims.email,
        display_name=claims.display_name,
        avatar_url=claims.picture_url,
        email_verified=claims.email_verified,
        sign_in_provider=claims.sign_in_provider,
        identities=dict(claims.identities) if claims.identities else None,
    )


claims_to_user = user_from_claims


def _provider_key(provider: str | Enum) -> str:
    if isinstance(provider, Enum):
        return str(provider.value)
    return str(provider)


def identities(data: HasIdentities | None) -> ProviderIdentityMap:
    """Return the identities mapping of a Claims/User-like value, or {}."""
    value = getattr(data, "identities", None)
    return value if isinstance(value, dict) else {}


def has_identity(data: HasIdentities | None, provider: str | Enum) -> bool:
    """
    Check whether a Claims/User-like value has an identity for ``provider``.

    Example:
        >>> has_identity(user, "google.com")
        True
    """
    return _provider_key(provider) in identities(data)


def get_identity(data: HasIdentities | None, provider: str | Enum) -> str | None:
    """
    Get the canonical provider uid (first list entry) for ``provider``.

    Works the same on Claims, User and AuthContext values. Returns None
    when the provider is missing, its list is empty or there are no
    identities at all.

    Example:
        >>> get_identity(claims, "google.com")
        'google-uid'
        >>> get_identity(claims, "github.com") is None
        True
    """
    uids = identities(data).get(_provider_key(provider))
    if not uids:
        return None
    return uids[0]
