"""Google x509 public key fetching and caching for Firebase token verification."""

import asyncio
import logging
import re
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

import httpx

from src.fireauth.auth.exceptions import ErrorKind, KeyFetchError, TokenVerificationError

logger = logging.getLogger(__name__)

# Signs Firebase ID tokens
SECURE_TOKEN_KEYS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
)
# Signs Firebase session cookies
IDENTITY_TOOLKIT_KEYS_URL = (
    "https://www.googleapis.com/identitytoolkit/v3/relyingparty/publicKeys"
)

DEFAULT_FALLBACK_TTL_SECONDS = 3600
DEFAULT_RETRY_BACKOFF_SECONDS = 60

_MAX_AGE_RE = re.compile(r"max-age=(\d+)")


@dataclass(frozen=True)
class KeySet:
    """Immutable snapshot of the cached keys, swapped as a whole on refresh."""

    keys: Mapping[str, str]
    expires_at: float


@dataclass(frozen=True)
class KeyFetchResult:
    """Parsed upstream response: kid -> PEM plus the TTL to cache it for."""

    keys: dict[str, str]
    ttl_seconds: int


def parse_max_age(cache_control: str | None) -> int | None:
    """
    Extract a positive ``max-age`` from a Cache-Control header value.

    Example:
        >>> parse_max_age("public, max-age=19845, must-revalidate")
        19845
        >>> parse_max_age("no-cache") is None
        True
    """
    if not cache_control:
        return None

    match = _MAX_AGE_RE.search(cache_control)
    if match is None:
        return None

    max_age = int(match.group(1))
    return max_age if max_age > 0 else None


class PublicKeyCache:
    """
    Caches the x509 public keys Google publishes for one Firebase signer.

    Keys are kept in memory as ``kid -> PEM`` with a TTL taken from the
    upstream ``Cache-Control: max-age`` header. An unknown key ID forces one
    refresh so key rotation is picked up before the TTL runs out.

    Reads never take the lock; a refresh builds a new ``KeySet`` and swaps
    it in with a single assignment. Refreshes are serialized and collapsed,
    so callers queued behind an in-flight fetch reuse its result.

    Attributes:
        name: Signer name used in log records
        url: x509 metadata endpoint
        fallback_ttl: TTL when the response has no usable max-age
        retry_backoff: Expiry applied after a failed refresh
        _key_set: Current KeySet snapshot
        _generation: Incremented on every successful fetch
        _http_client: HTTP client for fetching keys

    Example:
        >>> cache = secure_token_public_keys()
        >>> await cache.prefetch()
        >>> pem = await cache.get_key_for_kid("abc123")
    """

    def __init__(
        self,
        name: str,
        url: str,
        fallback_ttl: int = DEFAULT_FALLBACK_TTL_SECONDS,
        retry_backoff: int = DEFAULT_RETRY_BACKOFF_SECONDS,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize public key cache.

        Args:
            name: Signer name for logging (e.g. "securetoken")
            url: URL to fetch the kid -> PEM mapping from
            fallback_ttl: Cache TTL in seconds when max-age is missing (default: 1 hour)
            retry_backoff: Seconds until the next attempt after a failed refresh
            http_client: Client to use instead of creating one
            timeout: Request timeout in seconds for the owned client
            clock: Returns the current Unix time in seconds
        """
        self.name = name
        self.url = url
        self.fallback_ttl = fallback_ttl
        self.retry_backoff = retry_backoff
        self._clock = clock
        self._key_set = KeySet(keys=MappingProxyType({}), expires_at=0)
        self._generation = 0
        self._refresh_lock = asyncio.Lock()
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), follow_redirects=True
        )

    @property
    def keys(self) -> Mapping[str, str]:
        return self._key_set.keys

    @property
    def expires_at(self) -> float:
        return self._key_set.expires_at

    def is_fresh(self) -> bool:
        """True when the cache is unexpired and holds at least one key."""
        key_set = self._key_set
        return key_set.expires_at > self._clock() and len(key_set.keys) > 0

    def put_keys(self, keys: Mapping[str, str], ttl_seconds: int) -> None:
        """
        Replace the cached keys without touching the network.

        Args:
            keys: kid -> PEM mapping
            ttl_seconds: Seconds until the keys expire

        Raises:
            ValueError: If ttl_seconds is negative
        """
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")

        self._swap(dict(keys), self._clock() + ttl_seconds)
        self._generation += 1

    async def get_key_for_kid(self, kid: str) -> str:
        """
        Get the PEM for a key ID.

        Fresh cache hit returns immediately. Otherwise the cache is refreshed
        (when expired or empty) or force refreshed (when ``kid`` is unknown),
        with at most one network fetch per call.

        Args:
            kid: Key ID from the JWT header

        Returns:
            PEM encoded certificate or public key

        Raises:
            TokenVerificationError: CERT_NOT_FOUND if the kid is unknown after
                refresh, NO_KEYS_AVAILABLE if nothing could be loaded
            KeyFetchError: If the forced refresh fails
        """
        if not isinstance(kid, str) or not kid:
            raise TokenVerificationError(ErrorKind.CERT_NOT_FOUND, "Empty key ID")

        if self.is_fresh():
            pem = self._key_set.keys.get(kid)
            if pem:
                return pem
            refreshed = False
        else:
            keys = await self.get_all_keys()
            pem = keys.get(kid)
            if pem:
                return pem
            refreshed = True

        if not refreshed:
            logger.warning(
                f"Key ID {kid!r} not found in {self.name} cache, refreshing public keys",
                extra={"kid": kid, "cached_kids": list(self._key_set.keys)},
            )
            keys = await self.refresh()
            pem = keys.get(kid)
            if pem:
                return pem

        raise TokenVerificationError(
            ErrorKind.CERT_NOT_FOUND,
            f"Key ID {kid!r} not found in {self.name} public keys",
        )

    async def get_all_keys(self) -> Mapping[str, str]:
        """
        Get the current key set, refreshing first if expired or empty.

        A failed refresh keeps the old keys and retries after
        ``retry_backoff`` seconds.

        Returns:
            Read-only kid -> PEM mapping

        Raises:
            TokenVerificationError: NO_KEYS_AVAILABLE if the set is still empty
        """
        if not self.is_fresh():
            async with self._refresh_lock:
                # Another caller may have refreshed while we waited
                if not self.is_fresh():
                    try:
                        await self._refresh_locked()
                    except KeyFetchError as e:
                        retry_at = self._clock() + self.retry_backoff
                        self._swap(self._key_set.keys, retry_at)
                        logger.warning(
                            f"Keeping {len(self._key_set.keys)} stale {self.name} keys, "
                            f"retrying in {self.retry_backoff}s: {e.message}",
                            extra={"error_type": "public_keys_refresh_failed", "signer": self.name},
                        )

        keys = self._key_set.keys
        if not keys:
            raise TokenVerificationError(
                ErrorKind.NO_KEYS_AVAILABLE, f"No {self.name} public keys available"
            )
        return keys

    async def refresh(self) -> Mapping[str, str]:
        """
        Fetch keys from upstream and update cache.

        Callers that were waiting on an in-flight refresh reuse its result.
        On failure the existing keys are left untouched.

        Returns:
            Read-only kid -> PEM mapping after the refresh

        Raises:
            KeyFetchError: If the HTTP request fails or the body is invalid
        """
        generation = self._generation
        async with self._refresh_lock:
            if self._generation != generation:
                return self._key_set.keys
            return await self._refresh_locked()

    async def prefetch(self) -> bool:
        """
        Best-effort warm-up at application startup.

        Returns:
            True if keys were loaded, False if the fetch failed (logged, not raised)
        """
        logger.debug(f"Prefetching {self.name} public keys")
        try:
            await self.refresh()
        except KeyFetchError as e:
            logger.warning(
                f"Failed to prefetch {self.name} public keys: {e.message}",
                extra={"error_type": "public_keys_prefetch_failed", "signer": self.name},
            )
            return False
        return True

    async def close(self) -> None:
        """
        Close HTTP client and cleanup resources.

        Only closes clients this cache created itself.
        """
        if self._owns_client:
            await self._http_client.aclose()
        logger.info(f"{self.name} public key cache closed")

    async def _refresh_locked(self) -> Mapping[str, str]:
        result = await self._fetch()
        self._swap(result.keys, self._clock() + result.ttl_seconds)
        self._generation += 1

        logger.info(
            f"{self.name} public keys refreshed successfully",
            extra={
                "signer": self.name,
                "key_count": len(result.keys),
                "key_ids": list(result.keys),
                "ttl_seconds": result.ttl_seconds,
            },
        )
        return self._key_set.keys

    async def _fetch(self) -> KeyFetchResult:
        logger.debug(f"Fetching {self.name} public keys from {self.url}")
        try:
            response = await self._http_client.get(self.url)
        except httpx.HTTPError as e:
            logger.error(
                f"Failed to fetch public keys from {self.url}: {e}",
                extra={"error_type": "public_keys_fetch_failed", "signer": self.name},
            )
            raise KeyFetchError(f"Request to {self.url} failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"Public key endpoint {self.url} returned HTTP {response.status_code}",
                extra={
                    "error_type": "public_keys_http_error",
                    "signer": self.name,
                    "status_code": response.status_code,
                },
            )
            raise KeyFetchError(f"HTTP {response.status_code} from {self.url}")

        try:
            body = response.json()
        except ValueError as e:
            raise KeyFetchError(f"Invalid JSON from {self.url}: {e}") from e

        if not isinstance(body, dict) or not all(
            isinstance(kid, str) and isinstance(pem, str) for kid, pem in body.items()
        ):
            raise KeyFetchError(f"Unexpected public key payload from {self.url}")

        ttl = parse_max_age(response.headers.get("cache-control")) or self.fallback_ttl
        return KeyFetchResult(keys=body, ttl_seconds=ttl)

    def _swap(self, keys: Mapping[str, str], expires_at: float) -> None:
        self._key_set = KeySet(keys=MappingProxyType(dict(keys)), expires_at=expires_at)


def secure_token_public_keys(**kwargs) -> PublicKeyCache:
    """Cache for the keys that sign Firebase ID tokens."""
    return PublicKeyCache("securetoken", SECURE_TOKEN_KEYS_URL, **kwargs)


def identity_toolkit_public_keys(**kwargs) -> PublicKeyCache:
    """Cache for the keys that sign Firebase session cookies."""
    return PublicKeyCache("identitytoolkit", IDENTITY_TOOLKIT_KEYS_URL, **kwargs)
