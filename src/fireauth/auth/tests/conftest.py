"""Shared fixtures for authentication tests."""

import time
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from jose import jwt

PROJECT_ID = "test-proj"


@pytest.fixture
def project_id() -> str:
    """Firebase project id every test token is issued for."""
    return PROJECT_ID


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    """RSA key used to sign test tokens."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture(scope="session")
def public_pem(rsa_private_key) -> str:
    return (
        rsa_private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture(scope="session")
def certificate_pem(rsa_private_key) -> str:
    """Self-signed x509 certificate, the format Google publishes keys in."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "securetoken.system.gserviceaccount.com")])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(rsa_private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=1))
        .sign(rsa_private_key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode()


@pytest.fixture(scope="session")
def other_public_pem() -> str:
    """Public key that did not sign any test token."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )


@pytest.fixture
def id_token_claims() -> dict[str, Any]:
    """Valid ID token payload for PROJECT_ID."""
    now = int(time.time())
    return {
        "aud": PROJECT_ID,
        "iss": f"https://securetoken.google.com/{PROJECT_ID}",
        "sub": "firebase-uid",
        "user_id": "firebase-uid",
        "exp": now + 3600,
        "iat": now - 10,
        "auth_time": now - 10,
        "email": "alice@example.com",
        "email_verified": True,
        "name": "Alice",
        "picture": "https://example.com/alice.png",
        "firebase": {
            "sign_in_provider": "google.com",
            "identities": {"google.com": ["google-uid"], "email": ["alice@example.com"]},
        },
    }


@pytest.fixture
def session_cookie_claims(id_token_claims) -> dict[str, Any]:
    """Valid session cookie payload for PROJECT_ID."""
    return {**id_token_claims, "iss": f"https://session.firebase.google.com/{PROJECT_ID}"}


@pytest.fixture
def sign_token(private_pem) -> Callable[..., str]:
    """
    Sign a payload as an RS256 compact JWT.

    Example:
        >>> token = sign_token(claims, kid="key-1")
    """

    def _sign(claims: dict[str, Any], kid: str | None = "key-1", **headers: Any) -> str:
        if kid is not None:
            headers["kid"] = kid
        return jwt.encode(claims, private_pem, algorithm="RS256", headers=headers)

    return _sign
