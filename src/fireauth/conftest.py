"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from src.fireauth.auth import MockTokenValidator, set_token_validator
from src.fireauth.main import app


@pytest.fixture
def client() -> TestClient:
    """
    Provide FastAPI test client backed by the mock token validator.

    Returns:
        TestClient instance for making API requests

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    set_token_validator(MockTokenValidator())
    yield TestClient(app)
    set_token_validator(None)
