"""Application configuration using Pydantic Settings."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_v1_prefix: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    # Token validator adapter: "firebase" verifies real tokens, "mock" accepts test:<uid>
    auth_provider: Literal["firebase", "mock"] = "firebase"

    # Firebase Configuration
    firebase_project_id: str | None = None

    # Public key cache Configuration
    public_keys_fallback_ttl_seconds: int = 3600  # 1 hour, used when cache-control is missing
    public_keys_retry_backoff_seconds: int = 60  # Retry window after a failed refresh
    public_keys_fetch_timeout_seconds: float = 10.0
    prefetch_public_keys: bool = True

    # Session cookie Configuration
    session_cookie_name: str = "session"


settings = Settings()


def resolve_project_id(project_id: str | None = None, config: Settings | None = None) -> str | None:
    """
    Resolve the Firebase project id for a verification call.

    An explicit non-empty ``project_id`` wins; otherwise the configured
    ``firebase_project_id`` (env ``FIREBASE_PROJECT_ID``) is used.

    Args:
        project_id: Project id passed by the caller, if any
        config: Settings to fall back to (default: module settings)

    Returns:
        Project id, or None when nothing is configured
    """
    if isinstance(project_id, str) and project_id:
        return project_id

    config = config or settings
    return config.firebase_project_id or None
