"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from pydantic import BaseModel

from src.fireauth.auth import (
    AuthContext,
    User,
    build_token_validator,
    get_current_user,
    get_optional_auth,
    get_session_user,
    set_token_validator,
)
from src.fireauth.config import settings

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Startup
    logger.info(
        "Initializing token validator",
        extra={"auth_provider": settings.auth_provider, "project_id": settings.firebase_project_id},
    )
    validator = build_token_validator(settings)

    if settings.prefetch_public_keys:
        # Best effort: verification refreshes lazily if this fails
        await validator.prefetch()

    set_token_validator(validator)
    logger.info("Token validator initialized successfully")

    yield

    # Shutdown
    set_token_validator(None)
    try:
        await validator.close()
        logger.info("Token validator cleanup completed")
    except Exception as e:
        logger.error(f"Error during token validator cleanup: {e}", exc_info=True)


app = FastAPI(
    title="Fireauth API",
    description="Firebase ID token and session cookie verification",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


class WhoAmIResponse(BaseModel):
    """Identity of the caller, if any."""

    authenticated: bool
    user: User | None = None


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")


@app.get(f"{settings.api_v1_prefix}/me", response_model=User)
async def read_me(user: User = Depends(get_current_user)) -> User:
    """Current user from the bearer ID token."""
    return user


@app.get(f"{settings.api_v1_prefix}/session/me", response_model=User)
async def read_session_me(user: User = Depends(get_session_user)) -> User:
    """Current user from the session cookie."""
    return user


@app.get(f"{settings.api_v1_prefix}/whoami", response_model=WhoAmIResponse)
async def whoami(auth: AuthContext = Depends(get_optional_auth)) -> WhoAmIResponse:
    """Anonymous-friendly identity lookup."""
    return WhoAmIResponse(authenticated=auth.user is not None, user=auth.user)


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
