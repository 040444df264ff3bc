"""FastAPI application factory for the SIOP DID Auth verifier."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from siop.api.routes_verify import router as verify_router
from siop.core.logging import configure_logging
from siop.core.settings import VerifierSettings


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    settings = VerifierSettings()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        yield

    app = FastAPI(
        title="SIOP DID Auth Verifier",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(verify_router)
    return app
