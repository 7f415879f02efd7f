from __future__ import annotations

"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
the per-process rate limiter) so tests can build isolated instances.
"""

from fastapi import FastAPI

from styleseason.adapters.rate_limit.base import AbstractRateLimiter
from styleseason.api.routes import health_router, rate_limit_router
from styleseason.core.config import settings
from styleseason.core.exception_handlers import setup_exception_handlers
from styleseason.core.logging import configure_logging
from styleseason.core.middleware import request_id_middleware
from styleseason.core.openapi import apply_openapi_customizations
from styleseason.core.rate_limit import create_rate_limiter


def create_app(*, rate_limiter: AbstractRateLimiter | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        rate_limiter: Limiter to install; a fresh in-memory one by default.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="StyleSeason Rate Limit API",
        description=(
            "Per-user, per-endpoint rate limiting for the StyleSeason backend: "
            "fixed windows with a block period once a quota is exceeded."
        ),
        version="0.1.0",
        debug=settings.app.debug,
    )

    # One limiter per application; its counters live for the process lifetime
    app.state.rate_limiter = rate_limiter or create_rate_limiter()

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(rate_limit_router, prefix="/v1")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
