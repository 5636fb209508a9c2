from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from smartstudy.core.config import Settings, settings as default_settings
from smartstudy.core.context import AppContext
from smartstudy.core.error_handlers import register_exception_handlers
from smartstudy.core.logging_config import setup_logging
from smartstudy.core.middleware import RequestLoggingMiddleware
from smartstudy.core.rate_limiter import RateLimitMiddleware, build_limiter
from smartstudy.routes import analytics, auth, download_history, notes, reviews


API_PREFIX = "/api"


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application around its own ``AppContext``.

    The context is initialized when the app starts serving and closed on
    shutdown (FastAPI lifespan).
    """
    settings = settings or default_settings
    logger = setup_logging(settings)
    context = AppContext(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting %s v%s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
        context.initialize()
        yield
        logger.info("Shutting down %s", settings.APP_NAME)
        context.close()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Teachers share study notes; students download and review them",
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.context = context

    limiter = build_limiter(settings)
    app.state.limiter = limiter

    register_exception_handlers(app)

    # Middleware (last added runs first)
    app.add_middleware(RateLimitMiddleware, limiter=limiter, settings=settings, prefix=API_PREFIX)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # Register routers
    for module in (auth, notes, reviews, analytics, download_history):
        app.include_router(module.router, prefix=API_PREFIX)

    @app.get("/health", tags=["Health"])
    def health():
        return {
            "success": True,
            "status": "ok",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

    return app


app = create_app()
