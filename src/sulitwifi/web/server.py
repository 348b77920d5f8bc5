from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from sulitwifi.app import App
from sulitwifi.config import Config
from sulitwifi.errors import StoreUnavailableError, UserError
from sulitwifi.logging import clear_request_context
from sulitwifi.web.error_handlers import general_exception_handler, store_unavailable_handler, user_error_handler
from sulitwifi.web.openapi import set_custom_openapi
from sulitwifi.web.routers import admin_router, coin_router, portal_router


def create_fastapi_app(app_instance: App, config: Config) -> FastAPI:
    """Create and configure FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        """FastAPI application lifespan management."""
        # Store app instance and config in app state
        app.state.app = app_instance
        app.state.config = config
        async with app_instance.lifespan():
            yield

    app = FastAPI(
        title="SULIT WiFi API",
        lifespan=lifespan,
        openapi_tags=[],  # Tags will be added by custom OpenAPI function
    )

    @app.middleware("http")
    async def clear_log_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        # Request-scoped log fields (client_mac) must not leak into the next request
        clear_request_context()
        return await call_next(request)

    # Add CORS middleware for the admin frontend during development
    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Health check endpoint (at root level)
    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": config.git_commit_hash}

    app.include_router(portal_router, prefix="/api")
    app.include_router(coin_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    # Register error handlers
    app.add_exception_handler(UserError, user_error_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    set_custom_openapi(app)

    return app
