"""
Main application entry point for the Movie Catalogue.

This module builds the FastAPI application: it configures logging,
creates the application context (database engine and session store),
sets up middleware, registers exception handlers and includes the
routers for authentication and movies.

Modules:
- FastAPI: Web framework
- CORSMiddleware: Middleware for handling CORS
- app.context: Application context with startup/shutdown
- app.auth: Authentication router
- app.records: Movies router
- app.core: Application settings and logging
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware

from app import views
from app.auth import get_optional_user
from app.auth import router as auth_router
from app.context import AppContext, create_context
from app.core import Settings, configure_logging, get_settings
from app.errors import AuthenticationRequired, Forbidden, NotFound, StoreUnavailable
from app.middleware import RequestIdMiddleware
from app.records import router as records_router
from app.schemas import UserOut

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Start and stop the application context.

    The context is connected on startup unless it was started already
    (tests start it themselves) and is always closed on shutdown.
    """
    context: AppContext = app.state.context
    if context.sessions is None:
        await context.startup()
    yield
    await context.shutdown()


def register_exception_handlers(app: FastAPI) -> None:
    """Map application errors that escape a route to responses."""

    @app.exception_handler(AuthenticationRequired)
    async def authentication_required(request: Request, exc: AuthenticationRequired):
        return views.redirect("/login", error="login_required")

    @app.exception_handler(NotFound)
    async def not_found(request: Request, exc: NotFound):
        return views.redirect("/records", error="not_found")

    @app.exception_handler(Forbidden)
    async def forbidden(request: Request, exc: Forbidden):
        return views.redirect("/records", error="forbidden")

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable(request: Request, exc: StoreUnavailable):
        logger.error("store.request_failed", path=request.url.path)
        return views.render(
            "error",
            title="Error",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message=exc.message,
        )


def create_app(
    settings: Settings | None = None, context: AppContext | None = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings (Settings | None): Settings to use instead of the cached ones.
        context (AppContext | None): Pre-built application context.

    Returns:
        FastAPI: Configured application.
    """
    settings = settings or (context.settings if context else get_settings())
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    app = FastAPI(title="Movie Catalogue", lifespan=lifespan)
    app.state.context = context or create_context(settings)

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(auth_router)
    app.include_router(records_router)

    @app.get("/")
    def root(request: Request, user=Depends(get_optional_user)):
        """
        Home page.

        Returns:
            JSONResponse: ``index`` page with the logged-in user, if any.
        """
        return views.render(
            "index",
            title="Movie Catalogue",
            user=UserOut.model_validate(user) if user else None,
            **views.notices(request),
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
