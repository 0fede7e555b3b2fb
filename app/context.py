"""Application context: the long-lived resources shared by all requests.

The context is built once at startup and stored on ``app.state``;
dependencies read it from the request instead of module globals.
"""

from dataclasses import dataclass

import structlog
from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .core import Settings
from .database import Base, build_engine, build_session_factory
from .sessions import SessionResolver, create_session_store

logger = structlog.get_logger()


@dataclass
class AppContext:
    """Settings, database engine and session resolver of one application."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    sessions: SessionResolver | None = None

    async def startup(self, session_store=None) -> None:
        """
        Prepare the database and connect the session store.

        Args:
            session_store: Optional pre-built session store backend.
        """
        if self.settings.CREATE_TABLES:
            Base.metadata.create_all(bind=self.engine)
        if session_store is None:
            session_store = await create_session_store(self.settings)
        self.sessions = SessionResolver(session_store, self.settings)
        logger.info("app.started", session_store=type(session_store).__name__)

    async def shutdown(self) -> None:
        """Close the session store and dispose of the engine."""
        if self.sessions is not None:
            await self.sessions.close()
            self.sessions = None
        self.engine.dispose()
        logger.info("app.stopped")


def create_context(settings: Settings, engine: Engine | None = None) -> AppContext:
    """
    Build an application context for the given settings.

    Args:
        settings (Settings): Application settings.
        engine (Engine | None): Engine to use instead of one built from
            ``settings.DATABASE_URL``.

    Returns:
        AppContext: Context that still needs ``startup()``.
    """
    engine = engine or build_engine(settings.DATABASE_URL)
    return AppContext(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
    )


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_app_settings(request: Request) -> Settings:
    return get_context(request).settings
