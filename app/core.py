"""Application configuration, settings management and logging setup.

This module defines the application settings loaded from environment
variables, provides a helper for accessing cached settings and
configures structlog for the whole process.
"""

import logging
from functools import lru_cache
from typing import List

import structlog
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        SECRET_KEY: Secret key used to sign session cookies.
        ALGORITHM: Algorithm used to encode session cookies.
        SESSION_COOKIE_NAME: Name of the cookie carrying the session token.
        SESSION_EXPIRE_MINUTES: Session lifetime in minutes.
        SESSION_BACKEND: ``memory`` or ``redis``.
        REDIS_URL: Redis connection URL for the session store.
        REDIS_TIMEOUT_SECONDS: Socket timeout for Redis calls.
        COOKIE_SECURE: Mark the session cookie as HTTPS only.
        DEFAULT_COVER_IMAGE: Cover image used when a movie has none.
        CREATE_TABLES: Create database tables on startup.
        LOG_LEVEL: Minimum level for emitted log events.
        LOG_JSON: Render log events as JSON lines.
        ALLOWED_ORIGINS: Allowed origins for CORS.
    """

    DATABASE_URL: str = "sqlite:///./movies.db"
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "session"
    SESSION_EXPIRE_MINUTES: int = 60 * 24
    SESSION_BACKEND: str = "memory"
    REDIS_URL: str = "redis://redis:6379"
    REDIS_TIMEOUT_SECONDS: float = 2.0
    COOKIE_SECURE: bool = False
    DEFAULT_COVER_IMAGE: str = (
        "https://letsenhance.io/static/73136da51c245e80edc6ccfe44888a99/396e9/MainBefore.jpg"
    )
    CREATE_TABLES: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    ALLOWED_ORIGINS: List[str] = ["*"]

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog processors and the output level.

    Args:
        level (str): Name of the minimum log level.
        json_output (bool): Emit JSON lines instead of console output.
    """
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(level.upper())
        ),
        cache_logger_on_first_use=True,
    )
