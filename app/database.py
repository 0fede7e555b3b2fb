"""Database configuration and session management.

This module declares the SQLAlchemy declarative base, builds engines
and session factories for a configured URL, and provides the database
session dependency for FastAPI routes.
"""

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base


Base = declarative_base()
"""Declarative base class for SQLAlchemy models."""


def build_engine(database_url: str) -> Engine:
    """
    Create a SQLAlchemy engine bound to the given database URL.

    SQLite connections are allowed to cross threads because FastAPI
    runs sync dependencies in a worker pool.
    """
    connect_args = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, future=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Factory for database sessions."""
    return sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


def get_db(request: Request):
    """
    Provide a SQLAlchemy database session.

    This function is used as a FastAPI dependency.
    It yields a session from the application context and ensures it is
    properly closed after the request is completed.
    """

    db = request.app.state.context.session_factory()
    try:
        yield db
    finally:
        db.close()
