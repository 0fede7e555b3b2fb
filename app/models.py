"""Database models for the Movie Catalogue.

This module defines SQLAlchemy ORM models used by the application.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    SQLAlchemy model representing a registered principal.

    A user owns zero or more movies. Users are created on registration
    and never modified afterwards.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    #: List of movies owned by the user
    movies = relationship(
        "Movie",
        back_populates="owner",
        cascade="all, delete",
    )


class Movie(Base):
    """
    SQLAlchemy model representing a catalogued movie.

    Each movie belongs to exactly one user; the owner is fixed when the
    movie is created.
    """

    __tablename__ = "movies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False)
    year = Column(Integer, nullable=False, index=True)
    rating = Column(Float, nullable=False)
    cover_image = Column(String(500), nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    #: Identifier of the owning user
    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    #: Reference to the owning User object
    owner = relationship("User", back_populates="movies")

    genre_links = relationship(
        "MovieGenre",
        back_populates="movie",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="MovieGenre.id",
    )

    @property
    def genres(self) -> list[str]:
        """Genre names, oldest tag first."""
        return [link.genre for link in self.genre_links]

    @genres.setter
    def genres(self, values) -> None:
        # Reuse kept links; the unit of work inserts before it deletes.
        existing = {link.genre: link for link in self.genre_links}
        self.genre_links = [
            existing.get(value) or MovieGenre(genre=value) for value in values
        ]


class MovieGenre(Base):
    """One genre tag of a movie."""

    __tablename__ = "movie_genres"
    __table_args__ = (UniqueConstraint("movie_id", "genre", name="uq_movie_genre"),)

    id = Column(Integer, primary_key=True)
    movie_id = Column(
        Integer,
        ForeignKey("movies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    genre = Column(String(20), nullable=False, index=True)

    movie = relationship("Movie", back_populates="genre_links")
