"""Filter criteria and the query builder for a user's movie list."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator
from sqlalchemy import Select, select

from .models import Movie, MovieGenre

ANY_GENRE = "all"


def _blank_to_none(value):
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class MovieFilter(BaseModel):
    """
    Optional, independent criteria for narrowing a movie list.

    Blank form values and the genre "all" mean "no constraint". Any
    other genre is matched exactly, so an unknown one matches nothing.
    Bounds are inclusive and are not checked against each other:
    inverted bounds simply match nothing.
    """

    name: Optional[str] = None
    genre: Optional[str] = None
    min_year: Optional[int] = Field(default=None, alias="minYear")
    max_year: Optional[int] = Field(default=None, alias="maxYear")
    min_rating: Optional[float] = Field(default=None, alias="minRating")
    max_rating: Optional[float] = Field(default=None, alias="maxRating")

    class Config:
        populate_by_name = True

    @field_validator(
        "name", "min_year", "max_year", "min_rating", "max_rating", mode="before"
    )
    @classmethod
    def blank_is_unset(cls, value):
        return _blank_to_none(value)

    @field_validator("genre", mode="before")
    @classmethod
    def any_genre_is_unset(cls, value):
        value = _blank_to_none(value)
        if value == ANY_GENRE:
            return None
        return value

    def echo(self) -> dict:
        """Criteria keyed by form field name, for re-rendering the form."""
        values = self.model_dump(by_alias=True)
        if values["genre"] is None:
            values["genre"] = ANY_GENRE
        return values


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_movie_query(owner_id: int, criteria: MovieFilter | None = None) -> Select:
    """
    Build the select statement for a user's movies.

    The statement is always restricted to ``owner_id`` and ordered
    newest first. Every criterion that is set narrows the result; unset
    criteria impose nothing. No I/O happens here.

    Args:
        owner_id (int): Identifier of the owning user.
        criteria (MovieFilter | None): Optional filter criteria.

    Returns:
        Select: Statement ready to be executed by a session.
    """
    stmt = select(Movie).where(Movie.owner_id == owner_id)

    if criteria is not None:
        if criteria.name:
            stmt = stmt.where(
                Movie.name.ilike(f"%{_escape_like(criteria.name)}%", escape="\\")
            )
        if criteria.genre:
            stmt = stmt.where(Movie.genre_links.any(MovieGenre.genre == criteria.genre))
        if criteria.min_year is not None:
            stmt = stmt.where(Movie.year >= criteria.min_year)
        if criteria.max_year is not None:
            stmt = stmt.where(Movie.year <= criteria.max_year)
        if criteria.min_rating is not None:
            stmt = stmt.where(Movie.rating >= criteria.min_rating)
        if criteria.max_rating is not None:
            stmt = stmt.where(Movie.rating <= criteria.max_rating)

    return stmt.order_by(Movie.created_at.desc(), Movie.id.desc())
