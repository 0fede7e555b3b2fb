"""CRUD operations for users and movies.

This module contains database interaction logic for user and movie
entities, isolated from FastAPI route handlers. Every mutating function
commits once or rolls back, so a failed request never leaves a
half-written row behind.
"""

from contextlib import contextmanager

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import ObjectDeletedError, StaleDataError

from . import models, schemas
from .errors import DuplicateEmail, NotFound, StoreUnavailable
from .filters import MovieFilter, build_movie_query

logger = structlog.get_logger()


@contextmanager
def store_errors(db: Session):
    """
    Translate storage failures into application errors.

    The session is rolled back before the error is re-raised.

    Raises:
        NotFound: If the targeted row vanished before the write.
        StoreUnavailable: For any other SQLAlchemy failure.
    """
    try:
        yield
    except (StaleDataError, ObjectDeletedError) as exc:
        db.rollback()
        raise NotFound() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("store.unavailable", error=str(exc), error_type=type(exc).__name__)
        raise StoreUnavailable() from exc


def create_user(
    db: Session, name: str, email: str, hashed_password: str
) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        name (str): Display name.
        email (str): Email address.
        hashed_password (str): Securely hashed password.

    Raises:
        DuplicateEmail: If a user with the same email already exists.

    Returns:
        User: Newly created user instance.
    """
    email = schemas.normalize_email(email)
    if get_user_by_email(db, email) is not None:
        raise DuplicateEmail()

    user = models.User(name=name, email=email, hashed_password=hashed_password)
    with store_errors(db):
        try:
            db.add(user)
            db.commit()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration for the same email.
            db.rollback()
            raise DuplicateEmail() from exc
        db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by normalized email address.

    Args:
        db (Session): Database session.
        email (str): User email.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    with store_errors(db):
        return db.execute(
            select(models.User).where(
                models.User.email == schemas.normalize_email(email)
            )
        ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    with store_errors(db):
        return db.get(models.User, user_id)


def create_movie(
    db: Session,
    movie_in: schemas.MovieIn,
    user: models.User,
    default_cover_image: str,
) -> models.Movie:
    """
    Create a new movie owned by the given user.

    Args:
        db (Session): Database session.
        movie_in (MovieIn): Validated movie data.
        user (User): Owner of the movie.
        default_cover_image (str): Cover used when none was supplied.

    Returns:
        Movie: Newly created movie.
    """
    movie = models.Movie(
        name=movie_in.name,
        description=movie_in.description,
        year=movie_in.year,
        genres=movie_in.genres,
        rating=movie_in.rating,
        cover_image=movie_in.cover_image or default_cover_image,
        owner_id=user.id,
    )
    with store_errors(db):
        db.add(movie)
        db.commit()
        db.refresh(movie)
    return movie


def get_movie(db: Session, movie_id: int) -> models.Movie | None:
    """
    Retrieve a movie by primary key regardless of owner.

    Ownership is checked by the caller, see ``ownership.authorize``.

    Args:
        db (Session): Database session.
        movie_id (int): Movie identifier.

    Returns:
        Movie | None: Movie if found, otherwise ``None``.
    """
    with store_errors(db):
        return db.get(models.Movie, movie_id)


def list_movies(
    db: Session, user: models.User, criteria: MovieFilter | None = None
) -> list[models.Movie]:
    """
    Retrieve the user's movies, newest first, optionally filtered.

    Args:
        db (Session): Database session.
        user (User): Movie owner.
        criteria (MovieFilter | None): Optional filter criteria.

    Returns:
        list[Movie]: Matching movies.
    """
    stmt = build_movie_query(user.id, criteria)
    with store_errors(db):
        return list(db.scalars(stmt).all())


def update_movie(
    db: Session,
    movie: models.Movie,
    movie_in: schemas.MovieIn,
    default_cover_image: str,
) -> models.Movie:
    """
    Replace the editable fields of a movie.

    The owner is never changed.

    Args:
        db (Session): Database session.
        movie (Movie): Movie instance.
        movie_in (MovieIn): Validated movie data.
        default_cover_image (str): Cover used when none was supplied.

    Raises:
        NotFound: If the movie was deleted concurrently.

    Returns:
        Movie: Updated movie.
    """
    with store_errors(db):
        movie.name = movie_in.name
        movie.description = movie_in.description
        movie.year = movie_in.year
        movie.genres = movie_in.genres
        movie.rating = movie_in.rating
        movie.cover_image = movie_in.cover_image or default_cover_image
        db.add(movie)
        db.commit()
        db.refresh(movie)
    return movie


def delete_movie(db: Session, movie: models.Movie) -> None:
    """
    Delete a movie and its genre tags.

    Args:
        db (Session): Database session.
        movie (Movie): Movie to delete.

    Raises:
        NotFound: If the movie was deleted concurrently.
    """
    with store_errors(db):
        db.execute(
            delete(models.MovieGenre).where(models.MovieGenre.movie_id == movie.id)
        )
        result = db.execute(delete(models.Movie).where(models.Movie.id == movie.id))
        if result.rowcount == 0:
            db.rollback()
            raise NotFound()
        db.commit()
    return None
