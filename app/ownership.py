"""Ownership checks for routes that target a single movie."""

import structlog
from fastapi import Depends
from sqlalchemy.orm import Session

from . import crud
from .auth import get_current_user
from .database import get_db
from .errors import Forbidden, NotFound
from .models import Movie, User

logger = structlog.get_logger()


def authorize(db: Session, user: User, movie_id: int) -> Movie:
    """
    Load a movie and confirm the user owns it.

    Args:
        db (Session): Database session.
        user (User): Acting user.
        movie_id (int): Movie identifier.

    Raises:
        NotFound: If no movie has this id.
        Forbidden: If the movie belongs to another user.

    Returns:
        Movie: The loaded movie.
    """
    movie = crud.get_movie(db, movie_id)
    if movie is None:
        raise NotFound()
    if movie.owner_id != user.id:
        logger.warning("movies.forbidden", movie_id=movie_id, user_id=user.id)
        raise Forbidden()
    return movie


def get_owned_movie(
    movie_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Movie:
    """Dependency returning the path's movie after the ownership check."""
    return authorize(db, current_user, movie_id)
