"""Movie management routes.

All routes require a logged-in user. Routes addressing a single movie
go through the ownership check before touching it.
"""

import structlog
from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from . import crud, schemas, views
from .auth import get_current_user
from .context import get_app_settings
from .core import Settings
from .database import get_db
from .errors import Forbidden, NotFound, ValidationError
from .filters import MovieFilter
from .models import Movie, User
from .ownership import authorize, get_owned_movie

logger = structlog.get_logger()

router = APIRouter(prefix="/records", tags=["movies"])

MOVIE_FIELDS = ("name", "description", "year", "rating", "coverImage")
FILTER_FIELDS = ("name", "genre", "minYear", "maxYear", "minRating", "maxRating")


def _movies_out(movies: list[Movie]) -> list[schemas.MovieOut]:
    return [schemas.MovieOut.model_validate(movie) for movie in movies]


def _form_values(movie: Movie) -> dict:
    return {
        "name": movie.name,
        "description": movie.description,
        "year": movie.year,
        "genres": movie.genres,
        "rating": movie.rating,
        "coverImage": movie.cover_image,
    }


async def _read_movie_form(request: Request) -> schemas.MovieIn:
    """
    Read and validate the add/edit form.

    Raises:
        ValidationError: With the submitted values in ``form_data``.
    """
    data = await views.read_form(request, MOVIE_FIELDS, multi=("genres",))
    try:
        return schemas.MovieIn(**data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc, form_data=data) from exc


@router.get("")
def list_movies(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    List the current user's movies, newest first.

    Args:
        request (Request): Incoming request.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        JSONResponse: ``movies`` page.
    """
    movies = crud.list_movies(db, current_user)
    return views.render(
        "movies",
        title="My Movies",
        user=schemas.UserOut.model_validate(current_user),
        movies=_movies_out(movies),
        **views.notices(request),
    )


@router.get("/filter")
def filter_form(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Show the filter form above the unfiltered list."""
    movies = crud.list_movies(db, current_user)
    return views.render(
        "filterMovies",
        title="Filter Movies",
        movies=_movies_out(movies),
        filtered=False,
        filters=MovieFilter().echo(),
        availableGenres=schemas.GENRES,
    )


@router.post("/filter")
async def filter_submit(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Apply the submitted criteria to the current user's movies.

    Args:
        request (Request): Request carrying the filter form.
        db (Session): Database session.
        current_user (User): Authenticated user.

    Returns:
        JSONResponse: ``filterMovies`` page with results and echoed criteria.
    """
    data = await views.read_form(request, FILTER_FIELDS)
    try:
        criteria = MovieFilter(**data)
    except PydanticValidationError as exc:
        return views.render(
            "filterMovies",
            title="Filter Movies",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=ValidationError.from_pydantic(exc).errors,
            movies=_movies_out(crud.list_movies(db, current_user)),
            filtered=False,
            filters=data,
            availableGenres=schemas.GENRES,
        )
    movies = crud.list_movies(db, current_user, criteria)
    return views.render(
        "filterMovies",
        title="Filtered Movies",
        movies=_movies_out(movies),
        filtered=True,
        filters=criteria.echo(),
        availableGenres=schemas.GENRES,
    )


@router.get("/add")
def add_form(current_user: User = Depends(get_current_user)):
    """Show the creation form."""
    return views.render(
        "addMovie", title="Add New Movie", availableGenres=schemas.GENRES
    )


@router.post("/add")
async def add_submit(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
):
    """Create a movie owned by the current user."""
    try:
        movie_in = await _read_movie_form(request)
    except ValidationError as exc:
        return views.render(
            "addMovie",
            title="Add New Movie",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=exc.errors,
            formData=exc.form_data,
            availableGenres=schemas.GENRES,
        )
    movie = crud.create_movie(
        db, movie_in, current_user, settings.DEFAULT_COVER_IMAGE
    )
    logger.info("movies.created", movie_id=movie.id, user_id=current_user.id)
    return views.redirect("/records", success="added")


@router.get("/edit/{movie_id}")
def edit_form(movie: Movie = Depends(get_owned_movie)):
    """Show the edit form with the movie's current values."""
    return views.render(
        "editMovie",
        title="Edit Movie",
        movie=schemas.MovieOut.model_validate(movie),
        formData=_form_values(movie),
        availableGenres=schemas.GENRES,
    )


@router.post("/edit/{movie_id}")
async def edit_submit(
    request: Request,
    movie: Movie = Depends(get_owned_movie),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Replace a movie's fields after the ownership check."""
    try:
        movie_in = await _read_movie_form(request)
    except ValidationError as exc:
        return views.render(
            "editMovie",
            title="Edit Movie",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=exc.errors,
            movie=schemas.MovieOut.model_validate(movie),
            formData=exc.form_data,
            availableGenres=schemas.GENRES,
        )
    crud.update_movie(db, movie, movie_in, settings.DEFAULT_COVER_IMAGE)
    logger.info("movies.updated", movie_id=movie.id, user_id=movie.owner_id)
    return views.redirect("/records", success="updated")


@router.post("/delete/{movie_id}")
def delete_submit(
    movie: Movie = Depends(get_owned_movie),
    db: Session = Depends(get_db),
):
    """Delete a movie after the ownership check."""
    movie_id, owner_id = movie.id, movie.owner_id
    crud.delete_movie(db, movie)
    logger.info("movies.deleted", movie_id=movie_id, user_id=owner_id)
    return views.redirect("/records", success="deleted")


@router.get("/{movie_id}")
def movie_detail(
    movie_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Show one of the current user's movies.

    Movies of other users are reported as missing.

    Raises:
        NotFound: If the movie does not exist or is not the user's.
    """
    try:
        movie = authorize(db, current_user, movie_id)
    except Forbidden as exc:
        raise NotFound() from exc
    return views.render(
        "movieDetails",
        title="Movie Details",
        movie=schemas.MovieOut.model_validate(movie),
    )
