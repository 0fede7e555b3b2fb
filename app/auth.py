"""Authentication related routes and helpers."""

from functools import lru_cache

import structlog
from fastapi import APIRouter, Depends, Request, status
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from . import crud, schemas, views
from .context import get_app_settings, get_context
from .core import Settings
from .database import get_db
from .errors import (
    AuthenticationRequired,
    DuplicateEmail,
    InvalidCredentials,
    ValidationError,
)
from .models import User
from .sessions import SessionResolver

logger = structlog.get_logger()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)
router = APIRouter(tags=["auth"])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Compare a plain password with its hashed value."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate a password hash using the configured context."""
    return pwd_context.hash(password)


@lru_cache()
def _dummy_hash() -> str:
    return get_password_hash("not-a-real-password")


def register(db: Session, name: str, email: str, raw_password: str) -> int:
    """
    Create a user account.

    Args:
        db (Session): Database session.
        name (str): Display name.
        email (str): Email address; stored trimmed and lower-cased.
        raw_password (str): Plain password, only its digest is stored.

    Raises:
        DuplicateEmail: If the normalized email is already registered.

    Returns:
        int: Identifier of the new user.
    """
    user = crud.create_user(db, name, email, get_password_hash(raw_password))
    logger.info("auth.registered", user_id=user.id)
    return user.id


def authenticate(db: Session, email: str, raw_password: str) -> int:
    """
    Check an email/password pair.

    Unknown emails and wrong passwords raise the same error, and an
    unknown email still pays for one hash verification.

    Args:
        db (Session): Database session.
        email (str): Email address.
        raw_password (str): Plain password.

    Raises:
        InvalidCredentials: If the pair does not match a user.

    Returns:
        int: Identifier of the authenticated user.
    """
    user = crud.get_user_by_email(db, email)
    if user is None:
        verify_password(raw_password, _dummy_hash())
        raise InvalidCredentials()
    if not verify_password(raw_password, user.hashed_password):
        raise InvalidCredentials()
    return user.id


def get_session_resolver(request: Request) -> SessionResolver:
    return get_context(request).sessions


def get_session_token(
    request: Request,
    sessions: SessionResolver = Depends(get_session_resolver),
    settings: Settings = Depends(get_app_settings),
) -> str | None:
    """Session token carried by the request's signed cookie, if any."""
    return sessions.unsign(request.cookies.get(settings.SESSION_COOKIE_NAME))


async def get_optional_user(
    token: str | None = Depends(get_session_token),
    sessions: SessionResolver = Depends(get_session_resolver),
    db: Session = Depends(get_db),
) -> User | None:
    """Dependency that returns the session's user or ``None``."""
    return await sessions.resolve(db, token)


async def get_current_user(user: User | None = Depends(get_optional_user)) -> User:
    """Dependency that requires a logged-in user."""
    if user is None:
        raise AuthenticationRequired()
    return user


@router.get("/register")
def register_form(request: Request):
    """Show the registration form."""
    return views.render("register", title="Register", **views.notices(request))


@router.post("/register")
async def register_submit(request: Request, db: Session = Depends(get_db)):
    """Register a new user and send them to the login page."""

    data = await views.read_form(
        request, ("name", "email", "password", "confirmPassword")
    )
    echo = {"name": data["name"] or "", "email": data["email"] or ""}
    try:
        form = schemas.RegisterForm(**data)
    except PydanticValidationError as exc:
        errors = ValidationError.from_pydantic(exc).errors
        return views.render(
            "register",
            title="Register",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=errors,
            **echo,
        )
    try:
        register(db, form.name, form.email, form.password)
    except DuplicateEmail as exc:
        return views.render(
            "register",
            title="Register",
            status_code=status.HTTP_409_CONFLICT,
            errors=[{"field": "email", "msg": exc.message}],
            **echo,
        )
    return views.redirect("/login", success="registered")


@router.get("/login")
def login_form(request: Request):
    """Show the login form."""
    return views.render("login", title="Login", **views.notices(request))


@router.post("/login")
async def login_submit(
    request: Request,
    db: Session = Depends(get_db),
    sessions: SessionResolver = Depends(get_session_resolver),
    previous_token: str | None = Depends(get_session_token),
    settings: Settings = Depends(get_app_settings),
):
    """Authenticate the user and start a new session."""

    data = await views.read_form(request, ("email", "password"))
    try:
        form = schemas.LoginForm(**data)
        user_id = authenticate(db, form.email, form.password)
    except (PydanticValidationError, InvalidCredentials):
        logger.info("auth.login_failed")
        return views.render(
            "login",
            title="Login",
            status_code=status.HTTP_401_UNAUTHORIZED,
            errors=[{"field": "__all__", "msg": InvalidCredentials.message}],
            email=data["email"] or "",
        )

    await sessions.terminate(previous_token)
    token = await sessions.establish(user_id)
    logger.info("auth.logged_in", user_id=user_id)

    response = views.redirect("/records")
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        sessions.sign(token),
        max_age=sessions.ttl_seconds,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
    )
    return response


@router.get("/logout")
async def logout(
    current_user: User = Depends(get_current_user),
    token: str | None = Depends(get_session_token),
    sessions: SessionResolver = Depends(get_session_resolver),
    settings: Settings = Depends(get_app_settings),
):
    """End the current session."""

    await sessions.terminate(token)
    logger.info("auth.logged_out", user_id=current_user.id)
    response = views.redirect("/login", success="logged_out")
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return response
