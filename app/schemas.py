"""Pydantic schemas for forms and rendered data.

``MovieIn`` is the single validation rule set shared by the add and
edit forms, so both paths accept exactly the same values.
"""

from datetime import datetime
from typing import Optional

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError


GENRES = (
    "Action",
    "Comedy",
    "Drama",
    "Horror",
    "Sci-Fi",
    "Romance",
    "Thriller",
    "Fantasy",
)
MIN_YEAR = 1900
MAX_YEAR = 2025
MIN_RATING = 1.0
MAX_RATING = 10.0
MIN_DESCRIPTION_LENGTH = 10
MIN_PASSWORD_LENGTH = 6

_http_url = TypeAdapter(HttpUrl)


def _strip(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return value


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


class MovieIn(BaseModel):
    """Fields accepted when creating or editing a movie."""

    name: str
    description: str
    year: int
    genres: list[str]
    rating: float
    cover_image: Optional[str] = Field(default=None, alias="coverImage")

    class Config:
        populate_by_name = True

    @field_validator("name", mode="before")
    @classmethod
    def name_required(cls, value):
        value = _strip(value)
        if not value:
            raise ValueError("Movie name is required")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def description_length(cls, value):
        value = _strip(value)
        if not isinstance(value, str) or len(value) < MIN_DESCRIPTION_LENGTH:
            raise ValueError(
                f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters"
            )
        return value

    @field_validator("year", mode="before")
    @classmethod
    def year_in_range(cls, value):
        message = f"Please enter a valid year between {MIN_YEAR} and {MAX_YEAR}"
        try:
            year = int(str(_strip(value)))
        except (TypeError, ValueError):
            raise ValueError(message)
        if not MIN_YEAR <= year <= MAX_YEAR:
            raise ValueError(message)
        return year

    @field_validator("genres", mode="before")
    @classmethod
    def genres_known(cls, value):
        selected = [_strip(item) for item in _as_list(value)]
        selected = [item for item in selected if item]
        if not selected:
            raise ValueError("Please select at least one genre")
        if any(item not in GENRES for item in selected):
            raise ValueError("Please select valid genres from the available options")
        return list(dict.fromkeys(selected))

    @field_validator("rating", mode="before")
    @classmethod
    def rating_in_range(cls, value):
        message = (
            f"Please enter a rating between {MIN_RATING:g} and {MAX_RATING:g}"
        )
        try:
            rating = float(str(_strip(value)))
        except (TypeError, ValueError):
            raise ValueError(message)
        # NaN fails both comparisons
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValueError(message)
        return rating

    @field_validator("cover_image", mode="before")
    @classmethod
    def cover_image_url(cls, value):
        value = _strip(value)
        if not value:
            return None
        # HttpUrl validates; the submitted string is what gets stored
        try:
            _http_url.validate_python(value)
        except PydanticValidationError:
            raise ValueError("Please enter a valid image URL")
        return value


class MovieOut(BaseModel):
    """Movie data handed to the presentation layer."""

    id: int
    name: str
    description: str
    year: int
    genres: list[str]
    rating: float
    cover_image: str
    owner_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RegisterForm(BaseModel):
    """Payload of the registration form."""

    name: str
    email: EmailStr
    password: str
    confirm_password: str = Field(alias="confirmPassword")

    class Config:
        populate_by_name = True

    @field_validator("name", mode="before")
    @classmethod
    def name_required(cls, value):
        value = _strip(value)
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("email", mode="before")
    @classmethod
    def email_normalized(cls, value):
        return normalize_email(value)

    @field_validator("password")
    @classmethod
    def password_length(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise ValueError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )
        return value

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords do not match")
        return value


class LoginForm(BaseModel):
    """Payload of the login form."""

    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def email_normalized(cls, value):
        return normalize_email(value)


class UserOut(BaseModel):
    """Public view of a user; the password digest is never included."""

    id: int
    name: str
    email: str
    created_at: datetime

    class Config:
        from_attributes = True


def normalize_email(value):
    """Trim and lower-case an email address for storage and lookup."""
    value = _strip(value)
    if isinstance(value, str):
        return value.lower()
    return value
