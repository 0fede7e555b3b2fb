"""Application error taxonomy.

Route handlers turn these into re-rendered pages or redirects; the
exception handlers registered in ``main.py`` cover the ones that
propagate out of a route.
"""


class AppError(Exception):
    """Base class for errors raised by the application layer."""

    message = "Something went wrong"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(AppError):
    """User-correctable input errors, keyed by form field."""

    message = "Please correct the highlighted fields"

    def __init__(
        self,
        errors: list[dict[str, str]],
        message: str | None = None,
        form_data: dict | None = None,
    ):
        super().__init__(message)
        self.errors = errors
        self.form_data = form_data or {}

    @classmethod
    def from_pydantic(cls, exc, form_data: dict | None = None):
        """
        Build a ValidationError from a pydantic ``ValidationError``.

        Field names are reported under their form aliases.

        Args:
            exc: Pydantic validation error.
            form_data (dict | None): Submitted values to echo back.

        Returns:
            ValidationError: Error with one ``{field, msg}`` item per problem.
        """
        errors = []
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else "__all__"
            msg = err["msg"]
            if msg.startswith("Value error, "):
                msg = msg[len("Value error, ") :]
            errors.append({"field": field, "msg": msg})
        return cls(errors, form_data=form_data)


class DuplicateEmail(AppError):
    message = "User with this email already exists"


class InvalidCredentials(AppError):
    message = "Email or password is incorrect"


class AuthenticationRequired(AppError):
    message = "Please log in to view that resource"


class NotFound(AppError):
    message = "Movie not found"


class Forbidden(AppError):
    message = "You are not authorized to perform this action"


class StoreUnavailable(AppError):
    message = "The service is temporarily unavailable"
