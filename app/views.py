"""Response helpers for the presentation layer.

Pages are returned as JSON payloads naming the view to render, so the
templates live entirely outside this service. Redirects use ``303 See
Other`` and carry ``success``/``error`` indicators in the query string.
"""

from urllib.parse import urlencode

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse


def render(
    view: str, title: str, status_code: int = status.HTTP_200_OK, **context
) -> JSONResponse:
    """
    Build a page payload.

    Args:
        view (str): Name of the view the presentation layer should render.
        title (str): Page title.
        status_code (int): HTTP status of the response.
        **context: View data; pydantic models and datetimes are encoded.

    Returns:
        JSONResponse: Page payload.
    """
    payload = {"view": view, "title": title, **context}
    return JSONResponse(jsonable_encoder(payload), status_code=status_code)


def redirect(
    url: str, success: str | None = None, error: str | None = None
) -> RedirectResponse:
    """Redirect with an optional notification indicator."""
    params = {
        key: value
        for key, value in (("success", success), ("error", error))
        if value
    }
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def notices(request: Request) -> dict:
    """Notification indicators passed along by a previous redirect."""
    return {
        "success": request.query_params.get("success"),
        "error": request.query_params.get("error"),
    }


async def read_form(
    request: Request, fields: tuple[str, ...], multi: tuple[str, ...] = ()
) -> dict:
    """
    Read selected fields of a submitted form.

    Args:
        request (Request): Incoming request.
        fields (tuple): Single-valued field names.
        multi (tuple): Field names that may repeat (checkbox groups).

    Returns:
        dict: Field values; missing single fields map to ``None``.
    """
    form = await request.form()
    data = {name: form.get(name) for name in fields}
    for name in multi:
        data[name] = form.getlist(name)
    return data
