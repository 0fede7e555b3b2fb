# tests/conftest.py
import os
import sys
import asyncio
import json
from urllib.parse import urlencode

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

sys.path.append(os.path.abspath("."))

from app.context import create_context
from app.core import Settings
from app.sessions import MemorySessionStore
from main import create_app


# DB (SQLite in-memory for tests, fresh per test)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture()
def settings():
    return Settings(
        DATABASE_URL=SQLALCHEMY_DATABASE_URL,
        SECRET_KEY="test-secret",
        SESSION_BACKEND="memory",
        CREATE_TABLES=True,
        LOG_LEVEL="WARNING",
    )


# One event loop for the WHOLE pytest session
@pytest.fixture(scope="session")
def session_loop():
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture()
def engine():
    return create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


# Started context: tables created, memory session store attached
@pytest.fixture()
def context(settings, engine, session_loop):
    ctx = create_context(settings, engine=engine)
    session_loop.run_until_complete(ctx.startup(session_store=MemorySessionStore()))
    yield ctx
    session_loop.run_until_complete(ctx.shutdown())


@pytest.fixture()
def db_session(context):
    session = context.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def run(session_loop):
    """Run a coroutine on the shared session loop."""

    def _run(coro):
        asyncio.set_event_loop(session_loop)
        return session_loop.run_until_complete(coro)

    return _run


# Simple ASGI response/client
class SimpleResponse:
    def __init__(
        self, status_code: int, body: bytes, headers: list[tuple[bytes, bytes]]
    ):
        self.status_code = status_code
        self._body = body
        self.raw_headers = [(k.decode(), v.decode()) for k, v in headers]
        self.headers = {k: v for k, v in self.raw_headers}

    def json(self):
        return json.loads(self._body.decode())

    @property
    def location(self) -> str | None:
        return self.headers.get("location")

    @property
    def set_cookies(self) -> list[str]:
        return [v for k, v in self.raw_headers if k == "set-cookie"]


class SimpleClient:
    """
    Important:
    - uses ONE shared session loop (passed from fixture)
    - does NOT call asyncio.run()
    - does NOT close the loop
    - keeps cookies between requests, does NOT follow redirects
    """

    def __init__(self, app, loop):
        self.app = app
        self.loop = loop
        self.cookies: dict[str, str] = {}

    def close(self):
        # do not close the loop here (session fixture closes it)
        pass

    def _store_cookies(self, response: SimpleResponse):
        for header in response.set_cookies:
            pair = header.split(";", 1)[0]
            name, _, value = pair.partition("=")
            value = value.strip('"')
            if not value or "max-age=0" in header.lower():
                self.cookies.pop(name.strip(), None)
            else:
                self.cookies[name.strip()] = value

    def request(self, method: str, path: str, data=None, headers=None):
        headers = dict(headers or {})
        body_bytes = b""

        if data is not None:
            if isinstance(data, dict):
                body_bytes = urlencode(data, doseq=True).encode()
            elif isinstance(data, bytes):
                body_bytes = data
            else:
                body_bytes = str(data).encode()
            headers.setdefault("content-type", "application/x-www-form-urlencoded")

        if self.cookies:
            headers.setdefault(
                "cookie", "; ".join(f"{k}={v}" for k, v in self.cookies.items())
            )

        path, _, query = path.partition("?")
        raw_headers = [(k.lower().encode(), v.encode()) for k, v in headers.items()]
        scope = {
            "type": "http",
            "http_version": "1.1",
            "method": method.upper(),
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "headers": raw_headers,
            "query_string": query.encode(),
            "client": ("testclient", 5000),
            "server": ("testserver", 80),
        }

        async def receive():
            nonlocal body_bytes
            chunk, body_bytes = body_bytes, b""
            return {"type": "http.request", "body": chunk, "more_body": False}

        response_body = bytearray()
        response_status = 500
        response_headers: list[tuple[bytes, bytes]] = []

        async def send(message):
            nonlocal response_status, response_headers
            if message["type"] == "http.response.start":
                response_status = message["status"]
                response_headers = message.get("headers", [])
            elif message["type"] == "http.response.body":
                response_body.extend(message.get("body", b""))

        # ensure the loop is the current one
        asyncio.set_event_loop(self.loop)
        self.loop.run_until_complete(self.app(scope, receive, send))
        response = SimpleResponse(
            response_status, bytes(response_body), response_headers
        )
        self._store_cookies(response)
        return response

    def get(self, path: str, headers=None):
        return self.request("GET", path, headers=headers)

    def post(self, path: str, data=None, headers=None):
        return self.request("POST", path, data=data, headers=headers)


@pytest.fixture()
def app(context):
    return create_app(context=context)


@pytest.fixture()
def client(app, session_loop):
    c = SimpleClient(app, loop=session_loop)
    try:
        yield c
    finally:
        c.close()


@pytest.fixture()
def other_client(app, session_loop):
    """Second browser with its own cookie jar."""
    c = SimpleClient(app, loop=session_loop)
    try:
        yield c
    finally:
        c.close()
