"""Session tokens and their resolution to users.

A session token is an opaque random string. The token is the key of a
small JSON entry in the session store that holds the user id; the
browser receives the token inside a signed cookie. The store can be a
Redis client or the in-memory store below, anything with async
``get``/``set``/``delete``.
"""

import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import redis.asyncio as redis
import structlog
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from . import crud
from .core import Settings
from .models import User

logger = structlog.get_logger()

SESSION_KEY_PREFIX = "session:"


@dataclass
class SessionData:
    """Serializable session entry stored under the session token."""

    user_id: int

    def to_json(self) -> str:
        """
        Serialize session data to JSON string.

        Returns:
            str: JSON representation of the session.
        """
        return json.dumps(self.__dict__)

    @classmethod
    def from_json(cls, raw: str) -> "SessionData":
        """
        Deserialize session data from JSON string.

        Args:
            raw (str): JSON string with session data.

        Returns:
            SessionData: Restored session entry.
        """
        data: dict[str, Any] = json.loads(raw)
        return cls(user_id=int(data["user_id"]))


class MemorySessionStore:
    """Process-local session store with per-key expiry.

    Expired entries are dropped when read and swept on every write, so
    sessions that are never logged out do not accumulate.
    """

    def __init__(self, clock=time.monotonic):
        self.store: dict[str, tuple[str, float | None]] = {}
        self.clock = clock

    async def get(self, key: str) -> str | None:
        """
        Retrieve a value unless it has expired.

        Args:
            key (str): Store key.

        Returns:
            str | None: Stored value if present.
        """
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self.clock():
            self.store.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ex: int | None = None):
        """
        Store a value.

        Args:
            key (str): Store key.
            value (str): Value to store.
            ex (int | None): Expiration time in seconds.
        """
        now = self.clock()
        self._sweep(now)
        self.store[key] = (value, now + ex if ex else None)

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self.store.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self.store[key]

    async def delete(self, key: str) -> int:
        """Remove a key; returns the number of removed keys like Redis."""
        return 1 if self.store.pop(key, None) is not None else 0

    async def close(self):
        self.store.clear()


async def create_session_store(settings: Settings):
    """
    Return a Redis client or an in-memory session store.

    A configured but unreachable Redis falls back to memory so the
    application can still start.

    Args:
        settings (Settings): Application settings.

    Returns:
        Redis | MemorySessionStore: Session store backend.
    """
    if settings.SESSION_BACKEND != "redis":
        return MemorySessionStore()
    client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
        socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
    )
    try:
        await client.ping()
    except (redis.RedisError, OSError) as exc:
        logger.warning("sessions.redis_unavailable", error=str(exc))
        await client.aclose()
        return MemorySessionStore()
    logger.info("sessions.redis_connected")
    return client


class SessionResolver:
    """
    Map session tokens to users.

    Args:
        store: Session store backend.
        settings (Settings): Application settings.
    """

    def __init__(self, store, settings: Settings):
        self.store = store
        self.settings = settings

    @property
    def ttl_seconds(self) -> int:
        return self.settings.SESSION_EXPIRE_MINUTES * 60

    async def establish(self, user_id: int, token: str | None = None) -> str:
        """
        Store the user reference for a session.

        Args:
            user_id (int): Authenticated user identifier.
            token (str | None): Existing token to overwrite; a new one is
                generated when omitted.

        Returns:
            str: The session token.
        """
        token = token or secrets.token_urlsafe(32)
        await self.store.set(
            SESSION_KEY_PREFIX + token,
            SessionData(user_id=user_id).to_json(),
            ex=self.ttl_seconds,
        )
        return token

    async def resolve(self, db: Session, token: str | None) -> User | None:
        """
        Load the user behind a session token.

        Unknown tokens, unreadable entries and users that no longer
        exist all resolve to ``None``.

        Args:
            db (Session): Database session.
            token (str | None): Session token.

        Returns:
            User | None: The session's user.
        """
        if not token:
            return None
        raw = await self.store.get(SESSION_KEY_PREFIX + token)
        if not raw:
            return None
        try:
            data = SessionData.from_json(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("sessions.corrupt_entry")
            return None
        return crud.get_user_by_id(db, data.user_id)

    async def terminate(self, token: str | None) -> None:
        """Invalidate a session. Unknown or empty tokens are ignored."""
        if token:
            await self.store.delete(SESSION_KEY_PREFIX + token)

    async def close(self) -> None:
        close = getattr(self.store, "aclose", None) or getattr(self.store, "close")
        await close()

    def sign(self, token: str) -> str:
        """
        Wrap a session token into a signed cookie value.

        Args:
            token (str): Session token.

        Returns:
            str: JWT carrying the token in its ``sid`` claim.
        """
        expire = datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)
        return jwt.encode(
            {"sid": token, "exp": expire},
            self.settings.SECRET_KEY,
            algorithm=self.settings.ALGORITHM,
        )

    def unsign(self, cookie: str | None) -> str | None:
        """
        Extract the session token from a cookie value.

        Args:
            cookie (str | None): Raw cookie value.

        Returns:
            str | None: Session token, or ``None`` for a missing, expired
            or tampered cookie.
        """
        if not cookie:
            return None
        try:
            payload = jwt.decode(
                cookie, self.settings.SECRET_KEY, algorithms=[self.settings.ALGORITHM]
            )
        except JWTError:
            return None
        sid = payload.get("sid")
        return sid if isinstance(sid, str) else None
