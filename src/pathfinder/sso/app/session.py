"""
Server-side sessions.

A session is a redis hash keyed by a random id carried in a cookie. `SessionContext` exposes one
typed accessor per key the service uses, so no handler reads or writes raw session fields:

- `sso_state` / `sso_character_id`: written once when the authorization redirect is issued and
  taken (read and deleted atomically) by the callback
- `sso_error`: the one-shot message shown by the next page load
- `character_id` / `user_guid`: the logged in character and its user
"""

from dataclasses import dataclass
import logging
from typing import Any, Final, Optional
from aiohttp import web
import redis.asyncio as redis
from ulid import ULID

from pathfinder.sso.app.config import (
    SESSION_KEY,
    RedisClientAppKey,
    SettingsAppKey,
)

logger = logging.getLogger(__name__)

FIELD_SSO_STATE = "sso_state"
FIELD_SSO_CHARACTER_ID = "sso_character_id"
FIELD_SSO_ERROR = "sso_error"
FIELD_CHARACTER_ID = "character_id"
FIELD_USER_GUID = "user_guid"


def normalize_redis_string(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode()
    return str(value)


def parse_int(value: Any, default: int = 0) -> int:
    value = normalize_redis_string(value)
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


@dataclass
class AuthorizationState:
    """
    The pending authorization of a session.

    restricted_character_id is -1 when adding a character to an active session, 0 for an
    unrestricted login and the required character id otherwise.
    """

    state: Optional[str] = None
    restricted_character_id: int = 0


class SessionContext:
    def __init__(
        self,
        redis_session: redis.Redis,
        session_id: str,
        ttl: int = 86400,
        is_new: bool = False,
    ) -> None:
        self.redis_session = redis_session
        self.session_id = session_id
        self.ttl = ttl
        self.is_new = is_new

    @staticmethod
    def from_cookie(
        redis_session: redis.Redis, cookie_value: Optional[str], ttl: int = 86400
    ) -> "SessionContext":
        if cookie_value:
            return SessionContext(redis_session, cookie_value, ttl)
        return SessionContext(redis_session, str(ULID()), ttl, is_new=True)

    @property
    def key(self) -> str:
        return SESSION_KEY.format(self.session_id)

    async def _set(self, **fields: Any) -> None:
        async with self.redis_session.pipeline(transaction=True) as redis_pipe:
            redis_pipe.hset(self.key, mapping={k: str(v) for k, v in fields.items()})
            redis_pipe.expire(self.key, self.ttl)
            await redis_pipe.execute()

    async def _get(self, field: str) -> Optional[str]:
        return normalize_redis_string(await self.redis_session.hget(self.key, field))

    async def start_authorization(self, state: str, character_id: Optional[int]) -> None:
        """Store the state token and login restriction of a new authorization request."""
        fields: dict[str, Any] = {FIELD_SSO_STATE: state}
        if character_id is not None:
            fields[FIELD_SSO_CHARACTER_ID] = character_id
        else:
            await self.redis_session.hdel(self.key, FIELD_SSO_CHARACTER_ID)
        await self._set(**fields)

    async def take_authorization(self) -> AuthorizationState:
        """Read and clear the pending authorization in one transaction. Single use."""
        async with self.redis_session.pipeline(transaction=True) as redis_pipe:
            redis_pipe.hmget(self.key, [FIELD_SSO_STATE, FIELD_SSO_CHARACTER_ID])
            redis_pipe.hdel(self.key, FIELD_SSO_STATE, FIELD_SSO_CHARACTER_ID)
            (state, character_id), _ = await redis_pipe.execute()
        return AuthorizationState(
            state=normalize_redis_string(state),
            restricted_character_id=parse_int(character_id),
        )

    async def set_error(self, message: str) -> None:
        await self._set(**{FIELD_SSO_ERROR: message})

    async def pop_error(self) -> Optional[str]:
        async with self.redis_session.pipeline(transaction=True) as redis_pipe:
            redis_pipe.hget(self.key, FIELD_SSO_ERROR)
            redis_pipe.hdel(self.key, FIELD_SSO_ERROR)
            message, _ = await redis_pipe.execute()
        return normalize_redis_string(message)

    async def get_character_id(self) -> Optional[int]:
        character_id = parse_int(await self._get(FIELD_CHARACTER_ID))
        return character_id if character_id > 0 else None

    async def get_user_guid(self) -> Optional[str]:
        return await self._get(FIELD_USER_GUID)

    async def login(self, character_id: int, user_guid: str) -> None:
        await self._set(
            **{FIELD_CHARACTER_ID: character_id, FIELD_USER_GUID: user_guid}
        )

    async def clear(self) -> None:
        await self.redis_session.delete(self.key)


SESSION_CONTEXT: Final = web.RequestKey("pathfinder_session_context", SessionContext)
"""RequestKey for the session context attached by session_middleware"""


def get_session_context(request: web.Request) -> SessionContext:
    return request[SESSION_CONTEXT]


@web.middleware
async def session_middleware(request: web.Request, handler):
    """Attach a SessionContext to the request and issue the cookie for new sessions."""
    settings = request.app[SettingsAppKey]
    session_context = SessionContext.from_cookie(
        request.app[RedisClientAppKey],
        request.cookies.get(settings.session_cookie_name),
        settings.session_ttl,
    )
    request[SESSION_CONTEXT] = session_context

    try:
        response = await handler(request)
    except web.HTTPException as e:
        _set_session_cookie(e, session_context, settings.session_cookie_name)
        raise e
    _set_session_cookie(response, session_context, settings.session_cookie_name)
    return response


def _set_session_cookie(
    response: web.StreamResponse, session_context: SessionContext, cookie_name: str
) -> None:
    if session_context.is_new:
        response.set_cookie(
            cookie_name,
            session_context.session_id,
            max_age=session_context.ttl,
            httponly=True,
            samesite="Lax",
        )
