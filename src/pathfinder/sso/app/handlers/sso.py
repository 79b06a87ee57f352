"""
EVE Online SSO Handlers

This module implements the web request handlers for logging in with the EVE Online SSO and for
the character data that a logged in session can read.

Login Flow:
1. The login or map view links to /sso/requestAuthorization, optionally with a characterId
2. The user agent is redirected to the SSO authorize endpoint
3. The SSO redirects back to /sso/callbackAuthorization with a code and the state token
4. The code is exchanged, the character verified, stored and logged in
5. The user agent is redirected to the map, or back to the login view with an error message

The handlers in this module provide the following endpoints:
- GET /sso/requestAuthorization - Start a login
- GET /sso/callbackAuthorization - SSO redirect target
- POST /sso/logout - End the session
- GET /login, GET /map - Session status and the pending error message
- GET /api/character/location - Location of the logged in character
- POST /api/character/refresh - Refresh the CREST tokens of the logged in character
"""

import logging
from typing import Optional
from aiohttp import web
import sentry_sdk

from pathfinder.sso.app.config import (
    DatabaseSessionMakerAppKey,
    RedisClientAppKey,
    SessionAppKey,
    SettingsAppKey,
    TelegrafStatsdClientAppKey,
)
from pathfinder.sso.app.session import get_session_context
from pathfinder.sso.ccp.errors import ERROR_UNEXPECTED
from pathfinder.sso.ccp.login import (
    callback_authorization,
    get_active_location,
    refresh_character_tokens,
    request_authorization,
)
from pathfinder.sso.ccp.web import CrestWebClient
from pathfinder.sso.model.store import CharacterStore

logger = logging.getLogger(__name__)


def crest_web_client(request: web.Request) -> CrestWebClient:
    return CrestWebClient(
        request.app[SessionAppKey], request.app[TelegrafStatsdClientAppKey]
    )


def character_store(request: web.Request) -> CharacterStore:
    return CharacterStore(request.app[DatabaseSessionMakerAppKey])


def parse_character_id(value: Optional[str]) -> Optional[int]:
    if value is None or len(value.strip()) == 0:
        return None
    try:
        return int(value)
    except ValueError:
        return None


async def handle_request_authorization(request: web.Request):
    """
    Handle GET /sso/requestAuthorization.

    Query Parameters:
        characterId: Optional restriction, -1 to add a character to the active session or the id
            of the character that must log in

    Raises:
        HTTPFound: To the SSO authorize endpoint, or to the login view on a configuration error
    """
    settings = request.app[SettingsAppKey]
    session = get_session_context(request)

    character_id = parse_character_id(request.query.get("characterId", None))
    destination = await request_authorization(settings, session, character_id)
    raise web.HTTPFound(destination)


async def handle_callback_authorization(request: web.Request):
    """
    Handle the SSO redirect back to the service.

    Query Parameters:
        code: Authorization code to exchange for tokens
        state: State token issued by handle_request_authorization

    Raises:
        HTTPFound: To the map view on success, otherwise to the map or login view
    """
    code: Optional[str] = request.query.get("code", None)
    state: Optional[str] = request.query.get("state", None)

    settings = request.app[SettingsAppKey]
    session = get_session_context(request)

    try:
        destination = await callback_authorization(
            settings,
            crest_web_client(request),
            request.app[RedisClientAppKey],
            character_store(request),
            session,
            code,
            state,
        )
    except Exception as e:
        logger.exception("callback error")
        sentry_sdk.capture_exception(e)
        await session.set_error(ERROR_UNEXPECTED)
        destination = settings.login_route

    raise web.HTTPFound(destination)


async def handle_logout(request: web.Request):
    settings = request.app[SettingsAppKey]
    await get_session_context(request).clear()
    raise web.HTTPFound(settings.login_route)


async def handle_login_view(request: web.Request):
    session = get_session_context(request)
    return web.json_response(
        {
            "error": await session.pop_error(),
            "character_id": await session.get_character_id(),
        }
    )


async def handle_map_view(request: web.Request):
    settings = request.app[SettingsAppKey]
    session = get_session_context(request)

    character_id = await session.get_character_id()
    error = await session.pop_error()
    if character_id is None:
        if error is not None:
            await session.set_error(error)
        raise web.HTTPFound(settings.login_route)

    return web.json_response(
        {
            "error": error,
            "character_id": character_id,
            "user_guid": await session.get_user_guid(),
        }
    )


async def handle_character_location(request: web.Request):
    settings = request.app[SettingsAppKey]
    session = get_session_context(request)

    character_id = await session.get_character_id()
    if character_id is None:
        return web.json_response({"error": "Not Authorized"}, status=401)

    location = await get_active_location(
        settings,
        crest_web_client(request),
        request.app[RedisClientAppKey],
        character_store(request),
        character_id,
    )
    if location is None:
        return web.json_response({"error": "Character not found"}, status=404)

    return web.json_response(location.model_dump())


async def handle_character_refresh(request: web.Request):
    settings = request.app[SettingsAppKey]
    session = get_session_context(request)

    character_id = await session.get_character_id()
    if character_id is None:
        return web.json_response({"error": "Not Authorized"}, status=401)

    access_data = await refresh_character_tokens(
        settings, crest_web_client(request), character_store(request), character_id
    )
    if access_data is None:
        return web.json_response({"refreshed": False}, status=502)

    return web.json_response({"refreshed": True})
