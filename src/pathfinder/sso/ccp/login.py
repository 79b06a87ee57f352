"""
EVE Online SSO Login Flow

This module drives a login from the authorization redirect to an established session:

1. `request_authorization` stores a CSRF state token (and an optional character restriction) in
   the session and returns the SSO authorize URL
2. `callback_authorization` takes the stored state, exchanges the authorization code, verifies
   the character, fetches and stores its CREST data, checks that it may log in and attaches it to
   a user

Every step that can fail raises an `SsoException`. The first one is caught in
`callback_authorization`, stored in the session as the single message for the next page load, and
decides the redirect: logins started from an active session (restriction != 0) return to the map,
fresh logins return to the login view.
"""

import logging
import secrets
from typing import List, Optional
from urllib.parse import quote, urlencode
import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from pathfinder.sso.app.config import Settings
from pathfinder.sso.app.session import SessionContext
from pathfinder.sso.ccp.crest import get_character_data
from pathfinder.sso.ccp.errors import (
    AuthorizationDenied,
    ConfigurationError,
    IdentityMismatchError,
    PersistenceFailure,
    ProtocolError,
    SsoException,
    StateMismatchError,
    TransportTimeout,
)
from pathfinder.sso.ccp.location import get_character_location_data
from pathfinder.sso.ccp.mapper import CharacterLocation
from pathfinder.sso.ccp.sso import (
    AccessTokenPair,
    authorization_endpoint,
    get_crest_access_data,
    refresh_access_token,
    verify_character_data,
)
from pathfinder.sso.ccp.web import CrestWebClient
from pathfinder.sso.model.character import Character
from pathfinder.sso.model.store import CharacterStore

logger = logging.getLogger(__name__)

UNRESTRICTED = 0


def is_authorized(settings: Settings, character: Character) -> bool:
    """
    Check a character against the login whitelists.

    With no whitelist configured everybody may log in. Otherwise the character must be listed
    itself or belong to a listed corporation or alliance.
    """
    if not (
        settings.authorized_character_ids
        or settings.authorized_corporation_ids
        or settings.authorized_alliance_ids
    ):
        return True

    return (
        character.id in settings.authorized_character_ids
        or (
            character.corporation_id is not None
            and character.corporation_id in settings.authorized_corporation_ids
        )
        or (
            character.alliance_id is not None
            and character.alliance_id in settings.authorized_alliance_ids
        )
    )


def authorization_url(settings: Settings, state: str, scopes: List[str]) -> str:
    url = authorization_endpoint(settings)
    if url is None:
        raise ConfigurationError.sso_url("request_authorization")

    query = urlencode(
        {
            "response_type": "code",
            "redirect_uri": settings.sso_redirect_uri,
            "client_id": settings.sso_ccp_client_id,
            "scope": " ".join(scopes),
            "state": state,
        },
        quote_via=quote,
    )
    return f"{url}?{query}"


async def request_authorization(
    settings: Settings,
    session: SessionContext,
    character_id: Optional[int] = None,
) -> str:
    """
    Start a login and return the URL to redirect the user agent to.

    Args:
        settings: Application settings
        session: Session of the requesting user agent
        character_id: Optional restriction, -1 to add a character to the active session or the
            id of the character that must log in

    Returns:
        str: The SSO authorize URL, or the login route when the client is not configured
    """
    try:
        if not settings.sso_ccp_client_id:
            raise ConfigurationError.client_id_missing()

        state = secrets.token_hex(12)
        url = authorization_url(settings, state, settings.sso_scopes)
    except ConfigurationError as e:
        logger.error("Unable to start authorization: %s", e)
        await session.set_error(str(e))
        return settings.login_route

    await session.start_authorization(state, character_id)
    return url


async def callback_authorization(
    settings: Settings,
    web_client: CrestWebClient,
    redis_session: redis.Redis,
    store: CharacterStore,
    session: SessionContext,
    code: Optional[str],
    state: Optional[str],
) -> str:
    """
    Complete a login from the SSO callback and return the route to redirect to.

    The stored state and restriction are cleared before anything else happens, so a state token
    can be used for one callback only.
    """
    authorization = await session.take_authorization()

    if not code or not state or authorization.state is None or authorization.state != state:
        logger.warning("Rejected SSO callback with invalid state")
        await session.set_error(StateMismatchError.invalid_state().args[0])
        return settings.login_route

    restricted_character_id = authorization.restricted_character_id

    try:
        character = await complete_login(
            settings,
            web_client,
            redis_session,
            store,
            session,
            code,
            restricted_character_id,
        )
    except SsoException as e:
        logger.info("Login failed: %s", e)
        await session.set_error(str(e))
        if restricted_character_id != UNRESTRICTED:
            return settings.map_route
        return settings.login_route

    logger.info("Character %s (%s) logged in", character.name, character.id)
    return settings.map_route


async def complete_login(
    settings: Settings,
    web_client: CrestWebClient,
    redis_session: redis.Redis,
    store: CharacterStore,
    session: SessionContext,
    code: str,
    restricted_character_id: int,
) -> Character:
    """Run the login steps after the state check. Raises on the first failure."""
    access_data = await get_crest_access_data(settings, web_client, code)
    if access_data is None or not access_data.complete:
        raise TransportTimeout.service_timeout(settings.crest_timeout)

    identity = await verify_character_data(settings, web_client, access_data.access_token)
    if identity is None:
        raise ProtocolError.verify_failed()

    if restricted_character_id > 0 and identity.character_id != restricted_character_id:
        raise IdentityMismatchError.character_mismatch(identity.character_name)

    character_data = await get_character_data(settings, web_client, access_data.access_token)
    if character_data.character is None:
        raise ProtocolError.endpoint_failed()

    character_data.character.owner_hash = identity.owner_hash
    character_data.character.crest_access_token = access_data.access_token
    character_data.character.crest_refresh_token = access_data.refresh_token

    try:
        previous_character = await store.get_character(identity.character_id)
        character = await store.save_character_data(character_data)
        if character is None:
            raise PersistenceFailure.character_not_saved()

        location = await get_character_location_data(
            settings, web_client, redis_session, access_data.access_token
        )
        await store.update_log(character.id, location)
    except (SQLAlchemyError, RedisError) as e:
        logger.exception("Unable to store character %s", identity.character_id)
        raise PersistenceFailure.character_not_saved() from e

    if not is_authorized(settings, character):
        raise AuthorizationDenied.character_forbidden(character.name)

    # A new owner hash means the character was transferred to another account.
    transferred = (
        previous_character is not None
        and previous_character.owner_hash is not None
        and previous_character.owner_hash != identity.owner_hash
    )
    if transferred:
        logger.warning(
            "Character %s changed owner, not reusing its previous user", character.id
        )

    try:
        user_guid = await session.get_user_guid()
        if user_guid is None and not transferred:
            user_guid = await store.get_user_guid(character.id)
        if user_guid is None:
            user_guid = await store.create_user(character.name)

        await store.link_user_character(character.id, user_guid)

        linked_character = await store.get_character(character.id)
        if linked_character is None:
            raise PersistenceFailure.login_failed(character.name)

        await session.login(linked_character.id, user_guid)
    except (SQLAlchemyError, RedisError) as e:
        logger.exception("Unable to log in character %s", character.id)
        raise PersistenceFailure.login_failed(character.name) from e

    return linked_character


async def refresh_character_tokens(
    settings: Settings,
    web_client: CrestWebClient,
    store: CharacterStore,
    character_id: int,
) -> Optional[AccessTokenPair]:
    """
    Use the stored refresh token of a character to get a new token pair and store it.

    Returns:
        The new pair, or None when the character has no refresh token or the SSO did not return
        a complete pair
    """
    character = await store.get_character(character_id)
    if character is None or not character.crest_refresh_token:
        return None

    access_data = await refresh_access_token(
        settings, web_client, character.crest_refresh_token
    )
    if not access_data.complete:
        logger.warning("Token refresh failed for character %s", character_id)
        return None

    await store.update_tokens(
        character_id, str(access_data.access_token), str(access_data.refresh_token)
    )
    return access_data


async def get_active_location(
    settings: Settings,
    web_client: CrestWebClient,
    redis_session: redis.Redis,
    store: CharacterStore,
    character_id: int,
) -> Optional[CharacterLocation]:
    """Resolve the location of a stored character with its current access token."""
    character = await store.get_character(character_id)
    if character is None or not character.crest_access_token:
        return None
    return await get_character_location_data(
        settings, web_client, redis_session, character.crest_access_token
    )
