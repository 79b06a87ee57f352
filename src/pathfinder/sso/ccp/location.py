"""Cached character location lookups.

Resolving a location costs three CREST requests. The mapped result is cached in redis per access
token for a few seconds so that map clients polling for the same character share one walk.
"""

import hashlib
import logging
from typing import Mapping, Optional
from pydantic import ValidationError
import redis.asyncio as redis

from pathfinder.sso.app.config import LOCATION_CACHE_KEY, Settings
from pathfinder.sso.ccp.crest import LOCATION_PATH, get_endpoints, walk_endpoint
from pathfinder.sso.ccp.mapper import CharacterLocation, map_station, map_system
from pathfinder.sso.ccp.web import CrestWebClient

logger = logging.getLogger(__name__)


def location_cache_key(access_token: str) -> str:
    return LOCATION_CACHE_KEY.format(hashlib.md5(access_token.encode("utf-8")).hexdigest())


def map_location(endpoint: Mapping) -> CharacterLocation:
    location = CharacterLocation()
    if isinstance(endpoint.get("solarSystem", None), Mapping):
        location.system = map_system(endpoint["solarSystem"])
    if isinstance(endpoint.get("station", None), Mapping):
        location.station = map_station(endpoint["station"])
    return location


async def get_character_location_data(
    settings: Settings,
    web_client: CrestWebClient,
    redis_session: redis.Redis,
    access_token: str,
    ttl: Optional[int] = None,
) -> CharacterLocation:
    """
    Return the current solar system and station of the token's character.

    A cached value is returned as stored. On a miss the location endpoint is walked; a result is
    cached for `ttl` seconds, while a failed walk is reported with `timeout=True` and not cached so
    the next call tries again. A character that is logged off resolves to an empty location with
    `timeout=False`, which is cached like any other result.
    """
    if ttl is None:
        ttl = settings.location_cache_ttl

    cache_key = location_cache_key(access_token)

    cached = await redis_session.get(cache_key)
    if cached is not None:
        try:
            return CharacterLocation.model_validate_json(cached)
        except ValidationError:
            logger.warning("Discarding unreadable cached location %s", cache_key)

    endpoints = await get_endpoints(settings, web_client, access_token)
    endpoint = await walk_endpoint(
        settings, web_client, access_token, endpoints, LOCATION_PATH
    )

    if not isinstance(endpoint, Mapping):
        return CharacterLocation(timeout=True)

    try:
        location = map_location(endpoint)
    except (KeyError, TypeError, ValidationError):
        logger.warning("Unexpected location document for %s", cache_key)
        return CharacterLocation(timeout=True)

    if ttl > 0:
        await redis_session.set(cache_key, location.model_dump_json(), ex=ttl)
    return location
