"""CREST hypermedia traversal.

CREST exposes every resource as a JSON document whose fields are either data or links of the
form `{"href": "..."}`. A caller names a path of link names starting at the root document and
`walk_endpoint` follows the links one request at a time until the last name is consumed.

The graph is controlled by the provider, so walks are iterative, depth capped and stop when an
href repeats.
"""

from dataclasses import dataclass
import json
from typing import Any, List, Mapping, Optional, Sequence, Union
from urllib.parse import urlparse
from aiohttp import hdrs

from pathfinder.sso.app.config import Settings, valid_url
from pathfinder.sso.ccp.errors import (
    ERROR_CCP_CREST_URL,
    ERROR_FIND_ENDPOINT,
    ERROR_GET_ENDPOINT,
    ERROR_RESOURCE_DEPRECATED,
    crest_logger,
)
from pathfinder.sso.ccp.mapper import (
    CharacterBundle,
    map_alliance,
    map_character,
    map_corporation,
)
from pathfinder.sso.ccp.web import CrestWebClient, RequestOptions

MAX_WALK_DEPTH = 16

CHARACTER_PATH = ("decode", "character")
LOCATION_PATH = ("decode", "character", "location")


@dataclass(frozen=True)
class Link:
    href: str


@dataclass(frozen=True)
class Leaf:
    value: Any


Node = Union[Link, Leaf]


def classify_node(value: Any) -> Node:
    """A mapping with a string `href` is a link, anything else is terminal data."""
    if isinstance(value, Mapping) and isinstance(value.get("href", None), str):
        return Link(href=value["href"])
    return Leaf(value=value)


def is_deprecated(headers: Mapping[str, str]) -> bool:
    return any(name.lower().startswith("x-deprecated") for name in headers.keys())


def check_response_headers(
    headers: Mapping[str, str], request_url: str = "", content_type: str = ""
) -> None:
    """Log deprecated resources. Deprecation never fails a request."""
    if is_deprecated(headers):
        crest_logger.warning(ERROR_RESOURCE_DEPRECATED.format(request_url, content_type))


async def get_endpoint(
    settings: Settings,
    web_client: CrestWebClient,
    access_token: str,
    resource_url: str,
    content_type: Optional[str] = None,
) -> Optional[Any]:
    """
    Fetch a single CREST document.

    Args:
        settings: Application settings
        web_client: HTTP adapter for the request
        access_token: CREST bearer token
        resource_url: Absolute URL of the resource
        content_type: Optional Accept header, CREST versions resources by content type

    Returns:
        The decoded document, or None when the URL is malformed, the request timed out, or the
        response carries no headers or no JSON body
    """
    if not valid_url(resource_url):
        crest_logger.error(ERROR_CCP_CREST_URL.format(resource_url))
        return None

    headers = {
        hdrs.AUTHORIZATION: f"Bearer {access_token}",
        hdrs.HOST: str(urlparse(resource_url).netloc),
    }
    if content_type is not None:
        headers[hdrs.ACCEPT] = content_type

    options = RequestOptions(
        method=hdrs.METH_GET,
        timeout=settings.crest_timeout,
        user_agent=settings.user_agent,
        headers=headers,
    )

    api_response = await web_client.request(resource_url, options)

    # Nothing from a timed out response can be trusted, not even its headers.
    if api_response.timed_out or not api_response.headers:
        return None

    check_response_headers(api_response.headers, resource_url, content_type or "")

    if not api_response.body:
        crest_logger.error(ERROR_GET_ENDPOINT.format(resource_url))
        return None

    try:
        return json.loads(api_response.body)
    except ValueError:
        crest_logger.error(ERROR_GET_ENDPOINT.format(f"malformed body from {resource_url}"))
        return None


async def get_endpoints(
    settings: Settings, web_client: CrestWebClient, access_token: str
) -> Optional[Any]:
    """Fetch the CREST root document, the entry point for every walk."""
    if not valid_url(settings.ccp_crest_url):
        crest_logger.error(ERROR_CCP_CREST_URL.format("get_endpoints"))
        return None
    return await get_endpoint(
        settings,
        web_client,
        access_token,
        str(settings.ccp_crest_url),
        content_type=settings.crest_content_type,
    )


async def walk_endpoint(
    settings: Settings,
    web_client: CrestWebClient,
    access_token: str,
    endpoint: Any,
    path: Sequence[str] = (),
    content_type: Optional[str] = None,
) -> Optional[Any]:
    """
    Follow `path` from `endpoint` and return the value the last name points to.

    Each name must exist in the current document. Links are fetched and become the current
    document; terminal data ends the walk and is only returned when no names remain.
    """
    remaining: List[str] = list(path)
    if len(remaining) > MAX_WALK_DEPTH:
        crest_logger.error(
            ERROR_FIND_ENDPOINT.format(f"path too deep ({len(remaining)} segments)")
        )
        return None

    documents: List[Any] = [endpoint]
    visited: set[str] = set()

    while remaining:
        current = documents[-1]
        name = remaining.pop(0)

        if not isinstance(current, Mapping) or name not in current:
            crest_logger.error(ERROR_FIND_ENDPOINT.format(name))
            return None

        node = classify_node(current[name])

        if isinstance(node, Leaf):
            if remaining:
                crest_logger.error(ERROR_FIND_ENDPOINT.format(remaining[0]))
                return None
            return node.value

        if node.href in visited:
            crest_logger.error(ERROR_FIND_ENDPOINT.format(f"cycle at {node.href}"))
            return None
        visited.add(node.href)

        next_document = await get_endpoint(
            settings, web_client, access_token, node.href, content_type
        )
        if next_document is None:
            return None
        documents.append(next_document)

    return documents[-1]


async def get_character_data(
    settings: Settings, web_client: CrestWebClient, access_token: str
) -> CharacterBundle:
    """
    Walk to the character endpoint of the token's owner and map it.

    The character document embeds its corporation, and its alliance when it has one, so no
    further requests are needed.
    """
    character_data = CharacterBundle()

    endpoints = await get_endpoints(settings, web_client, access_token)
    endpoint = await walk_endpoint(
        settings, web_client, access_token, endpoints, CHARACTER_PATH
    )
    if not isinstance(endpoint, Mapping) or not endpoint:
        return character_data

    try:
        character_data.character = map_character(endpoint)
        if isinstance(endpoint.get("corporation", None), Mapping):
            character_data.corporation = map_corporation(endpoint["corporation"])
        if isinstance(endpoint.get("alliance", None), Mapping):
            character_data.alliance = map_alliance(endpoint["alliance"])
    except (KeyError, TypeError, ValueError):
        crest_logger.error(ERROR_GET_ENDPOINT.format("character"))
        return CharacterBundle()

    return character_data
