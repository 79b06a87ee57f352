"""
EVE Online SSO Client

This module implements the token side of the OAuth 2.0 authorization code flow against the EVE
Online SSO:

- Token exchange (`request_access_data`): form-encoded POST to the token endpoint, authenticated
  with HTTP Basic client credentials, used for both the `authorization_code` and the
  `refresh_token` grant
- Identity verification (`verify_character_data`): bearer GET to the verify endpoint, returning
  the character id, name and owner hash the access token was issued for

None of the functions raise for provider or transport problems. Failures are logged and reported
as an empty `AccessTokenPair` or `None`; the login flow decides what the user sees.
"""

import base64
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode, urlparse
from aiohttp import hdrs
from pydantic import ValidationError

from pathfinder.sso.app.config import Settings, valid_url
from pathfinder.sso.ccp.errors import (
    ERROR_ACCESS_TOKEN,
    ERROR_CCP_SSO_URL,
    ERROR_VERIFY_CHARACTER,
    crest_logger,
)
from pathfinder.sso.ccp.mapper import IdentityRecord, map_identity
from pathfinder.sso.ccp.web import CrestWebClient, RequestOptions


@dataclass
class AccessTokenPair:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.access_token is not None and self.refresh_token is not None


def sso_url_root(settings: Settings) -> Optional[str]:
    """Return the configured SSO root URL, or None (logged) when it is missing or malformed."""
    if not valid_url(settings.sso_ccp_url):
        crest_logger.error(ERROR_CCP_SSO_URL.format("sso_url_root"))
        return None
    return str(settings.sso_ccp_url).rstrip("/")


def authorization_endpoint(settings: Settings) -> Optional[str]:
    root = sso_url_root(settings)
    return None if root is None else f"{root}/oauth/authorize"


def token_endpoint(settings: Settings) -> Optional[str]:
    root = sso_url_root(settings)
    return None if root is None else f"{root}/oauth/token"


def verify_endpoint(settings: Settings) -> Optional[str]:
    root = sso_url_root(settings)
    return None if root is None else f"{root}/oauth/verify"


def authorization_header(settings: Settings) -> str:
    """Base64 of `client_id:secret`, the value of the Basic Authorization header."""
    credentials = f"{settings.sso_ccp_client_id or ''}:{settings.sso_ccp_secret_key or ''}"
    return base64.b64encode(credentials.encode("utf-8")).decode("ascii")


async def request_access_data(
    settings: Settings, web_client: CrestWebClient, params: Dict[str, str]
) -> AccessTokenPair:
    """
    Request an access token and refresh token from the SSO token endpoint.

    Args:
        settings: Application settings
        web_client: HTTP adapter for the request
        params: Grant parameters, either an authorization code or a refresh token grant

    Returns:
        AccessTokenPair: halves the provider did not return are left as None; both are None when
        the endpoint is misconfigured, the request timed out or the body is unusable
    """
    access_data = AccessTokenPair()

    url = token_endpoint(settings)
    if url is None:
        return access_data

    options = RequestOptions(
        method=hdrs.METH_POST,
        timeout=settings.crest_timeout,
        user_agent=settings.user_agent,
        headers={
            hdrs.AUTHORIZATION: f"Basic {authorization_header(settings)}",
            hdrs.CONTENT_TYPE: "application/x-www-form-urlencoded",
            hdrs.HOST: str(urlparse(url).netloc),
        },
        content=urlencode(params),
    )

    api_response = await web_client.request(url, options)
    if not api_response.body:
        crest_logger.error(ERROR_ACCESS_TOKEN.format(params.get("grant_type", "")))
        return access_data

    try:
        token_response: Any = json.loads(api_response.body)
    except ValueError:
        crest_logger.error(ERROR_ACCESS_TOKEN.format("malformed token response"))
        return access_data

    if not isinstance(token_response, dict):
        crest_logger.error(ERROR_ACCESS_TOKEN.format("unexpected token response"))
        return access_data

    # The access token is short lived (~20 minutes), the refresh token gets a new one.
    access_data.access_token = token_response.get("access_token", None)
    access_data.refresh_token = token_response.get("refresh_token", None)
    return access_data


async def exchange_authorization_code(
    settings: Settings, web_client: CrestWebClient, code: str
) -> AccessTokenPair:
    return await request_access_data(
        settings, web_client, {"grant_type": "authorization_code", "code": code}
    )


async def refresh_access_token(
    settings: Settings, web_client: CrestWebClient, refresh_token: str
) -> AccessTokenPair:
    return await request_access_data(
        settings,
        web_client,
        {"grant_type": "refresh_token", "refresh_token": refresh_token},
    )


async def get_crest_access_data(
    settings: Settings, web_client: CrestWebClient, code: Optional[str]
) -> Optional[AccessTokenPair]:
    """Exchange an authorization code, or log and return None when there is no code."""
    if not code:
        crest_logger.error(ERROR_ACCESS_TOKEN.format("no authorization code"))
        return None
    return await exchange_authorization_code(settings, web_client, code)


async def verify_character_data(
    settings: Settings, web_client: CrestWebClient, access_token: str
) -> Optional[IdentityRecord]:
    """
    Ask the SSO which character the access token belongs to.

    The owner hash in the result changes when a character is transferred to another account,
    which is what makes the verify call necessary on every login.
    """
    url = verify_endpoint(settings)
    if url is None:
        return None

    options = RequestOptions(
        method=hdrs.METH_GET,
        timeout=settings.crest_timeout,
        user_agent=settings.user_agent,
        headers={
            hdrs.AUTHORIZATION: f"Bearer {access_token}",
            hdrs.HOST: str(urlparse(url).netloc),
        },
    )

    api_response = await web_client.request(url, options)
    if not api_response.body:
        crest_logger.error(ERROR_VERIFY_CHARACTER.format("empty response"))
        return None

    try:
        return map_identity(json.loads(api_response.body))
    except (ValueError, KeyError, TypeError, ValidationError):
        crest_logger.error(ERROR_VERIFY_CHARACTER.format("malformed response"))
        return None
