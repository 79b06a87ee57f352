"""
Configuration Module for the Pathfinder SSO Service

This module defines the configuration system for the SSO service, using Pydantic for settings
validation and dependency injection through AppKeys.

The configuration follows these principles:
1. Environment-based configuration with sensible defaults
2. Endpoint URLs are kept as plain strings and validated when a call needs them, so that a
   broken value fails that call instead of the whole service
3. Dependency injection pattern using aiohttp's app context

Key configuration areas include:
- Service identification and networking
- EVE Online SSO and CREST endpoints and client credentials
- Database and cache connections
- Login authorization whitelists
- Monitoring
"""

from typing import Annotated, Final, List, Optional
import logging
from urllib.parse import urlparse
from aio_statsd import TelegrafStatsdClient
from pydantic import (
    AliasChoices,
    Field,
    field_validator,
    PostgresDsn,
    RedisDsn,
)
from pydantic_settings import BaseSettings, NoDecode
from aiohttp import web
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    async_sessionmaker,
    AsyncSession,
)
from aiohttp import ClientSession
from redis import asyncio as redis


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings for the SSO service.

    Values are loaded from environment variables. Endpoint URLs and client credentials have no
    usable defaults: a missing or malformed value is reported by the call that needs it.
    """

    debug: bool = False
    """
    Enable debug mode for verbose logging of outbound requests.
    Set with DEBUG=true environment variable.
    """

    http_port: int = Field(alias="port", default=5100)
    """
    HTTP port for the service to listen on.
    Set with PORT environment variable.
    """

    url: str = "http://localhost:5100"
    """
    Public base URL of this service, used to build the SSO redirect URI.
    Set with URL environment variable.
    """

    sentry_dsn: Optional[str] = None
    """
    Sentry DSN for error reporting. Optional, no error reporting if not set.
    Set with SENTRY_DSN environment variable.
    """

    redis_dsn: RedisDsn = Field(
        "redis://valkey:6379/1?decode_responses=True",
        validation_alias=AliasChoices("redis_dsn", "redis_url"),
    )  # type: ignore
    """
    Redis connection string for sessions and the location cache.
    Set with REDIS_DSN or REDIS_URL environment variables.
    """

    pg_dsn: PostgresDsn = Field(
        "postgresql+asyncpg://postgres:password@db/pathfinder",
        validation_alias=AliasChoices("pg_dsn", "database_url"),
    )  # type: ignore
    """
    PostgreSQL connection string for character, corporation and user records.
    Set with PG_DSN or DATABASE_URL environment variables.
    """

    # EVE Online SSO and CREST
    sso_ccp_url: Optional[str] = None
    """Root URL of the SSO, e.g. https://login.eveonline.com (SSO_CCP_URL)."""

    ccp_crest_url: Optional[str] = None
    """Root URL of the CREST API, e.g. https://crest-tq.eveonline.com (CCP_CREST_URL)."""

    sso_ccp_client_id: Optional[str] = None
    """Application client id registered with the SSO (SSO_CCP_CLIENT_ID)."""

    sso_ccp_secret_key: Optional[str] = None
    """Application secret registered with the SSO (SSO_CCP_SECRET_KEY)."""

    sso_scopes: Annotated[List[str], NoDecode] = [
        "characterLocationRead",
        "characterNavigationWrite",
    ]
    """
    Scopes requested on the authorization redirect.
    Set with SSO_SCOPES environment variable as comma-separated values.
    """

    crest_timeout: int = 3
    """Timeout in seconds for every SSO and CREST request (CREST_TIMEOUT)."""

    crest_content_type: str = "application/vnd.ccp.eve.Api-v3+json"
    """Versioned content type requested for the CREST root document."""

    location_cache_ttl: int = 10
    """Seconds a resolved character location is cached (LOCATION_CACHE_TTL)."""

    user_agent: str = "Pathfinder SSO (aiohttp)"
    """User-Agent sent with every outbound request (USER_AGENT)."""

    # Sessions
    session_cookie_name: str = "pathfinder_session"
    """Name of the cookie carrying the session id."""

    session_ttl: int = 86400
    """Lifetime in seconds of a session record in redis (SESSION_TTL)."""

    login_route: str = "/login"
    """Destination for failed logins started from the login view."""

    map_route: str = "/map"
    """Destination for successful logins and for failures started from an active session."""

    # Login authorization
    authorized_character_ids: Annotated[List[int], NoDecode] = list()
    """Characters allowed to log in. Set with AUTHORIZED_CHARACTER_IDS (comma-separated)."""

    authorized_corporation_ids: Annotated[List[int], NoDecode] = list()
    """Corporations whose members may log in (AUTHORIZED_CORPORATION_IDS)."""

    authorized_alliance_ids: Annotated[List[int], NoDecode] = list()
    """Alliances whose members may log in (AUTHORIZED_ALLIANCE_IDS)."""

    # Monitoring
    statsd_host: str = Field(alias="TELEGRAF_HOST", default="telegraf")
    statsd_port: int = Field(alias="TELEGRAF_PORT", default=8125)
    statsd_prefix: str = "pathfinder"

    @field_validator("sso_scopes", mode="before")
    @classmethod
    def decode_scopes(cls, v) -> List[str]:
        if isinstance(v, str):
            return [scope.strip() for scope in v.split(",") if scope.strip()]
        return v

    @field_validator(
        "authorized_character_ids",
        "authorized_corporation_ids",
        "authorized_alliance_ids",
        mode="before",
    )
    @classmethod
    def decode_id_list(cls, v) -> List[int]:
        """
        Accept either a list of ids or a comma-separated string of ids.

        Raises:
            ValueError: If an entry is not an integer
        """
        if isinstance(v, str):
            return [int(value.strip()) for value in v.split(",") if value.strip()]
        return v

    @property
    def sso_redirect_uri(self) -> str:
        return f"{self.url.rstrip('/')}/sso/callbackAuthorization"


def valid_url(value: Optional[str]) -> bool:
    """Return True when value is an absolute http(s) URL with a host."""
    if not value:
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


LOCATION_CACHE_KEY = "cached_location:token:{}"
"""
Redis key template for cached character locations.
Formatted with the md5 hex digest of the access token.
"""

SESSION_KEY = "session:{}"
"""Redis hash key template for session records, formatted with the session id."""

# Application context keys for dependency injection
SettingsAppKey: Final = web.AppKey("settings", Settings)
"""AppKey for accessing the application settings"""

DatabaseAppKey: Final = web.AppKey("database", AsyncEngine)
"""AppKey for accessing the SQLAlchemy async database engine"""

DatabaseSessionMakerAppKey: Final = web.AppKey(
    "database_session_maker", async_sessionmaker[AsyncSession]
)
"""AppKey for accessing the SQLAlchemy async session factory"""

SessionAppKey: Final = web.AppKey("http_session", ClientSession)
"""AppKey for accessing the shared aiohttp client session"""

RedisPoolAppKey: Final = web.AppKey("redis_pool", redis.ConnectionPool)
"""AppKey for accessing the Redis connection pool"""

RedisClientAppKey: Final = web.AppKey("redis_client", redis.Redis)
"""AppKey for accessing the Redis client"""

TelegrafStatsdClientAppKey: Final = web.AppKey(
    "telegraf_statsd_client", TelegrafStatsdClient
)
"""AppKey for the Telegraf/StatsD metrics client"""
