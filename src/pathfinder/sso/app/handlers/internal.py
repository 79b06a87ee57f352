import logging
from aiohttp import web
from redis.exceptions import RedisError

from pathfinder.sso.app.config import RedisClientAppKey

logger = logging.getLogger(__name__)


async def handle_internal_ready(request: web.Request):
    try:
        await request.app[RedisClientAppKey].ping()
    except (RedisError, OSError) as e:
        logger.warning("Readiness check failed: %s", e)
        return web.Response(status=503)
    return web.Response(status=200)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)
