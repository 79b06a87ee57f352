import logging
from time import time
from typing import (
    Optional,
)
from aio_statsd import TelegrafStatsdClient
from aiohttp import web
import aiohttp
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from pathfinder.sso.app.config import (
    DatabaseAppKey,
    DatabaseSessionMakerAppKey,
    RedisClientAppKey,
    RedisPoolAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
    TelegrafStatsdClientAppKey,
)
from pathfinder.sso.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from pathfinder.sso.app.handlers.sso import (
    handle_callback_authorization,
    handle_character_location,
    handle_character_refresh,
    handle_login_view,
    handle_logout,
    handle_map_view,
    handle_request_authorization,
)
from pathfinder.sso.app.session import session_middleware

logger = logging.getLogger(__name__)


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    engine = create_async_engine(str(settings.pg_dsn))
    app[DatabaseAppKey] = engine
    database_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    app[DatabaseSessionMakerAppKey] = database_session

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logger.info("Starting request: %s %s", params.method, params.url)

        async def on_request_end(
            session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
        ):
            logger.info(
                "Ending request: %s %s %s",
                params.method,
                params.url,
                params.response.status,
            )

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    app[SessionAppKey] = aiohttp.ClientSession(trace_configs=[trace_config])

    app[RedisPoolAppKey] = redis.ConnectionPool.from_url(str(settings.redis_dsn))
    app[RedisClientAppKey] = redis.Redis(connection_pool=app[RedisPoolAppKey])

    statsd_client = TelegrafStatsdClient(
        host=settings.statsd_host, port=settings.statsd_port, debug=settings.debug
    )
    await statsd_client.connect()
    app[TelegrafStatsdClientAppKey] = statsd_client

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[DatabaseAppKey].dispose()
    await app[SessionAppKey].close()
    await app[RedisPoolAppKey].aclose()
    await app[TelegrafStatsdClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    settings = request.app[SettingsAppKey]
    statsd_client = request.app[TelegrafStatsdClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        statsd_client.increment(
            f"{settings.statsd_prefix}.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        statsd_client.timer(
            f"{settings.statsd_prefix}.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        statsd_client.increment(
            f"{settings.statsd_prefix}.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(
        middlewares=[statsd_middleware, sentry_middleware, session_middleware]
    )

    app[SettingsAppKey] = settings

    app.add_routes(
        [
            web.get("/sso/requestAuthorization", handle_request_authorization),
            web.get("/sso/callbackAuthorization", handle_callback_authorization),
            web.post("/sso/logout", handle_logout),
        ]
    )

    app.add_routes(
        [
            web.get(settings.login_route, handle_login_view),
            web.get(settings.map_route, handle_map_view),
        ]
    )

    app.add_routes(
        [
            web.get("/api/character/location", handle_character_location),
            web.post("/api/character/refresh", handle_character_refresh),
        ]
    )

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
        ]
    )

    app.cleanup_ctx.append(background_tasks)

    return app
