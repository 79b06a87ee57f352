"""
Timeout-bounded HTTP adapter for SSO and CREST requests.

Every outbound call made by this package goes through `CrestWebClient.request`. The adapter never
raises for transport problems: a timeout is reported through `ApiResponse.timed_out` with an empty
body, and a connection failure is logged and reported as an empty response.
"""

import asyncio
from dataclasses import dataclass, field
import logging
from time import time
from typing import Any, Dict, Mapping, Optional, Union
from aio_statsd import TelegrafStatsdClient
from aiohttp import ClientError, ClientSession, ClientTimeout, hdrs
from multidict import CIMultiDict, CIMultiDictProxy

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 3


@dataclass
class RequestOptions:
    method: str = hdrs.METH_GET
    timeout: int = DEFAULT_TIMEOUT
    user_agent: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    content: Optional[Union[str, Dict[str, Any]]] = None


@dataclass
class ApiResponse:
    body: str = ""
    headers: Mapping[str, str] = field(
        default_factory=lambda: CIMultiDictProxy(CIMultiDict())
    )
    timed_out: bool = False
    status: int = 0

    @staticmethod
    def timeout() -> "ApiResponse":
        return ApiResponse(timed_out=True)


class CrestWebClient:
    """
    Thin wrapper over a shared aiohttp ClientSession.

    The statsd client is optional so that command line tools can use the adapter without a
    metrics backend.
    """

    def __init__(
        self,
        http_session: ClientSession,
        statsd_client: Optional[TelegrafStatsdClient] = None,
    ) -> None:
        self._http_session = http_session
        self._statsd_client = statsd_client

    async def request(self, url: str, options: RequestOptions) -> ApiResponse:
        headers = dict(options.headers)
        if options.user_agent is not None:
            headers[hdrs.USER_AGENT] = options.user_agent

        kwargs: Dict[str, Any] = {}
        if options.content is not None:
            kwargs["data"] = options.content

        start_time = time()
        status_tag = "error"
        try:
            async with self._http_session.request(
                options.method,
                url,
                headers=headers,
                timeout=ClientTimeout(total=options.timeout),
                **kwargs,
            ) as resp:
                body = await resp.text()
                status_tag = str(resp.status)
                return ApiResponse(body=body, headers=resp.headers, status=resp.status)
        except asyncio.TimeoutError:
            status_tag = "timeout"
            logger.warning(
                "Request timed out after %ss: %s %s", options.timeout, options.method, url
            )
            return ApiResponse.timeout()
        except ClientError as e:
            logger.warning("Request failed: %s %s: %s", options.method, url, e)
            return ApiResponse()
        finally:
            if self._statsd_client is not None:
                self._statsd_client.timer(
                    "pathfinder.client.request.time",
                    time() - start_time,
                    tag_dict={"method": options.method, "status": status_tag},
                )
                self._statsd_client.increment(
                    "pathfinder.client.request.count",
                    1,
                    tag_dict={"method": options.method, "status": status_tag},
                )
