"""
Unit tests for the HTTP adapter in pathfinder.sso.ccp.web

The aiohttp session is mocked; tests cover the request that is sent, the timeout and connection
failure sentinels, and metrics.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock
from aiohttp import ClientConnectionError, hdrs
from multidict import CIMultiDict, CIMultiDictProxy

from pathfinder.sso.ccp.web import ApiResponse, CrestWebClient, RequestOptions


def mock_http_session(body: str = "{}", status: int = 200, headers=None):
    response = MagicMock()
    response.status = status
    response.headers = CIMultiDictProxy(CIMultiDict(headers or {"X-Test": "1"}))
    response.text = AsyncMock(return_value=body)

    context_manager = MagicMock()
    context_manager.__aenter__ = AsyncMock(return_value=response)
    context_manager.__aexit__ = AsyncMock(return_value=False)

    http_session = MagicMock()
    http_session.request = MagicMock(return_value=context_manager)
    return http_session


class TestCrestWebClient:
    async def test_request_returns_body_headers_and_status(self):
        http_session = mock_http_session(body='{"a": 1}', status=200)
        web_client = CrestWebClient(http_session)

        api_response = await web_client.request("https://crest.example.com/", RequestOptions())

        assert api_response.body == '{"a": 1}'
        assert api_response.headers["X-Test"] == "1"
        assert api_response.status == 200
        assert api_response.timed_out is False

    async def test_request_sends_method_headers_user_agent_and_content(self):
        http_session = mock_http_session()
        web_client = CrestWebClient(http_session)

        await web_client.request(
            "https://login.example.com/oauth/token",
            RequestOptions(
                method=hdrs.METH_POST,
                timeout=5,
                user_agent="test-agent",
                headers={hdrs.AUTHORIZATION: "Basic abc"},
                content="grant_type=authorization_code&code=abc",
            ),
        )

        args, kwargs = http_session.request.call_args
        assert args == (hdrs.METH_POST, "https://login.example.com/oauth/token")
        assert kwargs["headers"][hdrs.USER_AGENT] == "test-agent"
        assert kwargs["headers"][hdrs.AUTHORIZATION] == "Basic abc"
        assert kwargs["data"] == "grant_type=authorization_code&code=abc"
        assert kwargs["timeout"].total == 5

    async def test_request_without_content_sends_no_data(self):
        http_session = mock_http_session()
        web_client = CrestWebClient(http_session)

        await web_client.request("https://crest.example.com/", RequestOptions())

        _, kwargs = http_session.request.call_args
        assert "data" not in kwargs
        assert hdrs.USER_AGENT not in kwargs["headers"]

    async def test_timeout_is_reported_not_raised(self):
        http_session = MagicMock()
        http_session.request = MagicMock(side_effect=asyncio.TimeoutError())
        web_client = CrestWebClient(http_session)

        api_response = await web_client.request("https://crest.example.com/", RequestOptions())

        assert api_response.timed_out is True
        assert api_response.body == ""
        assert len(api_response.headers) == 0

    async def test_connection_error_returns_empty_response(self):
        http_session = MagicMock()
        http_session.request = MagicMock(side_effect=ClientConnectionError("refused"))
        web_client = CrestWebClient(http_session)

        api_response = await web_client.request("https://crest.example.com/", RequestOptions())

        assert api_response.timed_out is False
        assert api_response.body == ""
        assert api_response.status == 0

    async def test_metrics_recorded_with_status(self):
        statsd_client = MagicMock()
        web_client = CrestWebClient(mock_http_session(status=200), statsd_client)

        await web_client.request("https://crest.example.com/", RequestOptions())

        statsd_client.timer.assert_called_once()
        statsd_client.increment.assert_called_once()
        _, kwargs = statsd_client.increment.call_args
        assert kwargs["tag_dict"] == {"method": "GET", "status": "200"}

    async def test_metrics_recorded_on_timeout(self):
        statsd_client = MagicMock()
        http_session = MagicMock()
        http_session.request = MagicMock(side_effect=asyncio.TimeoutError())
        web_client = CrestWebClient(http_session, statsd_client)

        await web_client.request("https://crest.example.com/", RequestOptions())

        _, kwargs = statsd_client.increment.call_args
        assert kwargs["tag_dict"]["status"] == "timeout"


def test_timeout_response_defaults():
    api_response = ApiResponse.timeout()
    assert api_response.timed_out is True
    assert api_response.body == ""
    assert api_response.status == 0
