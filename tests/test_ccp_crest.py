"""
Unit tests for CREST traversal in pathfinder.sso.ccp.crest

Covers link classification, deprecation detection, single fetches and the walk properties:
empty paths, missing names, terminal data with names remaining, the depth cap and cycles.
"""

import logging
from unittest.mock import MagicMock
from aiohttp import hdrs
from multidict import CIMultiDict, CIMultiDictProxy

from pathfinder.sso.ccp.crest import (
    CHARACTER_PATH,
    MAX_WALK_DEPTH,
    Leaf,
    Link,
    classify_node,
    get_character_data,
    get_endpoint,
    get_endpoints,
    is_deprecated,
    walk_endpoint,
)
from pathfinder.sso.ccp.web import ApiResponse
from tests.test_helpers import (
    CHARACTER_URL,
    CREST_URL,
    DECODE_URL,
    FakeWebClient,
    character_document,
    crest_web_client,
    json_response,
    make_settings,
)


class TestClassifyNode:
    def test_link(self):
        assert classify_node({"href": "https://crest.example.com/x/"}) == Link(
            href="https://crest.example.com/x/"
        )

    def test_link_with_data(self):
        node = classify_node({"href": "https://crest.example.com/x/", "id": 1})
        assert isinstance(node, Link)

    def test_leaf_values(self):
        assert classify_node(5) == Leaf(value=5)
        assert classify_node("name") == Leaf(value="name")
        assert classify_node({"id": 1}) == Leaf(value={"id": 1})
        assert classify_node({"href": 12}) == Leaf(value={"href": 12})
        assert classify_node(None) == Leaf(value=None)


class TestDeprecation:
    def test_is_deprecated_case_insensitive(self):
        assert is_deprecated({"X-Deprecated": "true"})
        assert is_deprecated({"x-deprecated-since": "2016"})
        assert not is_deprecated({"Content-Type": "application/json"})
        assert not is_deprecated({})

    async def test_deprecated_resource_is_logged_and_returned(self, caplog):
        web_client = FakeWebClient(
            {CREST_URL: json_response({"a": 1}, headers={"X-Deprecated": "true"})}
        )

        with caplog.at_level(logging.WARNING, logger="pathfinder.sso.crest"):
            document = await get_endpoint(make_settings(), web_client, "t", CREST_URL)

        assert document == {"a": 1}
        assert "deprecated" in caplog.text


class TestGetEndpoint:
    async def test_bearer_and_accept_headers(self):
        web_client = FakeWebClient({CREST_URL: json_response({"a": 1})})

        await get_endpoint(
            make_settings(),
            web_client,
            "access-token",
            CREST_URL,
            content_type="application/vnd.ccp.eve.Api-v3+json",
        )

        _, options = web_client.requests[0]
        assert options.method == hdrs.METH_GET
        assert options.headers[hdrs.AUTHORIZATION] == "Bearer access-token"
        assert options.headers[hdrs.ACCEPT] == "application/vnd.ccp.eve.Api-v3+json"
        assert options.headers[hdrs.HOST] == "crest.example.com"

    async def test_no_accept_header_by_default(self):
        web_client = FakeWebClient({CREST_URL: json_response({"a": 1})})

        await get_endpoint(make_settings(), web_client, "t", CREST_URL)

        _, options = web_client.requests[0]
        assert hdrs.ACCEPT not in options.headers

    async def test_timed_out_response_is_not_read(self):
        body = MagicMock()
        headers = MagicMock()
        api_response = ApiResponse(body=body, headers=headers, timed_out=True)
        web_client = FakeWebClient({CREST_URL: api_response})

        assert await get_endpoint(make_settings(), web_client, "t", CREST_URL) is None

        assert body.mock_calls == []
        assert headers.mock_calls == []

    async def test_empty_headers(self):
        web_client = FakeWebClient({CREST_URL: ApiResponse(body='{"a": 1}')})
        assert await get_endpoint(make_settings(), web_client, "t", CREST_URL) is None

    async def test_empty_body(self):
        headers = CIMultiDictProxy(CIMultiDict({"Content-Type": "application/json"}))
        web_client = FakeWebClient({CREST_URL: ApiResponse(body="", headers=headers)})
        assert await get_endpoint(make_settings(), web_client, "t", CREST_URL) is None

    async def test_malformed_body(self):
        headers = CIMultiDictProxy(CIMultiDict({"Content-Type": "text/html"}))
        web_client = FakeWebClient(
            {CREST_URL: ApiResponse(body="<html></html>", headers=headers)}
        )
        assert await get_endpoint(make_settings(), web_client, "t", CREST_URL) is None

    async def test_malformed_url_sends_nothing(self):
        web_client = FakeWebClient()
        assert await get_endpoint(make_settings(), web_client, "t", "crest") is None
        assert web_client.requests == []

    async def test_get_endpoints_uses_root_and_content_type(self):
        web_client = crest_web_client()
        settings = make_settings()

        document = await get_endpoints(settings, web_client, "t")

        assert document["decode"] == {"href": DECODE_URL}
        url, options = web_client.requests[0]
        assert url == CREST_URL
        assert options.headers[hdrs.ACCEPT] == settings.crest_content_type

    async def test_get_endpoints_without_crest_url(self):
        web_client = FakeWebClient()
        assert await get_endpoints(make_settings(ccp_crest_url=None), web_client, "t") is None
        assert web_client.requests == []


class TestWalkEndpoint:
    async def test_empty_path_returns_document(self):
        web_client = FakeWebClient()
        document = {"decode": {"href": DECODE_URL}, "x": [1, 2]}

        result = await walk_endpoint(make_settings(), web_client, "t", document, [])

        assert result is document
        assert web_client.requests == []

    async def test_follows_links(self):
        web_client = crest_web_client()
        root = await get_endpoints(make_settings(), web_client, "t")

        result = await walk_endpoint(make_settings(), web_client, "t", root, CHARACTER_PATH)

        assert result["id"] == 42
        assert web_client.urls() == [CREST_URL, DECODE_URL, CHARACTER_URL]

    async def test_leaf_at_end_of_path(self):
        web_client = FakeWebClient()
        document = {"serverName": "TRANQUILITY"}

        result = await walk_endpoint(
            make_settings(), web_client, "t", document, ["serverName"]
        )

        assert result == "TRANQUILITY"

    async def test_leaf_with_names_remaining(self):
        web_client = FakeWebClient()
        document = {"serverName": "TRANQUILITY"}

        result = await walk_endpoint(
            make_settings(), web_client, "t", document, ["serverName", "character"]
        )

        assert result is None
        assert web_client.requests == []

    async def test_missing_name(self, caplog):
        web_client = crest_web_client()

        with caplog.at_level(logging.ERROR, logger="pathfinder.sso.crest"):
            result = await walk_endpoint(
                make_settings(), web_client, "t", {"decode": {"href": DECODE_URL}}, ["missing"]
            )

        assert result is None
        assert "Unable to find endpoint: missing" in caplog.text

    async def test_non_mapping_document(self):
        web_client = FakeWebClient()
        assert await walk_endpoint(make_settings(), web_client, "t", None, ["decode"]) is None
        assert await walk_endpoint(make_settings(), web_client, "t", [1], ["decode"]) is None

    async def test_failed_fetch(self):
        web_client = FakeWebClient({DECODE_URL: ApiResponse.timeout()})

        result = await walk_endpoint(
            make_settings(),
            web_client,
            "t",
            {"decode": {"href": DECODE_URL}},
            ["decode", "character"],
        )

        assert result is None
        assert web_client.urls() == [DECODE_URL]

    async def test_cycle_is_detected(self):
        loop_url = f"{CREST_URL}loop/"
        web_client = FakeWebClient({loop_url: json_response({"next": {"href": loop_url}})})

        result = await walk_endpoint(
            make_settings(),
            web_client,
            "t",
            {"next": {"href": loop_url}},
            ["next", "next", "next"],
        )

        assert result is None
        assert web_client.count(loop_url) == 1

    async def test_depth_cap(self):
        web_client = FakeWebClient()

        result = await walk_endpoint(
            make_settings(),
            web_client,
            "t",
            {"next": {"href": f"{CREST_URL}next/"}},
            ["next"] * (MAX_WALK_DEPTH + 1),
        )

        assert result is None
        assert web_client.requests == []


class TestGetCharacterData:
    async def test_character_with_alliance(self):
        bundle = await get_character_data(make_settings(), crest_web_client(), "t")

        assert bundle.character is not None
        assert bundle.character.id == 42
        assert bundle.character.name == "Jita Trader"
        assert bundle.corporation is not None
        assert bundle.corporation.id == 98000001
        assert bundle.corporation.is_npc is False
        assert bundle.alliance is not None
        assert bundle.alliance.id == 99000001

    async def test_character_without_alliance(self):
        web_client = crest_web_client(character=character_document(with_alliance=False))

        bundle = await get_character_data(make_settings(), web_client, "t")

        assert bundle.character is not None
        assert bundle.corporation is not None
        assert bundle.alliance is None

    async def test_unreachable_character(self):
        web_client = crest_web_client()
        web_client.add(CHARACTER_URL, ApiResponse.timeout())

        bundle = await get_character_data(make_settings(), web_client, "t")

        assert bundle.character is None
        assert bundle.corporation is None

    async def test_malformed_character(self):
        web_client = crest_web_client(character={"name": "No Id"})

        bundle = await get_character_data(make_settings(), web_client, "t")

        assert bundle.character is None
