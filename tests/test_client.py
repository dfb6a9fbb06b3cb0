#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the extraction service client.
"""
import asyncio
import socket
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from geopixel_extraction.core.config import resolve_api_url
from geopixel_extraction.core.models import ExtractionRequest
from geopixel_extraction.extraction import client as client_module
from geopixel_extraction.extraction.client import ExtractionClient, get_default_client

from raster_fixtures import make_canonical_image

SERVICE_RESPONSE = {
    "description": "Two <p>ponds</p> [SEG] near a <p>road</p> [SEG].",
    "masks": [
        {"label": "Ponds", "polygon": [[1, 1], [5, 1], [5, 5]], "confidence": 0.77},
        {"label": "Road", "polygon": [[0, 9], [20, 9], [20, 10]], "confidence": 0.66},
    ],
    "processingTime": 0.4,
    "confidence": 0.71,
    "features": [{"name": "Water Coverage", "value": "4%"}],
}


def _unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class ServiceTestCase(unittest.IsolatedAsyncioTestCase):
    """Runs a local stand-in for the extraction service."""

    async def asyncSetUp(self):
        self.received = []
        self.handler = self._ok
        app = web.Application()
        app.router.add_post("/api/extract", self._dispatch)
        self.server = TestServer(app, host="127.0.0.1")
        await self.server.start_server()
        self.base_url = f"http://127.0.0.1:{self.server.port}"
        self.request = ExtractionRequest(image=make_canonical_image(), query="Find ponds",
                                         max_tokens=128)

    async def asyncTearDown(self):
        await self.server.close()

    async def _dispatch(self, request):
        self.received.append(await request.json())
        return await self.handler(request)

    async def _ok(self, request):
        return web.json_response(SERVICE_RESPONSE)


class TestRemotePath(ServiceTestCase):

    async def test_service_result_returned(self):
        result = await ExtractionClient(self.base_url).extract(self.request)

        self.assertFalse(result.synthesized)
        self.assertEqual([m.label for m in result.masks], ["Ponds", "Road"])
        self.assertEqual(result.features[0].name, "Water Coverage")
        self.assertEqual(result.confidence, 0.71)

    async def test_request_body(self):
        await ExtractionClient(self.base_url).extract(self.request)

        self.assertEqual(len(self.received), 1)
        body = self.received[0]
        self.assertEqual(body["query"], "Find ponds")
        self.assertEqual(body["maxTokens"], 128)
        self.assertIsInstance(body["image"], str)

    async def test_trailing_slash_in_base_url(self):
        client = ExtractionClient(self.base_url + "/")
        self.assertEqual(client.endpoint, f"{self.base_url}/api/extract")
        result = await client.extract(self.request)
        self.assertFalse(result.synthesized)


class TestFallbackPath(ServiceTestCase):

    async def _assert_fallback(self, client):
        with self.assertLogs("geopixel", level="WARNING") as logs:
            result = await client.extract(self.request)
        self.assertTrue(result.synthesized)
        # "Find ponds" matches no keyword rule
        self.assertEqual([m.label for m in result.masks],
                         ["Urban Areas", "Transportation Networks", "Natural Features"])
        self.assertTrue(any("fallback" in line for line in logs.output))
        return result

    async def test_server_error(self):
        async def fail(request):
            return web.Response(status=503, text="overloaded")
        self.handler = fail
        await self._assert_fallback(ExtractionClient(self.base_url))

    async def test_not_json(self):
        async def garbage(request):
            return web.Response(text="<html>gateway</html>")
        self.handler = garbage
        await self._assert_fallback(ExtractionClient(self.base_url))

    async def test_contract_violation(self):
        async def incomplete(request):
            return web.json_response({"description": "only text"})
        self.handler = incomplete
        await self._assert_fallback(ExtractionClient(self.base_url))

    async def test_timeout(self):
        async def slow(request):
            await asyncio.sleep(2)
            return web.json_response(SERVICE_RESPONSE)
        self.handler = slow
        await self._assert_fallback(ExtractionClient(self.base_url, timeout=0.2))

    async def test_connection_refused(self):
        await self._assert_fallback(ExtractionClient(f"http://127.0.0.1:{_unused_port()}"))

    async def test_custom_fallback(self):
        calls = []

        def fallback(query):
            calls.append(query)
            return client_module.synthesize("buildings")

        client = ExtractionClient(f"http://127.0.0.1:{_unused_port()}", fallback=fallback)
        with self.assertLogs("geopixel", level="WARNING"):
            result = await client.extract(self.request)
        self.assertEqual(calls, ["Find ponds"])
        self.assertEqual(result.masks[0].label, "Residential Buildings")


class TestConfiguration(unittest.TestCase):

    def test_default_url(self):
        self.assertEqual(resolve_api_url({}), "http://localhost:8000")

    def test_env_url(self):
        self.assertEqual(resolve_api_url({"GEOPIXEL_API_URL": "https://geo.example.org/"}),
                         "https://geo.example.org")

    def test_default_client_is_shared(self):
        get_default_client.cache_clear()
        try:
            self.assertIs(get_default_client(), get_default_client())
        finally:
            get_default_client.cache_clear()


if __name__ == '__main__':
    unittest.main()
