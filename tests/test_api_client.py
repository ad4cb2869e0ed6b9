import json
import os
import sys
import unittest
from unittest import mock


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import httpx

from app import api_config
from app.api_client import ApiClient, unwrap_envelope
from docview.endpoints import Endpoint
from docview.errors import EnvelopeError, HTTPError


class TestUnwrapEnvelope(unittest.TestCase):
    def test_success_returns_data(self) -> None:
        response = httpx.Response(200, json={"success": True, "data": {"id": "v1"}, "message": None})
        self.assertEqual(unwrap_envelope(response), {"id": "v1"})

    def test_no_content(self) -> None:
        self.assertIsNone(unwrap_envelope(httpx.Response(204)))

    def test_http_error_carries_server_code(self) -> None:
        response = httpx.Response(403, json={"success": False, "message": "title cannot be deleted", "code": "PROPERTY_REQUIRED"})
        with self.assertRaises(HTTPError) as ctx:
            unwrap_envelope(response, "/x")
        self.assertEqual(ctx.exception.code, "PROPERTY_REQUIRED")
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.message, "title cannot be deleted")
        self.assertEqual(ctx.exception.path, "/x")

    def test_http_error_without_body(self) -> None:
        with self.assertRaises(HTTPError) as ctx:
            unwrap_envelope(httpx.Response(502, text="bad gateway"))
        self.assertEqual(ctx.exception.code, "HTTP_502")
        self.assertEqual(ctx.exception.body, "bad gateway")

    def test_unsuccessful_envelope(self) -> None:
        response = httpx.Response(200, json={"success": False, "message": "nope"})
        with self.assertRaises(EnvelopeError) as ctx:
            unwrap_envelope(response)
        self.assertEqual(ctx.exception.code, "REQUEST_FAILED")
        self.assertEqual(ctx.exception.message, "nope")

    def test_not_an_envelope(self) -> None:
        with self.assertRaises(EnvelopeError) as ctx:
            unwrap_envelope(httpx.Response(200, json=[1, 2]))
        self.assertEqual(ctx.exception.code, "ENVELOPE_INVALID")


class TestApiClient(unittest.IsolatedAsyncioTestCase):
    async def test_call_sends_method_path_and_body(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content) if request.content else None
            return httpx.Response(201, json={"success": True, "data": {"ok": 1}})

        async with ApiClient(base_url="http://api.test/api/v1", transport=httpx.MockTransport(handler)) as client:
            data = await client.call(Endpoint("/document-views/tasks/views", "POST"), json={"name": "Board"})
        self.assertEqual(data, {"ok": 1})
        self.assertEqual(seen["method"], "POST")
        self.assertEqual(seen["url"], "http://api.test/api/v1/document-views/tasks/views")
        self.assertEqual(seen["body"], {"name": "Board"})

    async def test_delete_with_body(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "data": {"deleted": 2}})

        async with ApiClient(base_url="http://api.test", transport=httpx.MockTransport(handler)) as client:
            data = await client.call(Endpoint("/tasks/bulk-delete", "DELETE"), json={"recordIds": ["a", "b"]})
        self.assertEqual(data, {"deleted": 2})
        self.assertEqual(seen["body"], {"recordIds": ["a", "b"]})

    async def test_query_params(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": []})

        async with ApiClient(base_url="http://api.test", transport=httpx.MockTransport(handler)) as client:
            await client.request("GET", "/tasks", params={"page": "2"})
        self.assertEqual(seen["params"], {"page": "2"})

    async def test_transport_failure_is_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with ApiClient(base_url="http://api.test", transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(HTTPError) as ctx:
                await client.request("GET", "/tasks")
        self.assertEqual(ctx.exception.code, "TRANSPORT_ERROR")
        self.assertIsNone(ctx.exception.status_code)


class TestApiConfig(unittest.TestCase):
    def test_defaults(self) -> None:
        with mock.patch.dict(os.environ, {"DOCVIEW_API_BASE_URL": "", "DOCVIEW_API_TIMEOUT": ""}):
            self.assertEqual(api_config.api_base_url(), api_config.DEFAULT_BASE_URL)
            self.assertEqual(api_config.api_timeout(), api_config.DEFAULT_TIMEOUT)

    def test_overrides(self) -> None:
        with mock.patch.dict(os.environ, {"DOCVIEW_API_BASE_URL": "http://other/api/", "DOCVIEW_API_TIMEOUT": "2.5"}):
            self.assertEqual(api_config.api_base_url(), "http://other/api")
            self.assertEqual(api_config.api_timeout(), 2.5)

    def test_bad_timeout_falls_back(self) -> None:
        with mock.patch.dict(os.environ, {"DOCVIEW_API_TIMEOUT": "soon"}):
            with self.assertLogs("docview.config", level="WARNING"):
                self.assertEqual(api_config.api_timeout(), api_config.DEFAULT_TIMEOUT)

    def test_env_file_does_not_override(self) -> None:
        import tempfile
        from pathlib import Path

        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".env"
            path.write_text("# comment\nDOCVIEW_TEST_A=from-file\nDOCVIEW_TEST_B='quoted'\n", encoding="utf-8")
            with mock.patch.dict(os.environ, {"DOCVIEW_TEST_A": "from-env"}):
                api_config.load_env_file(path)
                self.assertEqual(os.environ["DOCVIEW_TEST_A"], "from-env")
                self.assertEqual(os.environ["DOCVIEW_TEST_B"], "quoted")


if __name__ == "__main__":
    unittest.main()
