"""Async HTTP client that unwraps the ``{success, data, message}`` envelope."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

from app.api_config import api_base_url, api_timeout
from docview.endpoints import Endpoint
from docview.errors import EnvelopeError, HTTPError


logger = logging.getLogger("docview.api")


def _error_message(body: Any, default: str) -> str:
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, str) and message:
            return message
    return default


def unwrap_envelope(response: httpx.Response, path: str | None = None) -> Any:
    try:
        body = response.json() if response.content else None
    except ValueError:
        body = None

    if response.status_code >= 400:
        code = body.get("code") if isinstance(body, dict) and isinstance(body.get("code"), str) else f"HTTP_{response.status_code}"
        raise HTTPError(
            code,
            _error_message(body, f"Request failed with status {response.status_code}"),
            path,
            status_code=response.status_code,
            body=body if body is not None else response.text,
        )
    if response.status_code == 204:
        return None
    if not isinstance(body, dict) or "success" not in body:
        raise EnvelopeError("ENVELOPE_INVALID", "Response is not a {success, data} envelope", path, body=body)
    if body.get("success") is not True:
        code = body.get("code") if isinstance(body.get("code"), str) else "REQUEST_FAILED"
        raise EnvelopeError(code, _error_message(body, "Request was not successful"), path, body=body)
    return body.get("data")


class ApiClient:
    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict | None = None,
    ) -> None:
        merged = {"Content-Type": "application/json"}
        merged.update(headers or {})
        self._client = httpx.AsyncClient(
            base_url=base_url if base_url is not None else api_base_url(),
            timeout=timeout if timeout is not None else api_timeout(),
            transport=transport,
            headers=merged,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, path: str, json: Any = None, params: dict | None = None) -> Any:
        start = time.perf_counter()
        kwargs: dict = {}
        if json is not None:
            kwargs["json"] = json
        if params:
            kwargs["params"] = params
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("api_transport_error method=%s path=%s error=%s", method, path, exc)
            raise HTTPError("TRANSPORT_ERROR", str(exc) or exc.__class__.__name__, path) from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "api_request method=%s path=%s status=%s ms=%.1f",
            method,
            path,
            response.status_code,
            elapsed_ms,
        )
        return unwrap_envelope(response, path)

    async def call(self, endpoint: Endpoint, json: Any = None, params: dict | None = None) -> Any:
        return await self.request(endpoint.method, endpoint.path, json=json, params=params)
