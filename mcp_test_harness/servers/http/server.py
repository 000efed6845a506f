"""Streamable HTTP transport implementation."""

import json
import logging
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from mcp_test_harness.servers.base import InitializationError, TransportError
from mcp_test_harness.servers.http.config import HttpServerConfig
from mcp_test_harness.servers.jsonrpc import (
    JsonRpcServer,
    build_notification,
    build_request,
    unwrap_response,
)

log = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"


def parse_event_stream(text: str, request_id: int) -> Any:
    """Return the JSON-RPC message answering ``request_id`` from an SSE body."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    for block in text.split("\n\n"):
        data_lines = [
            line[len("data:") :].strip()
            for line in block.splitlines()
            if line.startswith("data:")
        ]
        if not data_lines:
            continue
        try:
            message = json.loads("\n".join(data_lines))
        except json.JSONDecodeError as e:
            raise TransportError(f"Malformed event stream data: {e}") from e
        if isinstance(message, dict) and message.get("id") == request_id:
            return message

    raise TransportError(f"No response for request {request_id} in event stream")


@dataclass(kw_only=True)
class HttpServer(JsonRpcServer):
    """Server reached over the MCP streamable HTTP transport."""

    transport = "http"

    config: HttpServerConfig
    _session: aiohttp.ClientSession | None = field(
        default=None, init=False, repr=False
    )
    _session_id: str | None = field(default=None, init=False, repr=False)

    @classmethod
    def from_config(cls, config: HttpServerConfig) -> "HttpServer":
        """Create an unstarted handle."""
        return cls(config=config)

    async def start(self) -> None:
        """Open the HTTP session and perform the handshake."""
        headers = {
            "Accept": "application/json, text/event-stream",
            **self.config.headers,
        }
        if self.config.token is not None:
            headers["Authorization"] = f"Bearer {self.config.token.get_secret_value()}"

        log.info("Connecting to %s%s", self.config.base_url, self.config.endpoint)
        self._session = aiohttp.ClientSession(
            base_url=self.config.base_url,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.config.timeout),
        )
        try:
            await self.initialize()
        except TransportError as e:
            await self.stop()
            raise InitializationError(f"Failed to initialize server: {e}") from e

    async def stop(self) -> None:
        """Close the HTTP session."""
        if self._session is not None:
            await self._session.close()
            self._session = None
            self._session_id = None

    async def request(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        """POST a request and decode the JSON or event-stream response."""
        request_id = self.allocate_id()
        payload = build_request(request_id, method, params)

        try:
            async with self._post(payload) as response:
                if response.status != 200:
                    text = await response.text()
                    raise TransportError(
                        f"Request {method} failed: {response.status} {text}"
                    )
                if session_id := response.headers.get(SESSION_HEADER):
                    self._session_id = session_id

                if response.content_type == "text/event-stream":
                    data = parse_event_stream(await response.text(), request_id)
                else:
                    data = await response.json()
        except json.JSONDecodeError as e:
            raise TransportError(f"Malformed response to {method}: {e}") from e
        except (aiohttp.ClientError, TimeoutError) as e:
            raise TransportError(f"Request {method} failed: {e!r}") from e

        return unwrap_response(data)

    async def notify(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> None:
        """POST a notification."""
        try:
            async with self._post(build_notification(method, params)) as response:
                if response.status not in {200, 202, 204}:
                    text = await response.text()
                    raise TransportError(
                        f"Notification {method} failed: {response.status} {text}"
                    )
        except (aiohttp.ClientError, TimeoutError) as e:
            raise TransportError(f"Notification {method} failed: {e!r}") from e

    def _post(
        self, payload: Mapping[str, Any]
    ) -> AbstractAsyncContextManager[aiohttp.ClientResponse]:
        if self._session is None:
            raise TransportError("Server not started")
        headers = {SESSION_HEADER: self._session_id} if self._session_id else None
        return self._session.post(self.config.endpoint, json=payload, headers=headers)
