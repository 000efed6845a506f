"""JSON-RPC 2.0 framing and the MCP handshake shared by all transports."""

import logging
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from mcp_test_harness.models.result import ServerInfo
from mcp_test_harness.servers.base import ServerHandle, TransportError

log = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
CLIENT_INFO = {"name": "mcp-test-harness", "version": "1.0"}


class JsonRpcError(BaseModel):
    """Error object of a JSON-RPC response."""

    code: int
    message: str
    data: Any | None = None


class JsonRpcResponse(BaseModel):
    """A JSON-RPC 2.0 response."""

    jsonrpc: Literal["2.0"]
    id: int | str | None = None
    result: Any | None = None
    error: JsonRpcError | None = None


class InitializeResult(BaseModel):
    """Subset of the MCP initialize result used for server introspection."""

    protocolVersion: str | None = None
    capabilities: dict[str, Any] | None = None
    serverInfo: dict[str, Any] | None = None


def build_request(
    request_id: int, method: str, params: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Build a JSON-RPC request payload."""
    payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        payload["params"] = dict(params)
    return payload


def build_notification(
    method: str, params: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Build a JSON-RPC notification payload (no id, no response)."""
    payload: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        payload["params"] = dict(params)
    return payload


def unwrap_response(data: Any) -> Any:
    """Return the result of a JSON-RPC response or raise TransportError."""
    try:
        response = JsonRpcResponse.model_validate(data)
    except ValidationError as e:
        raise TransportError(f"Malformed JSON-RPC response: {e}") from e

    if response.error is not None:
        raise TransportError(
            f"JSON-RPC error {response.error.code}: {response.error.message}"
        )
    return response.result


@dataclass(kw_only=True)
class JsonRpcServer(ServerHandle):
    """Server handle speaking MCP over a JSON-RPC transport.

    Subclasses provide the framing (``request`` and ``notify``); this class
    implements the handshake, the liveness probe and tool invocation.
    """

    _server_info: ServerInfo | None = field(default=None, init=False, repr=False)
    _next_id: int = field(default=0, init=False, repr=False)

    @abstractmethod
    async def request(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        """Send a request and return its result.

        Raises:
            TransportError: On transport failure or a JSON-RPC error response

        """

    @abstractmethod
    async def notify(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> None:
        """Send a notification."""

    def allocate_id(self) -> int:
        """Return the next request id."""
        self._next_id += 1
        return self._next_id

    @property
    def server_info(self) -> ServerInfo | None:
        """Identity reported in the initialize result."""
        return self._server_info

    async def initialize(self) -> None:
        """Perform the MCP initialize handshake."""
        result = await self.request(
            "initialize",
            {
                "protocolVersion": PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        try:
            init = InitializeResult.model_validate(result or {})
        except ValidationError as e:
            raise TransportError(f"Malformed initialize result: {e}") from e

        server_info = init.serverInfo or {}
        self._server_info = ServerInfo(
            server_type=str(server_info.get("name", "unknown")),
            version=server_info.get("version"),
            capabilities=init.capabilities,
            transport=self.transport,
        )
        log.info(
            "Connected to server %s %s (protocol %s)",
            self._server_info.server_type,
            self._server_info.version or "",
            init.protocolVersion,
        )
        await self.notify("notifications/initialized")

    async def health_check(self) -> bool:
        """Send a ping request."""
        await self.request("ping")
        return True

    async def call(self, operation_name: str, params: Mapping[str, Any]) -> Any:
        """Invoke a tool with tools/call."""
        return await self.request(
            "tools/call", {"name": operation_name, "arguments": dict(params)}
        )
