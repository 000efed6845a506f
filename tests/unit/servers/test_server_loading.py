"""Tests for server transport loading module."""

import pytest
from pydantic import ValidationError

from mcp_test_harness.servers.http import HttpServer, HttpServerConfig, http_manifest
from mcp_test_harness.servers.loading import (
    ServerNotFoundError,
    available_transports,
    load_server_manifest,
)
from mcp_test_harness.servers.stdio import (
    StdioServer,
    StdioServerConfig,
    stdio_manifest,
)


def test_load_server_manifest_returns_stdio_manifest() -> None:
    """Loads the stdio manifest by key."""
    manifest = load_server_manifest("stdio")

    assert manifest is stdio_manifest
    assert manifest.config_cls is StdioServerConfig


def test_load_server_manifest_returns_http_manifest() -> None:
    """Loads the HTTP manifest by key."""
    manifest = load_server_manifest("http")

    assert manifest is http_manifest
    assert manifest.config_cls is HttpServerConfig


def test_manifest_factory_builds_unstarted_handle() -> None:
    """The factory turns a validated config into a handle."""
    config = StdioServerConfig(command="python", args=["server.py"])

    server = stdio_manifest.server_factory(config)

    assert isinstance(server, StdioServer)
    assert server.config is config
    assert server.server_info is None


def test_http_factory_builds_handle() -> None:
    """The HTTP factory keeps the config."""
    config = HttpServerConfig(base_url="http://mcp.test")

    server = http_manifest.server_factory(config)

    assert isinstance(server, HttpServer)
    assert server.transport == "http"


def test_load_server_manifest_raises_for_unknown_transport() -> None:
    """Raises ServerNotFoundError for unknown transport key."""
    with pytest.raises(ServerNotFoundError) as exc_info:
        load_server_manifest("carrier-pigeon")

    assert "carrier-pigeon" in str(exc_info.value)
    assert "Available transports" in str(exc_info.value)


def test_available_transports_lists_builtin_keys() -> None:
    """Both bundled transports are registered."""
    assert {"http", "stdio"} <= set(available_transports())


def test_bind_validates_options() -> None:
    """Bound factories build a fresh handle from validated options."""
    factory = http_manifest.bind({"base_url": "http://mcp.test", "timeout": 5})

    first, second = factory(), factory()

    assert isinstance(first, HttpServer)
    assert first is not second
    assert first.config.timeout == 5.0


def test_bind_rejects_invalid_options() -> None:
    """Option errors surface as pydantic validation errors."""
    with pytest.raises(ValidationError):
        stdio_manifest.bind({"args": ["server.py"]})
