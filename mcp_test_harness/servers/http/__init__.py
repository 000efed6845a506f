"""Streamable HTTP transport module."""

from mcp_test_harness.servers.http.config import HttpServerConfig
from mcp_test_harness.servers.http.manifest import http_manifest
from mcp_test_harness.servers.http.server import HttpServer

__all__ = ["HttpServer", "HttpServerConfig", "http_manifest"]
