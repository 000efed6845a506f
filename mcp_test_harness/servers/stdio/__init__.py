"""Stdio subprocess transport module."""

from mcp_test_harness.servers.stdio.config import StdioServerConfig
from mcp_test_harness.servers.stdio.manifest import stdio_manifest
from mcp_test_harness.servers.stdio.server import StdioServer

__all__ = ["StdioServer", "StdioServerConfig", "stdio_manifest"]
