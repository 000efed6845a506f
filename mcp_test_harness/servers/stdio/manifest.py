"""Stdio transport manifest."""

from mcp_test_harness.servers.manifest import ServerManifest
from mcp_test_harness.servers.stdio.config import StdioServerConfig
from mcp_test_harness.servers.stdio.server import StdioServer

stdio_manifest = ServerManifest(
    config_cls=StdioServerConfig,
    server_factory=StdioServer.from_config,
)
