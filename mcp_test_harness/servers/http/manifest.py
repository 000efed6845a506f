"""HTTP transport manifest."""

from mcp_test_harness.servers.http.config import HttpServerConfig
from mcp_test_harness.servers.http.server import HttpServer
from mcp_test_harness.servers.manifest import ServerManifest

http_manifest = ServerManifest(
    config_cls=HttpServerConfig,
    server_factory=HttpServer.from_config,
)
