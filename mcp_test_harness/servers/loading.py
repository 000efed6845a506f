"""Discovery of server transports registered as entry points."""

import logging
from importlib.metadata import entry_points
from typing import Any

from mcp_test_harness.servers.manifest import ServerManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "mcp_test_harness.servers"


class ServerNotFoundError(Exception):
    """Raised when no usable transport is registered under a key."""


def available_transports() -> list[str]:
    """Sorted keys of the installed transports."""
    return sorted({entry.name for entry in entry_points(group=ENTRY_POINT_GROUP)})


def load_server_manifest(key: str) -> ServerManifest[Any]:
    """Resolve a transport key to its manifest.

    Args:
        key: Transport key as used in the ``server.transport`` setting
             (e.g., "stdio", "http")

    Returns:
        The manifest registered under the key

    Raises:
        ServerNotFoundError: If the key is unknown or its entry point does
            not provide a ServerManifest

    """
    matches = entry_points(group=ENTRY_POINT_GROUP, name=key)
    if not matches:
        raise ServerNotFoundError(
            f"Server transport '{key}' not found. "
            f"Available transports: {', '.join(available_transports()) or 'none'}"
        )

    entry = next(iter(matches))
    manifest = entry.load()
    if not isinstance(manifest, ServerManifest):
        raise ServerNotFoundError(
            f"Entry point '{key}' ({entry.value}) is not a server manifest"
        )

    log.debug("Loaded server transport '%s' from %s", key, entry.value)
    return manifest
