"""Abstract base class for handles on the server under test."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from mcp_test_harness.models.result import ServerInfo

log = logging.getLogger(__name__)


class TransportError(Exception):
    """Raised when a request to the server fails at the transport or protocol level."""


class InitializationError(Exception):
    """Raised when the server fails to start or to pass its health check."""


@dataclass(kw_only=True)
class ServerHandle(ABC):
    """Lifecycle and request/response access to one server under test.

    A handle is shared by every case of a run. Only the orchestrator starts
    and stops it; implementations must tolerate concurrent ``call`` use once
    started.
    """

    transport: ClassVar[str]

    @abstractmethod
    async def start(self) -> None:
        """Start the server or connect to it and perform the handshake.

        Raises:
            InitializationError: If the server cannot be started

        """

    @abstractmethod
    async def stop(self) -> None:
        """Release the server process or connection."""

    @abstractmethod
    async def health_check(self) -> bool:
        """Return whether the server answers a liveness probe.

        Raises:
            TransportError: If the probe could not be sent or answered

        """

    @abstractmethod
    async def call(self, operation_name: str, params: Mapping[str, Any]) -> Any:
        """Invoke a tool and return the raw JSON result.

        Args:
            operation_name: Tool name
            params: Tool arguments

        Returns:
            Decoded result payload

        Raises:
            TransportError: On connection loss, timeout or protocol error

        """

    @property
    def server_info(self) -> ServerInfo | None:
        """Identity reported by the server, if known."""
        return None

    async def wait_until_healthy(
        self,
        timeout: float = 30,
        poll_interval: float = 0.5,
    ) -> bool:
        """Poll the health check until it succeeds.

        Args:
            timeout: Maximum wait time in seconds
            poll_interval: Seconds between probes

        Returns:
            True once a probe succeeds, False if the timeout elapsed first

        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            try:
                if await self.health_check():
                    return True
            except TransportError as e:
                log.debug("Health check failed: %s", e)

            if loop.time() >= deadline:
                return False

            await asyncio.sleep(poll_interval)
