"""Stdio transport implementation."""

import asyncio
import contextlib
import json
import logging
import os
import shlex
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from mcp_test_harness.servers.base import InitializationError, TransportError
from mcp_test_harness.servers.jsonrpc import (
    JsonRpcServer,
    build_notification,
    build_request,
    unwrap_response,
)
from mcp_test_harness.servers.stdio.config import StdioServerConfig

log = logging.getLogger(__name__)

# Large tool results arrive as a single line.
STREAM_LIMIT = 16 * 1024 * 1024


@dataclass(kw_only=True)
class StdioServer(JsonRpcServer):
    """Server spawned as a subprocess exchanging newline-delimited JSON-RPC.

    Responses are matched to requests by id, so concurrent calls may be in
    flight at once.
    """

    transport = "stdio"

    config: StdioServerConfig
    _process: asyncio.subprocess.Process | None = field(
        default=None, init=False, repr=False
    )
    _tasks: list[asyncio.Task[None]] = field(
        default_factory=list, init=False, repr=False
    )
    _pending: dict[int | str, asyncio.Future[Any]] = field(
        default_factory=dict, init=False, repr=False
    )
    _write_lock: asyncio.Lock = field(
        default_factory=asyncio.Lock, init=False, repr=False
    )

    @classmethod
    def from_config(cls, config: StdioServerConfig) -> "StdioServer":
        """Create an unstarted handle."""
        return cls(config=config)

    async def start(self) -> None:
        """Spawn the server process and perform the handshake."""
        argv = [self.config.command, *self.config.args]
        log.info("Starting server: %s", shlex.join(argv))

        try:
            self._process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.config.working_dir,
                env={**os.environ, **self.config.env},
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            raise InitializationError(f"Failed to start server: {e}") from e

        self._tasks = [
            asyncio.create_task(self._read_responses()),
            asyncio.create_task(self._drain_stderr()),
        ]

        try:
            await self.initialize()
        except TransportError as e:
            await self.stop()
            raise InitializationError(f"Failed to initialize server: {e}") from e

    async def stop(self) -> None:
        """Close stdin and wait for the process, killing it after the timeout."""
        process, self._process = self._process, None

        if process is not None:
            if process.stdin is not None:
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), self.config.shutdown_timeout)
            except TimeoutError:
                log.warning(
                    "Server did not exit within %.1fs, killing it",
                    self.config.shutdown_timeout,
                )
                process.kill()
                await process.wait()
            log.info("Server exited with code %s", process.returncode)

        for task in self._tasks:
            if task.done():
                if not task.cancelled() and (error := task.exception()):
                    log.warning("Server I/O task failed: %r", error)
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        self._fail_pending("Server stopped")

    async def request(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> Any:
        """Write a request line and wait for the matching response."""
        if self._process is None or not self._tasks or self._tasks[0].done():
            raise TransportError("Server process is not running")

        request_id = self.allocate_id()
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._write(build_request(request_id, method, params))
            message = await asyncio.wait_for(future, self.config.request_timeout)
        except TimeoutError as e:
            raise TransportError(
                f"Request {method} timed out after {self.config.request_timeout}s"
            ) from e
        finally:
            self._pending.pop(request_id, None)

        return unwrap_response(message)

    async def notify(
        self, method: str, params: Mapping[str, Any] | None = None
    ) -> None:
        """Write a notification line."""
        await self._write(build_notification(method, params))

    async def _write(self, payload: Mapping[str, Any]) -> None:
        if self._process is None or self._process.stdin is None:
            raise TransportError("Server process is not running")

        line = json.dumps(payload, separators=(",", ":")) + "\n"
        async with self._write_lock:
            try:
                self._process.stdin.write(line.encode())
                await self._process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise TransportError(f"Lost connection to server: {e}") from e

    async def _read_responses(self) -> None:
        assert self._process is not None and self._process.stdout is not None
        stdout = self._process.stdout
        reason = "Server closed its output stream"

        try:
            while line := await stdout.readline():
                try:
                    message = json.loads(line)
                except ValueError:
                    log.debug("Ignoring non-JSON server output: %r", line[:200])
                    continue

                # Notifications and server-initiated requests carry a method.
                if not isinstance(message, dict) or "method" in message:
                    continue

                message_id = message.get("id")
                if not isinstance(message_id, int | str):
                    log.warning("Ignoring response with invalid id: %r", message_id)
                    continue

                future = self._pending.get(message_id)
                if future is not None and not future.done():
                    future.set_result(message)
        except ValueError as e:
            reason = f"Unreadable server output: {e}"
            log.error("%s", reason)
        finally:
            self._fail_pending(reason)

    async def _drain_stderr(self) -> None:
        assert self._process is not None and self._process.stderr is not None
        try:
            while line := await self._process.stderr.readline():
                log.debug("server stderr: %s", line.decode(errors="replace").rstrip())
        except ValueError as e:
            log.debug("Stopped reading server stderr: %s", e)

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportError(reason))
        self._pending.clear()
