"""Integration tests for the stdio transport against a scripted server process."""

import asyncio
import json
import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest

from mcp_test_harness.models.definition import (
    ServerSettings,
    TestCase,
    TestConfig,
    TestSuite,
)
from mcp_test_harness.orchestrator import TestOrchestrator
from mcp_test_harness.servers.base import InitializationError, TransportError
from mcp_test_harness.servers.stdio import StdioServer, StdioServerConfig
from mcp_test_harness.servers.stdio import server as stdio_server_module

SERVER_SCRIPT = """
import json
import os
import sys
import time

print("booting", file=sys.stderr, flush=True)
print("not json", flush=True)


def reply(message_id, result=None, error=None):
    response = {"jsonrpc": "2.0", "id": message_id}
    if error is not None:
        response["error"] = error
    else:
        response["result"] = result
    print(json.dumps(response), flush=True)


for line in sys.stdin:
    message = json.loads(line)
    if "id" not in message:
        continue
    method = message["method"]
    if method == "initialize":
        reply(
            message["id"],
            {
                "protocolVersion": "2024-11-05",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "scripted", "version": "0.9"},
            },
        )
    elif method == "ping":
        print(json.dumps({"jsonrpc": "2.0", "method": "notifications/message"}))
        reply(message["id"], {})
    elif method == "tools/call":
        name = message["params"]["name"]
        arguments = message["params"]["arguments"]
        if name == "crash":
            sys.exit(3)
        if name == "slow":
            time.sleep(30)
        if name == "bad-id":
            reply([message["id"]], {})
            continue
        if name == "huge":
            print("x" * 4096, flush=True)
            continue
        if name == "echo":
            text = json.dumps(arguments)
        elif name == "env":
            text = os.environ.get(arguments["name"], "")
        elif name == "cwd":
            text = os.getcwd()
        else:
            reply(message["id"], error={"code": -32602, "message": "Unknown tool"})
            continue
        reply(
            message["id"],
            {"content": [{"type": "text", "text": text}], "isError": False},
        )
    else:
        reply(message["id"], error={"code": -32601, "message": "Method not found"})
"""


@pytest.fixture
def script_path(tmp_path: Path) -> Path:
    """Write the scripted MCP server."""
    path = tmp_path / "server.py"
    path.write_text(SERVER_SCRIPT)
    return path


@pytest.fixture
def config(script_path: Path) -> StdioServerConfig:
    """Create configuration spawning the scripted server."""
    return StdioServerConfig(
        command=sys.executable,
        args=[str(script_path)],
        env={"HARNESS_MARKER": "present"},
        request_timeout=5.0,
        shutdown_timeout=1.0,
    )


@pytest.fixture
async def server(config: StdioServerConfig) -> AsyncGenerator[StdioServer, None]:
    """Create a started server."""
    impl = StdioServer.from_config(config)
    await impl.start()
    try:
        yield impl
    finally:
        await impl.stop()


def _text(result: dict) -> str:
    return result["content"][0]["text"]


class TestLifecycle:
    """Tests for process start and stop."""

    async def test_start_performs_handshake(self, server: StdioServer) -> None:
        """Server identity is reported after start."""
        assert server.server_info is not None
        assert server.server_info.server_type == "scripted"
        assert server.server_info.version == "0.9"
        assert server.server_info.capabilities == {"tools": {}}
        assert server.server_info.transport == "stdio"

    async def test_missing_executable(self, tmp_path: Path) -> None:
        """Unspawnable commands fail start."""
        server = StdioServer.from_config(
            StdioServerConfig(command=str(tmp_path / "does-not-exist"))
        )

        with pytest.raises(InitializationError, match="Failed to start server"):
            await server.start()

    async def test_process_exiting_before_handshake(self) -> None:
        """A process that exits at once fails start."""
        server = StdioServer.from_config(
            StdioServerConfig(command=sys.executable, args=["-c", "pass"])
        )

        with pytest.raises(InitializationError, match="Failed to initialize"):
            await server.start()

    async def test_stop_kills_unresponsive_process(
        self, config: StdioServerConfig
    ) -> None:
        """A process that ignores stdin closing is killed after the timeout."""
        server = StdioServer.from_config(
            config.model_copy(update={"request_timeout": 0.2, "shutdown_timeout": 0.2})
        )
        await server.start()
        with pytest.raises(TransportError):
            await server.call("slow", {})

        await asyncio.wait_for(server.stop(), timeout=5)

        with pytest.raises(TransportError, match="not running"):
            await server.call("echo", {})

    async def test_stop_before_start(self, config: StdioServerConfig) -> None:
        """Stopping an unstarted handle is harmless."""
        await StdioServer.from_config(config).stop()


class TestCall:
    """Tests for tool invocation."""

    async def test_returns_tool_result(self, server: StdioServer) -> None:
        """Results are matched to the request."""
        result = await server.call("echo", {"text": "hi"})

        assert json.loads(_text(result)) == {"text": "hi"}

    async def test_concurrent_calls(self, server: StdioServer) -> None:
        """Concurrent requests each receive their own response."""
        results = await asyncio.gather(
            *(server.call("echo", {"n": n}) for n in range(5))
        )

        assert [json.loads(_text(r)) for r in results] == [{"n": n} for n in range(5)]

    async def test_passes_environment(self, server: StdioServer) -> None:
        """Configured environment variables reach the process."""
        result = await server.call("env", {"name": "HARNESS_MARKER"})

        assert _text(result) == "present"

    async def test_uses_working_dir(
        self, config: StdioServerConfig, tmp_path: Path
    ) -> None:
        """The process runs in the configured working directory."""
        workdir = tmp_path / "work"
        workdir.mkdir()
        server = StdioServer.from_config(
            config.model_copy(update={"working_dir": str(workdir)})
        )
        await server.start()
        try:
            result = await server.call("cwd", {})
        finally:
            await server.stop()

        assert Path(_text(result)).resolve() == workdir.resolve()

    async def test_json_rpc_error(self, server: StdioServer) -> None:
        """Error responses raise transport errors."""
        with pytest.raises(TransportError, match="Unknown tool"):
            await server.call("missing", {})

    async def test_timeout(self, config: StdioServerConfig) -> None:
        """Requests without a response in time raise transport errors."""
        server = StdioServer.from_config(
            config.model_copy(update={"request_timeout": 0.2, "shutdown_timeout": 0.2})
        )
        await server.start()
        try:
            with pytest.raises(TransportError, match="timed out"):
                await server.call("slow", {})
        finally:
            await server.stop()

    async def test_process_exit_fails_request(self, server: StdioServer) -> None:
        """A crash fails the in-flight request and later requests."""
        with pytest.raises(TransportError, match="closed its output"):
            await server.call("crash", {})

        with pytest.raises(TransportError, match="not running"):
            await server.call("echo", {})


class TestHealthCheck:
    """Tests for the ping probe."""

    async def test_ping_ignores_interleaved_notifications(
        self, server: StdioServer
    ) -> None:
        """Notifications sent before the response are skipped."""
        assert await server.health_check() is True

    async def test_wait_until_healthy(self, server: StdioServer) -> None:
        """A running server is healthy at the first probe."""
        assert await server.wait_until_healthy(timeout=1, poll_interval=0.01)


class TestMalformedOutput:
    """Tests for servers writing responses the transport cannot match."""

    async def test_invalid_response_id_is_ignored(
        self, config: StdioServerConfig
    ) -> None:
        """A response with a non-scalar id times out; the reader survives."""
        server = StdioServer.from_config(
            config.model_copy(update={"request_timeout": 0.5})
        )
        await server.start()
        try:
            with pytest.raises(TransportError, match="timed out"):
                await server.call("bad-id", {})

            result = await server.call("echo", {"after": True})
        finally:
            await server.stop()

        assert json.loads(_text(result)) == {"after": True}

    async def test_overlong_line_fails_pending_request(
        self, config: StdioServerConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Lines past the stream limit fail the request at once and stop cleanly."""
        monkeypatch.setattr(stdio_server_module, "STREAM_LIMIT", 1024)
        server = StdioServer.from_config(config)
        await server.start()
        try:
            with pytest.raises(TransportError, match="Unreadable server output"):
                await asyncio.wait_for(server.call("huge", {}), timeout=3)
        finally:
            await server.stop()

    async def test_run_reports_invalid_response_as_error(
        self, config: StdioServerConfig
    ) -> None:
        """The run still produces a report with the affected case as error."""
        server_config = config.model_copy(update={"request_timeout": 0.5})
        orchestrator = TestOrchestrator(
            config=TestConfig(
                server=ServerSettings(transport="stdio"),
                test_suites=[
                    TestSuite(
                        name="malformed",
                        test_cases=[
                            TestCase(id="a", tool_name="bad-id"),
                            TestCase(id="b", tool_name="echo"),
                        ],
                    )
                ],
            ),
            server_factory=lambda: StdioServer.from_config(server_config),
        )

        results = await orchestrator.run()

        statuses = [r.status for r in results.suite_results[0].test_case_results]
        assert statuses == ["error", "passed"]
        assert results.summary.failed_tests == 1
