"""Test orchestrator for coordinating suite execution against one server."""

import logging
import platform
import time
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version

from mcp_test_harness.benchmark import BenchmarkEngine
from mcp_test_harness.executor import CaseExecutor, SuiteExecutor
from mcp_test_harness.models.benchmark import BenchmarkResults
from mcp_test_harness.models.definition import TestConfig
from mcp_test_harness.models.result import (
    ExecutionMetadata,
    PerformanceData,
    PerformanceMetrics,
    ServerInfo,
    SuiteResult,
    TestResults,
    TestSummary,
)
from mcp_test_harness.servers.base import (
    InitializationError,
    ServerHandle,
    TransportError,
)
from mcp_test_harness.validation import TestValidator

log = logging.getLogger(__name__)

DISTRIBUTION_NAME = "mcp-test-harness"


def harness_version() -> str:
    """Version of the installed harness distribution."""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "unknown"


def execution_environment() -> str:
    """Descriptor of the host, e.g. ``linux_x86_64``."""
    return f"{platform.system().lower()}_{platform.machine()}"


@dataclass(frozen=True, kw_only=True)
class TestOrchestrator:
    """Runs configured suites against a server it owns for the whole run.

    Fail-fast stops the remaining cases of the current suite only; every
    configured suite is always executed.
    """

    __test__ = False

    config: TestConfig
    server_factory: Callable[[], ServerHandle] | None = None
    validator: TestValidator = field(default_factory=TestValidator)
    validation_only: bool = False
    parallel_execution: int | None = None
    fail_fast: bool | None = None
    comprehensive: bool = False
    clock: Callable[[], float] = time.perf_counter

    async def run(self) -> TestResults:
        """Execute every suite and return the aggregated results.

        Raises:
            InitializationError: If the server fails to start or is unhealthy

        """
        start_time = datetime.now(timezone.utc)
        start = self.clock()
        log.info(
            "Starting test execution with %d test suite(s)",
            len(self.config.test_suites),
        )

        if self.validation_only:
            log.info("Validation-only mode, the server will not be contacted")
            suite_results = await self._run_suites(None)
            server_info = None
        else:
            async with self._started_server() as server:
                suite_results = await self._run_suites(server)
                server_info = server.server_info

        summary = TestSummary.from_suites(suite_results, self.clock() - start)
        results = TestResults(
            summary=summary,
            suite_results=suite_results,
            performance_data=self._performance_data(suite_results),
            execution_metadata=self._metadata(start_time, server_info),
        )

        log.info(
            "Test execution completed: %d/%d passed",
            summary.passed_tests,
            summary.total_tests,
        )
        return results

    async def run_benchmark(
        self, iterations: int, duration: float
    ) -> BenchmarkResults:
        """Benchmark every enabled case.

        Args:
            iterations: Maximum iterations per case
            duration: Seconds after which a case stops being iterated

        """
        log.info(
            "Starting benchmark with %d iterations over %ss", iterations, duration
        )
        start_time = datetime.now(timezone.utc)

        async with self._started_server() as server:
            engine = BenchmarkEngine(server=server, clock=self.clock)
            detailed_results, summary = await engine.run(
                self.config.test_suites, iterations, duration
            )
            server_info = server.server_info

        return BenchmarkResults(
            benchmark_summary=summary,
            detailed_results=detailed_results,
            execution_metadata=self._metadata(start_time, server_info),
        )

    @asynccontextmanager
    async def _started_server(self) -> AsyncGenerator[ServerHandle, None]:
        """Start and health-check the server, stopping it on every exit path."""
        if self.server_factory is None:
            raise InitializationError("No server configured")

        log.info("Initializing server")
        server = self.server_factory()
        try:
            await server.start()
        except TransportError as e:
            await server.stop()
            raise InitializationError(f"Failed to start server: {e}") from e

        try:
            healthy = await server.wait_until_healthy(
                timeout=self.config.global_settings.health_check_timeout
            )
            if not healthy:
                raise InitializationError("Server failed health check")
            yield server
        finally:
            log.info("Stopping server")
            await server.stop()

    async def _run_suites(self, server: ServerHandle | None) -> list[SuiteResult]:
        settings = self.config.global_settings
        suite_executor = SuiteExecutor(
            case_executor=CaseExecutor(
                server=server,
                validator=self.validator,
                comprehensive=self.comprehensive,
                clock=self.clock,
            ),
            parallel_execution=(
                self.parallel_execution
                if self.parallel_execution is not None
                else settings.parallel_execution
            ),
            fail_fast=(
                self.fail_fast if self.fail_fast is not None else settings.fail_fast
            ),
            clock=self.clock,
        )

        suite_results: list[SuiteResult] = []
        for suite in self.config.test_suites:
            log.info("Executing test suite: %s", suite.name)
            suite_results.append(await suite_executor.run_suite(suite))
        return suite_results

    def _performance_data(
        self, suite_results: Sequence[SuiteResult]
    ) -> PerformanceData | None:
        if not self.comprehensive:
            return None

        executed = [
            result
            for suite_result in suite_results
            for result in suite_result.test_case_results
            if result.status != "skipped"
        ]
        return PerformanceData(
            overall_metrics=PerformanceMetrics(
                execution_time_ms=sum(r.execution_time_ms for r in executed),
                network_requests=0 if self.validation_only else len(executed),
            )
        )

    def _metadata(
        self, start_time: datetime, server_info: ServerInfo | None
    ) -> ExecutionMetadata:
        return ExecutionMetadata(
            start_time=start_time,
            end_time=datetime.now(timezone.utc),
            execution_environment=execution_environment(),
            test_harness_version=harness_version(),
            server_info=server_info,
        )
