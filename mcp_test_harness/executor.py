"""Execution of test cases and suites against the server under test."""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from mcp_test_harness.models.definition import TestCase, TestSuite
from mcp_test_harness.models.result import (
    PerformanceMetrics,
    SuiteResult,
    SuiteSummary,
    TestCaseResult,
    derive_status,
)
from mcp_test_harness.servers.base import ServerHandle
from mcp_test_harness.validation import TestValidator

log = logging.getLogger(__name__)


def _elapsed_ms(clock: Callable[[], float], start: float) -> float:
    return (clock() - start) * 1000


@dataclass(frozen=True, kw_only=True)
class CaseExecutor:
    """Runs a single case and classifies its outcome.

    Without a server the executor is in validation-only mode and checks case
    definitions alone.
    """

    server: ServerHandle | None
    validator: TestValidator = field(default_factory=TestValidator)
    comprehensive: bool = False
    clock: Callable[[], float] = time.perf_counter

    @property
    def validation_only(self) -> bool:
        """Whether cases are checked without contacting the server."""
        return self.server is None

    async def run_case(self, test_case: TestCase) -> TestCaseResult:
        """Execute one case; never raises for transport or validation failures."""
        if not test_case.enabled:
            return TestCaseResult(
                test_id=test_case.id,
                test_name=test_case.tool_name,
                status="skipped",
                execution_time_ms=0.0,
                error_message="Test case disabled",
            )

        log.debug("Running test case: %s (%s)", test_case.id, test_case.tool_name)
        start = self.clock()

        if self.server is None:
            validation_results = self.validator.validate_case_definition(test_case)
            return TestCaseResult(
                test_id=test_case.id,
                test_name=test_case.tool_name,
                status=derive_status(validation_results),
                execution_time_ms=_elapsed_ms(self.clock, start),
                validation_results=validation_results,
            )

        try:
            response = await self.server.call(
                test_case.tool_name, test_case.input_params
            )
        except Exception as e:
            elapsed = _elapsed_ms(self.clock, start)
            log.warning("Test case %s errored: %s", test_case.id, e)
            return TestCaseResult(
                test_id=test_case.id,
                test_name=test_case.tool_name,
                status="error",
                execution_time_ms=elapsed,
                error_message=str(e) or type(e).__name__,
                performance_metrics=self._metrics(elapsed),
            )

        validation_results = self.validator.validate_response(test_case, response)
        status = derive_status(validation_results)
        elapsed = _elapsed_ms(self.clock, start)
        if status == "failed":
            log.info(
                "Test case %s failed: %s",
                test_case.id,
                "; ".join(r.message for r in validation_results if not r.passed),
            )

        return TestCaseResult(
            test_id=test_case.id,
            test_name=test_case.tool_name,
            status=status,
            execution_time_ms=elapsed,
            response=response,
            validation_results=validation_results,
            performance_metrics=self._metrics(elapsed),
        )

    def _metrics(self, elapsed_ms: float) -> PerformanceMetrics | None:
        if not self.comprehensive:
            return None
        return PerformanceMetrics(execution_time_ms=elapsed_ms, network_requests=1)


@dataclass(frozen=True, kw_only=True)
class SuiteExecutor:
    """Runs the cases of a suite sequentially or with bounded parallelism."""

    case_executor: CaseExecutor
    parallel_execution: int = 1
    fail_fast: bool = False
    clock: Callable[[], float] = time.perf_counter

    def __post_init__(self) -> None:
        if self.parallel_execution < 1:
            raise ValueError("parallel_execution must be at least 1")

    async def run_suite(self, suite: TestSuite) -> SuiteResult:
        """Execute a suite and summarize the cases that actually ran.

        Cases not started because of fail-fast are absent from the results.
        """
        start = self.clock()
        if self.parallel_execution > 1:
            log.info(
                "Running suite '%s' with parallel execution (%d)",
                suite.name,
                self.parallel_execution,
            )
            results = await self._run_parallel(suite.test_cases)
        else:
            results = await self._run_sequential(suite.test_cases)

        summary = SuiteSummary.from_results(
            results,
            declared_cases=len(suite.test_cases),
            execution_time_seconds=self.clock() - start,
        )
        log.info(
            "Suite '%s' finished: %d passed, %d failed, %d skipped "
            "(%d of %d executed)",
            suite.name,
            summary.passed_cases,
            summary.failed_cases,
            summary.skipped_cases,
            summary.total_cases,
            summary.declared_cases,
        )
        return SuiteResult(
            suite_name=suite.name,
            test_case_results=results,
            suite_summary=summary,
        )

    async def _run_sequential(
        self, test_cases: Sequence[TestCase]
    ) -> list[TestCaseResult]:
        results: list[TestCaseResult] = []
        for test_case in test_cases:
            result = await self.case_executor.run_case(test_case)
            results.append(result)

            if self.fail_fast and result.is_failure:
                log.warning("Fail-fast enabled, stopping suite execution")
                break
        return results

    async def _run_parallel(
        self, test_cases: Sequence[TestCase]
    ) -> list[TestCaseResult]:
        queue: asyncio.Queue[tuple[int, TestCase]] = asyncio.Queue()
        for item in enumerate(test_cases):
            queue.put_nowait(item)

        by_index: dict[int, TestCaseResult] = {}
        stop = asyncio.Event()

        async def worker() -> None:
            while not stop.is_set():
                try:
                    index, test_case = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return

                result = await self.case_executor.run_case(test_case)
                by_index[index] = result

                if self.fail_fast and result.is_failure and not stop.is_set():
                    log.warning("Fail-fast enabled, no further cases will be started")
                    stop.set()

        workers = min(self.parallel_execution, len(test_cases))
        async with asyncio.TaskGroup() as group:
            for _ in range(workers):
                group.create_task(worker())

        return [by_index[index] for index in sorted(by_index)]
