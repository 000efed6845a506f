"""Timed benchmark loops producing latency and throughput statistics."""

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from mcp_test_harness.models.benchmark import BenchmarkSummary, BenchmarkTestResult
from mcp_test_harness.models.definition import TestCase, TestSuite
from mcp_test_harness.servers.base import ServerHandle

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class BenchmarkEngine:
    """Repeatedly invokes cases against a started server."""

    server: ServerHandle
    clock: Callable[[], float] = time.perf_counter

    async def benchmark_case(
        self,
        test_case: TestCase,
        max_iterations: int,
        duration_limit: float,
    ) -> BenchmarkTestResult:
        """Run a case until the iteration or time bound is reached.

        Args:
            test_case: Case to invoke
            max_iterations: Upper bound on attempts
            duration_limit: Seconds after which no new iteration starts

        Returns:
            Statistics over the successful iterations

        """
        log.debug("Benchmarking test case: %s", test_case.id)

        samples: list[float] = []
        iterations = 0
        start = self.clock()

        while iterations < max_iterations and self.clock() - start < duration_limit:
            iteration_start = self.clock()
            try:
                await self.server.call(test_case.tool_name, test_case.input_params)
            except Exception as e:
                log.debug("Iteration %d of %s failed: %s", iterations, test_case.id, e)
            else:
                samples.append((self.clock() - iteration_start) * 1000)
            iterations += 1

        result = BenchmarkTestResult.from_samples(test_case.id, iterations, samples)
        log.info(
            "Benchmarked %s: %d iteration(s), %.2fms avg (%.2f ops/sec)",
            test_case.id,
            result.iterations_completed,
            result.average_time_ms,
            result.ops_per_second,
        )
        return result

    async def run(
        self,
        test_suites: Sequence[TestSuite],
        max_iterations: int,
        duration_limit: float,
    ) -> tuple[list[BenchmarkTestResult], BenchmarkSummary]:
        """Benchmark every enabled case of every suite in declared order."""
        start = self.clock()
        results = [
            await self.benchmark_case(test_case, max_iterations, duration_limit)
            for suite in test_suites
            for test_case in suite.enabled_cases
        ]
        summary = BenchmarkSummary.from_results(
            results,
            duration_seconds=duration_limit,
            elapsed_seconds=self.clock() - start,
        )
        return results, summary
