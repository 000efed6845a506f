"""Models for benchmark results."""

import math
from collections.abc import Mapping, Sequence

from pydantic import Field

from mcp_test_harness.models.base import Model
from mcp_test_harness.models.result import ExecutionMetadata


class BenchmarkTestResult(Model):
    """Latency and throughput statistics for one benchmarked case."""

    test_name: str
    iterations_completed: int
    successful_iterations: int
    average_time_ms: float
    min_time_ms: float
    max_time_ms: float
    std_deviation_ms: float
    ops_per_second: float

    @classmethod
    def from_samples(
        cls, test_name: str, iterations_completed: int, samples: Sequence[float]
    ) -> "BenchmarkTestResult":
        """Compute statistics from latencies of successful iterations.

        Failed iterations count in iterations_completed but have no sample.
        With no samples every timing field is 0; the standard deviation uses
        the sample (n-1) formula and is 0 below two samples.
        """
        if not samples:
            return cls(
                test_name=test_name,
                iterations_completed=iterations_completed,
                successful_iterations=0,
                average_time_ms=0.0,
                min_time_ms=0.0,
                max_time_ms=0.0,
                std_deviation_ms=0.0,
                ops_per_second=0.0,
            )

        lowest, highest = min(samples), max(samples)
        # Clamped so rounding in the sum cannot push the mean past the extrema.
        mean = min(max(math.fsum(samples) / len(samples), lowest), highest)
        if len(samples) > 1:
            variance = math.fsum((t - mean) ** 2 for t in samples) / (len(samples) - 1)
        else:
            variance = 0.0

        return cls(
            test_name=test_name,
            iterations_completed=iterations_completed,
            successful_iterations=len(samples),
            average_time_ms=mean,
            min_time_ms=lowest,
            max_time_ms=highest,
            std_deviation_ms=math.sqrt(variance),
            ops_per_second=1000.0 / mean if mean > 0 else 0.0,
        )


class BenchmarkSummary(Model):
    """Run-wide benchmark figures."""

    total_iterations: int
    duration_seconds: float
    elapsed_seconds: float
    average_ops_per_second: float
    average_response_time_ms: float
    success_rate: float

    @classmethod
    def from_results(
        cls,
        results: Sequence[BenchmarkTestResult],
        duration_seconds: float,
        elapsed_seconds: float,
    ) -> "BenchmarkSummary":
        """Aggregate per-case results.

        Throughput is total attempts over wall clock time. The response time
        is the unweighted mean of the per-case means, cases without samples
        contributing 0.
        """
        total_iterations = sum(r.iterations_completed for r in results)
        total_successes = sum(r.successful_iterations for r in results)
        return cls(
            total_iterations=total_iterations,
            duration_seconds=duration_seconds,
            elapsed_seconds=elapsed_seconds,
            average_ops_per_second=(
                total_iterations / elapsed_seconds if elapsed_seconds > 0 else 0.0
            ),
            average_response_time_ms=(
                math.fsum(r.average_time_ms for r in results) / len(results)
                if results
                else 0.0
            ),
            success_rate=(
                total_successes / total_iterations if total_iterations > 0 else 0.0
            ),
        )


class PerformanceAnalysis(Model):
    """Findings derived from benchmark results."""

    bottlenecks: Sequence[str] = Field(default_factory=list)
    recommendations: Sequence[str] = Field(default_factory=list)
    resource_utilization: Mapping[str, float] = Field(default_factory=dict)


class BenchmarkResults(Model):
    """Complete result tree of a benchmark run."""

    benchmark_summary: BenchmarkSummary
    detailed_results: Sequence[BenchmarkTestResult]
    performance_analysis: PerformanceAnalysis = Field(
        default_factory=PerformanceAnalysis
    )
    execution_metadata: ExecutionMetadata
