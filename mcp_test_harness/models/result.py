"""Models for test execution results."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from mcp_test_harness.models.base import Model

type TestStatus = Literal["passed", "failed", "skipped", "error"]

type AlertSeverity = Literal["warning", "error", "critical"]


class ValidationResult(Model):
    """Verdict of a single validation rule."""

    rule_name: str
    passed: bool
    message: str
    score: float | None = None


def derive_status(
    validation_results: Sequence[ValidationResult],
) -> Literal["passed", "failed"]:
    """Return passed iff every rule passed (an empty list passes)."""
    return "passed" if all(r.passed for r in validation_results) else "failed"


class PerformanceMetrics(Model):
    """Timing and resource metrics; unmeasured values stay None."""

    execution_time_ms: float
    memory_peak_mb: float | None = None
    memory_average_mb: float | None = None
    cpu_usage_percent: float | None = None
    network_requests: int | None = None


class TestCaseResult(Model):
    """Result of a single test case execution."""

    __test__ = False

    test_id: str
    test_name: str
    status: TestStatus
    execution_time_ms: float
    memory_usage_mb: float | None = None
    error_message: str | None = None
    response: Any | None = None
    validation_results: Sequence[ValidationResult] = Field(default_factory=list)
    performance_metrics: PerformanceMetrics | None = None

    @property
    def is_failure(self) -> bool:
        """Whether the case counts as failed (error cases included)."""
        return self.status in {"failed", "error"}


class SuiteSummary(Model):
    """Counts for one suite, derived from its executed case results."""

    total_cases: int
    passed_cases: int
    failed_cases: int
    skipped_cases: int
    declared_cases: int
    execution_time_seconds: float

    @classmethod
    def from_results(
        cls,
        results: Sequence[TestCaseResult],
        declared_cases: int,
        execution_time_seconds: float,
    ) -> "SuiteSummary":
        """Fold case results into a summary."""
        passed = sum(1 for r in results if r.status == "passed")
        failed = sum(1 for r in results if r.is_failure)
        skipped = sum(1 for r in results if r.status == "skipped")
        return cls(
            total_cases=passed + failed + skipped,
            passed_cases=passed,
            failed_cases=failed,
            skipped_cases=skipped,
            declared_cases=declared_cases,
            execution_time_seconds=execution_time_seconds,
        )


class SuiteResult(Model):
    """Ordered case results of one suite and their summary."""

    suite_name: str
    test_case_results: Sequence[TestCaseResult]
    suite_summary: SuiteSummary


class TestSummary(Model):
    """Run-wide counts folded from all suite summaries."""

    __test__ = False

    total_tests: int
    passed_tests: int
    failed_tests: int
    skipped_tests: int
    execution_time_seconds: float
    overall_success_rate: float

    @classmethod
    def from_suites(
        cls, suite_results: Sequence[SuiteResult], execution_time_seconds: float
    ) -> "TestSummary":
        """Fold suite summaries into a run summary."""
        summaries = [s.suite_summary for s in suite_results]
        passed = sum(s.passed_cases for s in summaries)
        failed = sum(s.failed_cases for s in summaries)
        skipped = sum(s.skipped_cases for s in summaries)
        total = passed + failed + skipped
        return cls(
            total_tests=total,
            passed_tests=passed,
            failed_tests=failed,
            skipped_tests=skipped,
            execution_time_seconds=execution_time_seconds,
            overall_success_rate=passed / total if total > 0 else 0.0,
        )


class BaselineComparison(Model):
    """Change relative to a stored baseline run."""

    performance_change_percent: float
    memory_change_percent: float
    is_improvement: bool
    is_regression: bool


class RegressionAlert(Model):
    """A metric that got worse compared to the baseline."""

    test_name: str
    metric: str
    change_percent: float
    severity: AlertSeverity


class ImprovementAlert(Model):
    """A metric that got better compared to the baseline."""

    test_name: str
    metric: str
    improvement_percent: float


class RegressionAnalysis(Model):
    """Regressions and improvements detected against a baseline."""

    detected_regressions: Sequence[RegressionAlert] = Field(default_factory=list)
    detected_improvements: Sequence[ImprovementAlert] = Field(default_factory=list)


class PerformanceData(Model):
    """Run-wide performance block."""

    overall_metrics: PerformanceMetrics
    baseline_comparison: BaselineComparison | None = None
    regression_analysis: RegressionAnalysis | None = None


class ServerInfo(Model):
    """Server identity reported during the protocol handshake."""

    server_type: str
    version: str | None = None
    capabilities: Mapping[str, Any] | None = None
    transport: str


class ExecutionMetadata(Model):
    """Observational data attached once per run."""

    start_time: datetime
    end_time: datetime
    execution_environment: str
    test_harness_version: str
    server_info: ServerInfo | None = None


class TestResults(Model):
    """Complete result tree of a test run."""

    __test__ = False

    summary: TestSummary
    suite_results: Sequence[SuiteResult]
    performance_data: PerformanceData | None = None
    execution_metadata: ExecutionMetadata

    def all_passed(self) -> bool:
        """Whether the run had no failed or errored cases."""
        return self.summary.failed_tests == 0
