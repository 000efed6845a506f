"""Models for test configuration loaded from YAML files."""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import Field

from mcp_test_harness.models.base import Model


class ExpectedOutcome(Model):
    """Expectations checked against a tool response by the validator."""

    is_error: bool = Field(
        default=False, description="Whether the tool result should set isError"
    )
    required_fields: Sequence[str] = Field(
        default_factory=list,
        description="Dotted paths that must be present in the response",
    )
    contains: Sequence[str] = Field(
        default_factory=list,
        description="Substrings that must appear in the response text content",
    )


class TestCase(Model):
    """Single tool invocation with fixed input parameters."""

    __test__ = False

    id: str = Field(..., description="Case identifier, unique within a suite")
    tool_name: str = Field(..., description="Name of the tool to call")
    input_params: Mapping[str, Any] = Field(
        default_factory=dict, description="Arguments passed to the tool"
    )
    enabled: bool = Field(default=True, description="Disabled cases are skipped")
    description: str | None = Field(default=None, description="Free-form notes")
    expected: ExpectedOutcome | None = Field(
        default=None, description="Response expectations (None means defaults)"
    )


class TestSuite(Model):
    """Ordered group of test cases sharing a name."""

    __test__ = False

    name: str = Field(..., description="Suite name")
    description: str | None = Field(default=None, description="Free-form notes")
    test_cases: Sequence[TestCase] = Field(
        default_factory=list, description="Cases in execution order"
    )

    @property
    def enabled_cases(self) -> Sequence[TestCase]:
        """Cases that are not disabled, in declared order."""
        return [case for case in self.test_cases if case.enabled]


class GlobalSettings(Model):
    """Run-wide execution settings."""

    fail_fast: bool = Field(
        default=False, description="Stop a suite after its first failing case"
    )
    parallel_execution: int = Field(
        default=1, ge=1, description="Maximum number of cases in flight per suite"
    )
    health_check_timeout: float = Field(
        default=30.0, gt=0, description="Seconds to wait for the server to respond"
    )


class ServerSettings(Model):
    """Server transport selection and transport-specific options."""

    transport: str = Field(..., description="Transport key (e.g., 'stdio', 'http')")
    options: Mapping[str, Any] = Field(
        default_factory=dict, description="Options validated by the transport config"
    )


class TestConfig(Model):
    """Complete harness configuration."""

    __test__ = False

    server: ServerSettings = Field(..., description="Server under test")
    global_settings: GlobalSettings = Field(
        default_factory=GlobalSettings, alias="global"
    )
    test_suites: Sequence[TestSuite] = Field(
        default_factory=list, description="Suites in execution order"
    )
