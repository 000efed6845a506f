"""Tests for the rule-based validator."""

import pytest

from mcp_test_harness.models.definition import ExpectedOutcome, TestCase
from mcp_test_harness.testing.factories import TestCaseFactory
from mcp_test_harness.testing.payloads import tool_result
from mcp_test_harness.validation import TestValidator, extract_text, resolve_path


@pytest.fixture
def validator() -> TestValidator:
    """Create validator."""
    return TestValidator()


def _failed(results: list) -> list[str]:
    return [r.rule_name for r in results if not r.passed]


class TestValidateCaseDefinition:
    """Tests for validate_case_definition."""

    def test_well_formed_case_passes(self, validator: TestValidator) -> None:
        """All rules pass for a complete case."""
        case = TestCase(id="echo-1", tool_name="echo", input_params={"text": "hi"})

        results = validator.validate_case_definition(case)

        assert results
        assert _failed(results) == []

    def test_blank_tool_name_fails(self, validator: TestValidator) -> None:
        """A blank tool name is reported."""
        case = TestCase(id="echo-1", tool_name="  ")

        results = validator.validate_case_definition(case)

        assert _failed(results) == ["tool_name_present"]

    def test_blank_expected_field_fails(self, validator: TestValidator) -> None:
        """Blank expected field paths are reported."""
        case = TestCase(
            id="echo-1",
            tool_name="echo",
            expected=ExpectedOutcome(required_fields=["content", ""]),
        )

        results = validator.validate_case_definition(case)

        assert _failed(results) == ["expected_fields_well_formed"]

    def test_is_deterministic(self, validator: TestValidator) -> None:
        """Same input gives the same verdicts."""
        case = TestCaseFactory.build()

        assert validator.validate_case_definition(
            case
        ) == validator.validate_case_definition(case)


class TestValidateResponse:
    """Tests for validate_response."""

    def test_successful_result_passes_defaults(self, validator: TestValidator) -> None:
        """A non-error result passes when nothing else is expected."""
        case = TestCase(id="echo-1", tool_name="echo")

        results = validator.validate_response(case, tool_result("hi"))

        assert _failed(results) == []

    def test_unexpected_tool_error_fails(self, validator: TestValidator) -> None:
        """isError=true fails unless the case expects an error."""
        case = TestCase(id="echo-1", tool_name="echo")

        results = validator.validate_response(case, tool_result(is_error=True))

        assert _failed(results) == ["tool_error_flag"]

    def test_expected_tool_error_passes(self, validator: TestValidator) -> None:
        """Error results pass when the case expects one."""
        case = TestCase(
            id="bad-input",
            tool_name="echo",
            expected=ExpectedOutcome(is_error=True),
        )

        results = validator.validate_response(case, tool_result(is_error=True))

        assert _failed(results) == []

    def test_non_object_response_fails(self, validator: TestValidator) -> None:
        """Responses must be JSON objects."""
        case = TestCase(id="echo-1", tool_name="echo")

        results = validator.validate_response(case, ["not", "an", "object"])

        assert _failed(results) == ["response_is_object"]
        assert len(results) == 1

    def test_required_fields(self, validator: TestValidator) -> None:
        """Each required path yields a verdict."""
        case = TestCase(
            id="echo-1",
            tool_name="echo",
            expected=ExpectedOutcome(
                required_fields=["content.0.text", "structuredContent.value"]
            ),
        )

        results = validator.validate_response(case, tool_result("hi"))

        assert _failed(results) == ["field_present:structuredContent.value"]

    def test_contains(self, validator: TestValidator) -> None:
        """Each expected substring yields a verdict."""
        case = TestCase(
            id="echo-1",
            tool_name="echo",
            expected=ExpectedOutcome(contains=["hello", "bye"]),
        )

        results = validator.validate_response(case, tool_result("hello world"))

        assert _failed(results) == ["content_contains:bye"]


@pytest.mark.parametrize(
    ("path", "expected"),
    [
        ("a", {"b": [1, 2]}),
        ("a.b", [1, 2]),
        ("a.b.1", 2),
    ],
)
def test_resolve_path_finds_values(path: str, expected: object) -> None:
    """Resolves mapping keys and list indexes."""
    assert resolve_path({"a": {"b": [1, 2]}}, path) == expected


@pytest.mark.parametrize("path", ["x", "a.c", "a.b.5", "a.b.x"])
def test_resolve_path_missing(path: str) -> None:
    """Missing segments do not resolve."""
    data = {"a": {"b": [1, 2]}}

    assert resolve_path(data, path) is not resolve_path(data, "a")
    assert resolve_path(data, path) is resolve_path(data, "missing")


def test_extract_text_joins_text_items() -> None:
    """Only text content items are joined."""
    response = {
        "content": [
            {"type": "text", "text": "one"},
            {"type": "image", "data": "..."},
            {"type": "text", "text": "two"},
        ]
    }

    assert extract_text(response) == "one\ntwo"
