"""Rule-based validation of test case definitions and tool responses."""

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from mcp_test_harness.models.definition import ExpectedOutcome, TestCase
from mcp_test_harness.models.result import ValidationResult

_MISSING = object()


def resolve_path(data: Any, path: str) -> Any:
    """Resolve a dotted path (``content.0.text``) in nested JSON data.

    Returns a sentinel when any segment is missing.
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping) and segment in current:
            current = current[segment]
        elif (
            isinstance(current, Sequence)
            and not isinstance(current, str)
            and segment.isdigit()
            and int(segment) < len(current)
        ):
            current = current[int(segment)]
        else:
            return _MISSING
    return current


def extract_text(response: Any) -> str:
    """Concatenate the text items of a tool result's content list."""
    if not isinstance(response, Mapping):
        return ""
    content = response.get("content")
    if not isinstance(content, list):
        return ""
    return "\n".join(
        str(item.get("text", ""))
        for item in content
        if isinstance(item, Mapping) and item.get("type") == "text"
    )


@dataclass(frozen=True, kw_only=True)
class TestValidator:
    """Produces named rule verdicts for cases and responses.

    Both methods are pure: the same inputs always give the same verdicts.
    """

    __test__ = False

    def validate_case_definition(self, test_case: TestCase) -> list[ValidationResult]:
        """Check that a case is well formed without contacting the server."""
        results = [
            _rule(
                "case_id_present",
                bool(test_case.id.strip()),
                "Case id is set",
                "Case id must not be blank",
            ),
            _rule(
                "tool_name_present",
                bool(test_case.tool_name.strip()),
                "Tool name is set",
                "Tool name must not be blank",
            ),
            self._check_serializable(test_case.input_params),
        ]

        if test_case.expected is not None:
            blank = [p for p in test_case.expected.required_fields if not p.strip()]
            results.append(
                _rule(
                    "expected_fields_well_formed",
                    not blank,
                    "Expected field paths are well formed",
                    "Expected field paths must not be blank",
                )
            )

        return results

    def validate_response(
        self, test_case: TestCase, response: Any
    ) -> list[ValidationResult]:
        """Check a tool response against the case expectations."""
        expected = test_case.expected or ExpectedOutcome()

        is_object = isinstance(response, Mapping)
        results = [
            _rule(
                "response_is_object",
                is_object,
                "Response is a JSON object",
                f"Expected a JSON object, got {type(response).__name__}",
            )
        ]
        if not is_object:
            return results

        is_error = bool(response.get("isError", False))
        results.append(
            _rule(
                "tool_error_flag",
                is_error == expected.is_error,
                f"isError is {str(is_error).lower()} as expected",
                f"Expected isError={str(expected.is_error).lower()}, "
                f"got {str(is_error).lower()}",
            )
        )

        for path in expected.required_fields:
            present = resolve_path(response, path) is not _MISSING
            results.append(
                _rule(
                    f"field_present:{path}",
                    present,
                    f"Field '{path}' is present",
                    f"Field '{path}' is missing",
                )
            )

        if expected.contains:
            text = extract_text(response)
            for needle in expected.contains:
                results.append(
                    _rule(
                        f"content_contains:{needle}",
                        needle in text,
                        f"Content contains '{needle}'",
                        f"Content does not contain '{needle}'",
                    )
                )

        return results

    def _check_serializable(self, params: Mapping[str, Any]) -> ValidationResult:
        try:
            json.dumps(params)
        except (TypeError, ValueError) as e:
            return _rule("input_params_serializable", False, "", str(e))
        return _rule(
            "input_params_serializable", True, "Input parameters are valid JSON", ""
        )


def _rule(name: str, passed: bool, ok: str, failure: str) -> ValidationResult:
    return ValidationResult(
        rule_name=name, passed=passed, message=ok if passed else failure
    )
