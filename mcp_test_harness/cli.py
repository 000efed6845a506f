"""CLI entry point for the MCP test harness."""

import argparse
import asyncio
import logging
import shlex
import sys
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError

from mcp_test_harness.definition_loader import ConfigurationError, load_test_config
from mcp_test_harness.models.benchmark import BenchmarkResults
from mcp_test_harness.models.definition import ServerSettings, TestConfig
from mcp_test_harness.models.result import TestResults
from mcp_test_harness.orchestrator import TestOrchestrator
from mcp_test_harness.servers.base import InitializationError, ServerHandle
from mcp_test_harness.servers.loading import ServerNotFoundError, load_server_manifest

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_ERROR = 2

STATUS_SYMBOLS = {
    "passed": "✅",
    "failed": "❌",
    "skipped": "⏭️",
    "error": "💥",
}


def log_results_summary(log: logging.Logger, results: TestResults) -> None:
    """Log a formatted summary of test results per suite and case."""
    summary = results.summary
    log.info("=" * 80)
    log.info("Test Execution Summary:")
    log.info("=" * 80)
    log.info("Total Tests:    %d", summary.total_tests)
    log.info("Passed:         %d", summary.passed_tests)
    log.info("Failed:         %d", summary.failed_tests)
    log.info("Skipped:        %d", summary.skipped_tests)
    log.info("Success Rate:   %.1f%%", summary.overall_success_rate * 100)
    log.info("Execution Time: %.2fs", summary.execution_time_seconds)

    for suite_result in results.suite_results:
        suite_summary = suite_result.suite_summary
        log.info(
            "%s (%d of %d executed)",
            suite_result.suite_name,
            suite_summary.total_cases,
            suite_summary.declared_cases,
        )
        for case_result in suite_result.test_case_results:
            symbol = STATUS_SYMBOLS.get(case_result.status, "?")
            log.info(
                "  %s %s (%.0fms)",
                symbol,
                case_result.test_id,
                case_result.execution_time_ms,
            )
            if case_result.error_message:
                log.info("    Message: %s", case_result.error_message)
            for verdict in case_result.validation_results:
                if not verdict.passed:
                    log.info("    %s: %s", verdict.rule_name, verdict.message)


def log_benchmark_summary(log: logging.Logger, results: BenchmarkResults) -> None:
    """Log a formatted summary of benchmark results."""
    summary = results.benchmark_summary
    log.info("=" * 80)
    log.info("Benchmark Results:")
    log.info("=" * 80)
    log.info("Total Iterations: %d", summary.total_iterations)
    log.info("Duration:         %.1fs", summary.elapsed_seconds)
    log.info("Avg Ops/sec:      %.2f", summary.average_ops_per_second)
    log.info("Avg Response:     %.2fms", summary.average_response_time_ms)
    log.info("Success Rate:     %.1f%%", summary.success_rate * 100)

    for result in results.detailed_results:
        log.info(
            "  %s - %.2fms avg, %.2f-%.2fms range, %.2fms stddev (%.2f ops/sec)",
            result.test_name,
            result.average_time_ms,
            result.min_time_ms,
            result.max_time_ms,
            result.std_deviation_ms,
            result.ops_per_second,
        )


def apply_server_command(
    config: TestConfig, command: str, working_dir: Path | None = None
) -> TestConfig:
    """Replace the configured server with a stdio command line."""
    argv = shlex.split(command)
    if not argv:
        raise ConfigurationError("Server command must not be empty")

    options: dict[str, object] = {"command": argv[0], "args": argv[1:]}
    if config.server.transport == "stdio":
        options = {**config.server.options, **options}
    if working_dir is not None:
        options["working_dir"] = str(working_dir)

    return config.model_copy(
        update={"server": ServerSettings(transport="stdio", options=options)}
    )


def build_server_factory(config: TestConfig) -> Callable[[], ServerHandle]:
    """Resolve the configured transport into a handle factory."""
    manifest = load_server_manifest(config.server.transport)
    try:
        return manifest.bind(config.server.options)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid options for transport '{config.server.transport}': {e}"
        ) from e


def write_output(content: str, output_file: Path | None) -> None:
    """Write JSON output to a file, or stdout when no file is given."""
    if output_file is None:
        print(content)
    else:
        output_file.write_text(content + "\n")


async def run_tests(
    config_path: Path,
    *,
    output_format: str = "table",
    output_file: Path | None = None,
    server_command: str | None = None,
    working_dir: Path | None = None,
    validation_only: bool = False,
    parallel: int | None = None,
    fail_fast: bool | None = None,
    comprehensive: bool = False,
) -> int:
    """Run the configured suites and return an exit code."""
    log = logging.getLogger("mcp_test_harness")

    try:
        config = await load_test_config(config_path)
        if server_command:
            config = apply_server_command(config, server_command, working_dir)
        server_factory = None if validation_only else build_server_factory(config)
    except (ConfigurationError, ServerNotFoundError) as e:
        log.error("%s", e)
        return EXIT_ERROR

    orchestrator = TestOrchestrator(
        config=config,
        server_factory=server_factory,
        validation_only=validation_only,
        parallel_execution=parallel,
        fail_fast=fail_fast,
        comprehensive=comprehensive,
    )

    try:
        results = await orchestrator.run()
    except InitializationError as e:
        log.error("Server initialization failed: %s", e)
        return EXIT_ERROR

    log_results_summary(log, results)
    if output_format == "json" or output_file is not None:
        write_output(results.model_dump_json(indent=2), output_file)

    return EXIT_OK if results.all_passed() else EXIT_FAILURES


async def run_benchmark(
    config_path: Path,
    *,
    iterations: int,
    duration: float,
    output_format: str = "table",
    output_file: Path | None = None,
    server_command: str | None = None,
    working_dir: Path | None = None,
) -> int:
    """Benchmark the configured cases and return an exit code."""
    log = logging.getLogger("mcp_test_harness")

    try:
        config = await load_test_config(config_path)
        if server_command:
            config = apply_server_command(config, server_command, working_dir)
        server_factory = build_server_factory(config)
    except (ConfigurationError, ServerNotFoundError) as e:
        log.error("%s", e)
        return EXIT_ERROR

    orchestrator = TestOrchestrator(config=config, server_factory=server_factory)
    try:
        results = await orchestrator.run_benchmark(iterations, duration)
    except InitializationError as e:
        log.error("Server initialization failed: %s", e)
        return EXIT_ERROR

    log_benchmark_summary(log, results)
    if output_format == "json" or output_file is not None:
        write_output(results.model_dump_json(indent=2), output_file)

    return EXIT_OK


def positive_int(value: str) -> int:
    """Argparse type for integers >= 1."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value}")
    return number


def positive_float(value: str) -> float:
    """Argparse type for numbers > 0."""
    number = float(value)
    if not number > 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {value}")
    return number


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with run and benchmark commands."""
    parser = argparse.ArgumentParser(
        description="Run test suites and benchmarks against an MCP server"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config", type=Path, required=True, help="Path to the YAML configuration"
    )
    common.add_argument(
        "--server-command",
        help="Command line of a stdio server, overriding the configured server",
    )
    common.add_argument(
        "--working-dir", type=Path, help="Working directory for --server-command"
    )
    common.add_argument(
        "--output",
        choices=["table", "json"],
        default="table",
        help="Print JSON results to stdout in addition to the logged table",
    )
    common.add_argument(
        "--output-file", type=Path, help="Write JSON results to this file"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    run_parser = commands.add_parser("run", parents=[common], help="Run test suites")
    run_parser.add_argument(
        "--validation-only",
        action="store_true",
        help="Validate case definitions without contacting the server",
    )
    run_parser.add_argument(
        "--parallel",
        type=positive_int,
        help="Maximum number of cases in flight per suite",
    )
    run_parser.add_argument(
        "--fail-fast",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Stop a suite after its first failing case",
    )
    run_parser.add_argument(
        "--comprehensive",
        action="store_true",
        help="Attach performance metrics to the results",
    )

    bench_parser = commands.add_parser(
        "benchmark", parents=[common], help="Benchmark enabled cases"
    )
    bench_parser.add_argument(
        "--iterations", type=positive_int, default=100, help="Iterations per case"
    )
    bench_parser.add_argument(
        "--duration", type=positive_float, default=60.0, help="Seconds per case"
    )

    return parser


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.command == "benchmark":
        coro = run_benchmark(
            args.config,
            iterations=args.iterations,
            duration=args.duration,
            output_format=args.output,
            output_file=args.output_file,
            server_command=args.server_command,
            working_dir=args.working_dir,
        )
    else:
        coro = run_tests(
            args.config,
            output_format=args.output,
            output_file=args.output_file,
            server_command=args.server_command,
            working_dir=args.working_dir,
            validation_only=args.validation_only,
            parallel=args.parallel,
            fail_fast=args.fail_fast,
            comprehensive=args.comprehensive,
        )

    sys.exit(asyncio.run(coro))


if __name__ == "__main__":  # pragma: no cover
    main()
