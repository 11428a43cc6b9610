"""Reporters that receive the outcome of a run."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from scope_runner.models.result import RunReport, TestResult
from scope_runner.models.tree import LeafId

STATUS_SYMBOLS = {
    "pass": "✅",
    "fail": "❌",
    "excluded_by_focus": "🎯",
    "excluded_by_skip": "⏭️",
}
TIMEOUT_SYMBOL = "⏱️"


class Reporter(ABC):
    """Sink for timeout warnings during a run and the report at its end."""

    def on_timeout_warning(self, leaf_id: LeafId, elapsed: float) -> None:  # noqa: B027
        """Called while a test is still running past the warning delay."""

    @abstractmethod
    def report(self, run_report: RunReport) -> None:
        """Receive the final report, in declaration order."""


@dataclass(kw_only=True)
class LoggingReporter(Reporter):
    """Logs a formatted summary of the run."""

    log: logging.Logger = field(
        default_factory=lambda: logging.getLogger("scope_runner")
    )

    def on_timeout_warning(self, leaf_id: LeafId, elapsed: float) -> None:
        self.log.warning(
            "%s %s is still running after %.2fs",
            TIMEOUT_SYMBOL,
            " > ".join(leaf_id),
            elapsed,
        )

    def report(self, run_report: RunReport) -> None:
        self.log.info("=" * 80)
        self.log.info("Test Results Summary:")
        self.log.info("=" * 80)

        for result in run_report.results():
            symbol = STATUS_SYMBOLS.get(result.status, "?")
            if result.timeout_warning:
                symbol = f"{symbol}{TIMEOUT_SYMBOL}"
            self.log.info(
                "%s %s: %s (%.2fs)",
                symbol,
                " > ".join(result.leaf_id),
                result.status,
                result.duration,
            )
            if result.message:
                self.log.info("  Message: %s", result.message)

        for failure in run_report.build_failures:
            self.log.error("❗ %s: %s", failure.module, failure.message)

        self.log.info(
            "%d passed, %d failed, %d excluded, %d slow, %d module(s) failed to build"
            " in %.2fs",
            run_report.passed,
            run_report.failed,
            run_report.excluded,
            run_report.timeout_warnings,
            len(run_report.build_failures),
            run_report.duration,
        )


@dataclass(kw_only=True)
class CollectingReporter(Reporter):
    """Keeps what it receives for later inspection."""

    warnings: list[tuple[LeafId, float]] = field(default_factory=list)
    last_report: RunReport | None = None

    def on_timeout_warning(self, leaf_id: LeafId, elapsed: float) -> None:
        self.warnings.append((leaf_id, elapsed))

    def report(self, run_report: RunReport) -> None:
        self.last_report = run_report


def format_result(result: TestResult) -> dict[str, Any]:
    """JSON-serialisable view of one result."""
    return {
        "test": list(result.leaf_id),
        "status": result.status,
        "duration": result.duration,
        "message": result.message,
        "timeout_warning": result.timeout_warning,
    }


def format_output(run_report: RunReport) -> dict[str, Any]:
    """Format a run report for JSON output."""
    results = run_report.results()
    return {
        "total": len(results),
        "passed": run_report.passed,
        "failed": run_report.failed,
        "excluded": run_report.excluded,
        "timeout_warnings": run_report.timeout_warnings,
        "build_failures": [
            {"module": failure.module, "message": failure.message}
            for failure in run_report.build_failures
        ],
        "results": [format_result(result) for result in results],
    }
