"""CLI entry point for running scoped test modules."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from scope_runner.models.config import RunnerConfig
from scope_runner.models.result import RunReport
from scope_runner.models.tree import LeafId
from scope_runner.reporting import (
    CollectingReporter,
    LoggingReporter,
    Reporter,
    format_output,
)
from scope_runner.runner import run_tests_async


class _CliReporter(Reporter):
    """Logs the summary and keeps the report for the exit code and JSON output."""

    def __init__(self) -> None:
        self.logging = LoggingReporter()
        self.collecting = CollectingReporter()

    def on_timeout_warning(self, leaf_id: LeafId, elapsed: float) -> None:
        self.logging.on_timeout_warning(leaf_id, elapsed)
        self.collecting.on_timeout_warning(leaf_id, elapsed)

    def report(self, run_report: RunReport) -> None:
        self.logging.report(run_report)
        self.collecting.report(run_report)


def parse_config(config_json: str) -> RunnerConfig:
    """Parse the ``--config`` JSON object into a RunnerConfig."""
    if not config_json.strip():
        return RunnerConfig()
    return RunnerConfig.model_validate_json(config_json)


async def run(root: Path, config: RunnerConfig) -> int:
    """Run the tests under ``root`` and return the exit code."""
    log = logging.getLogger("scope_runner")
    log.info("Running tests in %s", root)

    reporter = _CliReporter()
    await run_tests_async(root, config, reporter)

    run_report = reporter.collecting.last_report
    if run_report is None:  # pragma: no cover
        return 1

    print(json.dumps(format_output(run_report), indent=2))
    return 1 if run_report.has_failures else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Run scoped test modules")
    parser.add_argument(
        "root",
        type=Path,
        help="Directory searched for *.test.py modules",
    )
    parser.add_argument(
        "--config",
        default="",
        help=(
            "JSON configuration, e.g. "
            '\'{"concurrent": true, "timeoutWarningDelay": 5}\''
        ),
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        config = parse_config(args.config)
    except ValidationError as exc:
        parser.error(f"invalid --config: {exc}")

    if not args.root.is_dir():
        parser.error(f"test root not found: {args.root}")

    exit_code = asyncio.run(run(args.root, config))
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
