"""Entry point that builds, resolves, runs and reports a set of test modules."""

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from scope_runner.builder import Declaration, build_run_tree
from scope_runner.discovery import discover_test_modules, load_declaration
from scope_runner.errors import BuildFailure
from scope_runner.models.config import RunnerConfig
from scope_runner.models.result import ModuleFailure, RunReport
from scope_runner.reporting import LoggingReporter, Reporter
from scope_runner.resolver import resolve
from scope_runner.scheduler import ExecutionScheduler
from scope_runner.watchdog import TimeoutWatchdog

log = logging.getLogger(__name__)

type TestRoot = Path | Mapping[str, Declaration]


def run_tests(
    root: TestRoot,
    config: RunnerConfig | Mapping[str, Any] | None = None,
    reporter: Reporter | None = None,
) -> None:
    """Run every test module under ``root`` and hand the report to ``reporter``.

    ``root`` is either a directory searched for ``*.test.py`` files or a
    mapping of module name to declaration callback. ``concurrent=True`` is
    only safe when tests share no state with each other and the code under
    test keeps no global state.
    """
    asyncio.run(run_tests_async(root, config, reporter))


async def run_tests_async(
    root: TestRoot,
    config: RunnerConfig | Mapping[str, Any] | None = None,
    reporter: Reporter | None = None,
) -> None:
    """Async variant of run_tests for callers already inside an event loop."""
    config = load_config(config)
    reporter = reporter if reporter is not None else LoggingReporter()
    started = time.perf_counter()

    declarations, load_failures = collect_declarations(root)
    tree, build_failures = build_run_tree(declarations, load_failures)
    resolution = resolve(tree)

    scheduler = ExecutionScheduler(
        concurrent=config.concurrent,
        watchdog=TimeoutWatchdog(
            delay=config.timeout_warning_delay,
            enabled=config.show_timeout_warning,
            on_warning=reporter.on_timeout_warning,
        ),
    )
    scope_report = await scheduler.run(tree, resolution)

    reporter.report(
        RunReport(
            root=scope_report,
            build_failures=build_failures,
            duration=time.perf_counter() - started,
        )
    )


def load_config(config: RunnerConfig | Mapping[str, Any] | None) -> RunnerConfig:
    """Validate a raw configuration mapping, filling in defaults."""
    if config is None:
        return RunnerConfig()
    if isinstance(config, RunnerConfig):
        return config
    return RunnerConfig.model_validate(dict(config))


def collect_declarations(
    root: TestRoot,
) -> tuple[Mapping[str, Declaration], Sequence[ModuleFailure]]:
    """Resolve ``root`` to declaration callbacks keyed by module name.

    Modules that fail to import are returned as failures instead.
    """
    if not isinstance(root, Path):
        return dict(root), []

    declarations: dict[str, Declaration] = {}
    failures: list[ModuleFailure] = []
    for module in discover_test_modules(root):
        try:
            declarations[module.name] = load_declaration(module)
        except BuildFailure as exc:
            log.error("%s", exc)
            failures.append(ModuleFailure(module=module.name, message=str(exc)))
    return declarations, failures
