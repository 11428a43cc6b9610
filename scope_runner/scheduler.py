"""Execute resolved leaves with their hooks and collect the results."""

import asyncio
import contextvars
import functools
import inspect
import logging
import time
from collections.abc import Iterator, Mapping, Sequence
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from scope_runner.context import Context, ContextStore
from scope_runner.errors import HookFailure, HookKind, describe_exception
from scope_runner.models.result import ScopeReport, TestResult
from scope_runner.models.tree import Ancestry, Hook, LeafId, ScopeNode, TestLeaf
from scope_runner.resolver import Resolution
from scope_runner.watchdog import TimeoutWatchdog

log = logging.getLogger(__name__)

type Runnable = tuple[Ancestry, TestLeaf]

# Failures recorded against a leaf. KeyboardInterrupt and CancelledError
# still propagate, after teardown.
CONTAINED_ERRORS = (Exception, SystemExit)


@dataclass(frozen=True, kw_only=True)
class ExecutionScheduler:
    """Runs every leaf resolved as runnable, sequentially or concurrently.

    Plain hooks and test bodies of one leaf always run on the same worker
    thread. In sequential mode one worker serves the whole run; in concurrent
    mode every leaf gets its own, so no leaf waits for a free thread.

    In concurrent mode all runnable leaves are dispatched at once and may
    finish in any order. Only the hook, body, hook sequence of each leaf is
    ordered. Tests that share mutable state, or code under test that keeps
    global state, are not safe to run this way.
    """

    concurrent: bool = False
    watchdog: TimeoutWatchdog = field(default_factory=TimeoutWatchdog)
    contexts: ContextStore = field(default_factory=ContextStore)

    async def run(
        self, root: ScopeNode, resolution: Mapping[LeafId, Resolution]
    ) -> ScopeReport:
        """Run ``root`` and return a report in declaration order.

        Args:
            root: Tree to execute
            resolution: Output of the resolver for the same tree

        Returns:
            Report mirroring the tree, including excluded leaves

        """
        results: dict[LeafId, TestResult] = {}
        runnable: list[Runnable] = []

        for ancestry, leaf in root.walk():
            state = resolution.get(leaf.id, Resolution.RUN)
            if state is Resolution.RUN:
                runnable.append((ancestry, leaf))
            else:
                results[leaf.id] = TestResult(leaf_id=leaf.id, status=state.value)

        mode = "concurrently" if self.concurrent else "sequentially"
        log.info("Running %d test(s) %s...", len(runnable), mode)

        outcomes: list[TestResult | BaseException]
        if self.concurrent:
            outcomes = await asyncio.gather(
                *(self.run_leaf(ancestry, leaf) for ancestry, leaf in runnable),
                return_exceptions=True,
            )
        else:
            outcomes = []
            with _worker("scope-runner") as worker:
                for ancestry, leaf in runnable:
                    try:
                        outcomes.append(await self.run_leaf(ancestry, leaf, worker))
                    except Exception as exc:
                        outcomes.append(exc)
        results.update(self._process_results(runnable, outcomes))

        log.info("Test execution completed")
        return _assemble(root, results)

    def _process_results(
        self,
        runnable: Sequence[Runnable],
        outcomes: Sequence[TestResult | BaseException],
    ) -> dict[LeafId, TestResult]:
        """Turn engine errors escaping a leaf into failed results."""
        results: dict[LeafId, TestResult] = {}
        for (_, leaf), outcome in zip(runnable, outcomes, strict=True):
            if isinstance(outcome, TestResult):
                results[leaf.id] = outcome
            elif isinstance(outcome, Exception):
                log.error(
                    "Execution of '%s' failed: %s",
                    " > ".join(leaf.id),
                    outcome,
                    exc_info=outcome,
                )
                results[leaf.id] = TestResult(
                    leaf_id=leaf.id,
                    status="fail",
                    message=describe_exception(outcome),
                )
            else:
                raise outcome
        return results

    async def run_leaf(
        self, ancestry: Ancestry, leaf: TestLeaf, worker: Executor | None = None
    ) -> TestResult:
        """Run one leaf with a fresh context and its inherited hooks.

        before_each hooks run outermost scope first, after_each hooks run
        innermost scope first. If a before_each hook fails the body is
        skipped, but the after_each hooks of every scope entered so far still
        run. Teardown always runs, including when the body calls sys.exit.

        Plain callbacks run on ``worker``, or on a worker of the leaf's own
        when none is given.
        """
        if worker is None:
            with _worker(f"scope-runner-{leaf.name}") as own:
                return await self.run_leaf(ancestry, leaf, own)

        failures: list[str] = []
        context = self.contexts.allocate(leaf.id)
        started = time.perf_counter()
        try:
            with self.watchdog.watch(leaf.id) as watch:
                entered = 0
                try:
                    try:
                        for scope in ancestry:
                            entered += 1
                            await _run_hooks(
                                "before_each", scope, scope.before_each, context, worker
                            )
                        await _invoke(leaf.callback, context, worker)
                    except CONTAINED_ERRORS as exc:
                        failures.append(describe_exception(exc))
                finally:
                    for scope in reversed(ancestry[:entered]):
                        try:
                            await _run_hooks(
                                "after_each", scope, scope.after_each, context, worker
                            )
                        except HookFailure as exc:
                            failures.append(str(exc))
        finally:
            self.contexts.release(leaf.id)

        result = TestResult(
            leaf_id=leaf.id,
            status="fail" if failures else "pass",
            duration=time.perf_counter() - started,
            message="\n".join(failures) if failures else None,
            timeout_warning=watch.fired,
            elapsed_at_warning=watch.elapsed,
        )
        log.info(
            "Test completed: test=%s status=%s duration=%.3fs",
            " > ".join(leaf.id),
            result.status,
            result.duration,
        )
        return result


async def _run_hooks(
    kind: HookKind,
    scope: ScopeNode,
    hooks: Sequence[Hook],
    context: Context,
    worker: Executor,
) -> None:
    """Run one scope's hooks of a kind in declaration order.

    For after_each every hook runs even if an earlier one failed; the first
    failure is raised once all of them finished.
    """
    first_failure: HookFailure | None = None
    for hook in hooks:
        try:
            await _invoke(hook, context, worker)
        except CONTAINED_ERRORS as exc:
            failure = HookFailure(kind, scope.path, exc)
            if kind == "before_each":
                raise failure from exc
            first_failure = first_failure or failure
    if first_failure is not None:
        raise first_failure


async def _invoke(callback: Any, context: Context, worker: Executor) -> None:
    """Call a hook or test body.

    Coroutine functions are awaited on the loop. Plain functions run on the
    leaf's worker thread so a blocking test cannot stall the watchdog.
    """
    if inspect.iscoroutinefunction(callback):
        await callback(context)
        return
    loop = asyncio.get_running_loop()
    call = functools.partial(contextvars.copy_context().run, callback, context)
    result = await loop.run_in_executor(worker, call)
    if inspect.isawaitable(result):
        await result


@contextmanager
def _worker(name: str) -> Iterator[Executor]:
    """Single-thread executor; shutdown does not block the event loop."""
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
    try:
        yield executor
    finally:
        executor.shutdown(wait=False)


def _assemble(scope: ScopeNode, results: Mapping[LeafId, TestResult]) -> ScopeReport:
    return ScopeReport(
        name=scope.name,
        path=scope.path,
        items=[
            results[item.id] if isinstance(item, TestLeaf) else _assemble(item, results)
            for item in scope.items
        ],
    )
