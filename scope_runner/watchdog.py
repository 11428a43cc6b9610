"""Background timer that warns about slow tests without interrupting them."""

import asyncio
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from scope_runner.models.tree import LeafId

log = logging.getLogger(__name__)

type WarningCallback = Callable[[LeafId, float], None]


@dataclass(kw_only=True)
class Watch:
    """State of one armed timer."""

    leaf_id: LeafId
    started: float
    fired: bool = False
    elapsed: float | None = None


@dataclass(frozen=True, kw_only=True)
class TimeoutWatchdog:
    """Arms a one-shot timer per running test.

    When the timer fires, the warning is logged and ``on_warning`` is called
    with the leaf and the elapsed time. The test itself keeps running.
    """

    delay: float = 15
    enabled: bool = True
    on_warning: WarningCallback | None = None

    @contextmanager
    def watch(self, leaf_id: LeafId) -> Iterator[Watch]:
        """Watch the test running inside the ``with`` block.

        Must be used from within a running event loop.
        """
        loop = asyncio.get_running_loop()
        state = Watch(leaf_id=leaf_id, started=loop.time())
        if not self.enabled:
            yield state
            return

        handle = loop.call_later(self.delay, self._fire, state, loop)
        try:
            yield state
        finally:
            handle.cancel()

    def _fire(self, state: Watch, loop: asyncio.AbstractEventLoop) -> None:
        state.fired = True
        state.elapsed = loop.time() - state.started
        log.warning(
            "Test '%s' has been running for %.2fs (warning delay %.2fs)",
            " > ".join(state.leaf_id),
            state.elapsed,
            self.delay,
        )
        if self.on_warning is not None:
            try:
                self.on_warning(state.leaf_id, state.elapsed)
            except Exception:
                log.exception("Timeout warning callback failed")
