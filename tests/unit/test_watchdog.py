"""Tests for the timeout watchdog."""

import asyncio
import logging
from unittest.mock import Mock

import pytest

from scope_runner.watchdog import TimeoutWatchdog


async def test_fires_after_delay_without_interrupting() -> None:
    """The timer fires while the block keeps running to completion."""
    on_warning = Mock()
    watchdog = TimeoutWatchdog(delay=0.01, on_warning=on_warning)

    with watchdog.watch(("mod", "slow")) as watch:
        await asyncio.sleep(0.1)
        completed = True

    assert completed
    assert watch.fired is True
    assert watch.elapsed is not None
    assert watch.elapsed >= 0.01
    on_warning.assert_called_once()
    assert on_warning.call_args.args[0] == ("mod", "slow")


async def test_disarmed_when_block_finishes_first() -> None:
    """Finishing before the delay cancels the timer with no effect."""
    on_warning = Mock()
    watchdog = TimeoutWatchdog(delay=0.05, on_warning=on_warning)

    with watchdog.watch(("mod", "fast")) as watch:
        pass
    await asyncio.sleep(0.1)

    assert watch.fired is False
    assert watch.elapsed is None
    on_warning.assert_not_called()


async def test_disabled_watchdog_never_fires() -> None:
    """A disabled watchdog arms no timer."""
    on_warning = Mock()
    watchdog = TimeoutWatchdog(delay=0.01, enabled=False, on_warning=on_warning)

    with watchdog.watch(("mod", "slow")) as watch:
        await asyncio.sleep(0.05)

    assert watch.fired is False
    on_warning.assert_not_called()


async def test_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    """A fired timer logs a warning naming the test."""
    watchdog = TimeoutWatchdog(delay=0.01)

    with caplog.at_level(logging.WARNING, logger="scope_runner.watchdog"):
        with watchdog.watch(("mod", "inner", "slow")):
            await asyncio.sleep(0.05)

    assert "mod > inner > slow" in caplog.text


async def test_failing_callback_does_not_break_the_test() -> None:
    """Errors from the warning callback are logged, not raised."""
    watchdog = TimeoutWatchdog(delay=0.01, on_warning=Mock(side_effect=RuntimeError))

    with watchdog.watch(("mod", "slow")) as watch:
        await asyncio.sleep(0.05)

    assert watch.fired is True


def test_defaults() -> None:
    """Warnings are enabled with a 15 second delay by default."""
    watchdog = TimeoutWatchdog()

    assert watchdog.enabled is True
    assert watchdog.delay == 15
