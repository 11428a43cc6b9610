"""Per-test mutable state shared between hooks and the test body."""

import logging
from threading import Lock
from typing import Any

from scope_runner.errors import ContextInUseError

log = logging.getLogger(__name__)


class Context:
    """Mutable record handed to before_each hooks, the test and after_each hooks.

    Values can be read and written either as attributes or as items:

        context.db = connect()
        context["db"].close()
    """

    def __init__(self, **values: Any) -> None:
        self.__dict__.update(values)

    def __getitem__(self, key: str) -> Any:
        try:
            return self.__dict__[key]
        except KeyError:
            raise KeyError(key) from None

    def __setitem__(self, key: str, value: Any) -> None:
        self.__dict__[key] = value

    def __delitem__(self, key: str) -> None:
        del self.__dict__[key]

    def __contains__(self, key: object) -> bool:
        return key in self.__dict__

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key`` or ``default``."""
        return self.__dict__.get(key, default)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        return f"Context({fields})"


class ContextStore:
    """Hands out one fresh Context per running test and tracks the live ones."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._live: dict[tuple[str, ...], Context] = {}

    def allocate(self, leaf_id: tuple[str, ...]) -> Context:
        """Create the context for a test that is about to run."""
        with self._lock:
            if leaf_id in self._live:
                raise ContextInUseError(
                    f"Test '{' > '.join(leaf_id)}' already has a live context"
                )
            context = Context()
            self._live[leaf_id] = context
        log.debug("Allocated context for %s", leaf_id)
        return context

    def release(self, leaf_id: tuple[str, ...]) -> None:
        """Drop the context of a test whose after_each hooks have finished."""
        with self._lock:
            self._live.pop(leaf_id, None)
        log.debug("Released context for %s", leaf_id)

    @property
    def live_count(self) -> int:
        """Number of contexts currently in use."""
        with self._lock:
            return len(self._live)
