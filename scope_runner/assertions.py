"""Assertion helpers exposed to test modules."""

import inspect
from collections.abc import Callable, Mapping, Sequence, Set
from typing import Any, TypeGuard

from scope_runner.errors import EqualityMismatch, NoThrow, SubstringMismatch

_MISSING = object()


def assert_equal[T](actual: Any, expected: T) -> TypeGuard[T]:
    """Raise EqualityMismatch unless ``actual`` structurally equals ``expected``.

    Mappings are compared key by key, sequences element by element and
    everything else with ``==``. The failure names the first path that
    differs, e.g. ``expected ['a'] to be 2, got 1``.
    """
    _compare(actual, expected, "")
    return True


def should_throw(callback: Callable[[], Any], substring: str | None = None) -> Exception:
    """Raise unless ``callback`` raises an error whose message contains ``substring``.

    Returns the raised exception so callers can inspect it further.

    Raises:
        NoThrow: The callback returned normally
        SubstringMismatch: The message does not contain ``substring``
        TypeError: The callback returned an awaitable

    """
    try:
        result = callback()
    except Exception as exc:
        message = str(exc)
        if substring is not None and substring not in message:
            raise SubstringMismatch(substring, message) from exc
        return exc
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise TypeError(
            "should_throw expects a synchronous callback; "
            "await the call and catch the error instead"
        )
    raise NoThrow("expected callback to throw")


def _compare(actual: Any, expected: Any, path: str) -> None:
    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            raise EqualityMismatch(path, actual, expected)
        for key, expected_value in expected.items():
            actual_value = actual.get(key, _MISSING)
            if actual_value is _MISSING:
                raise EqualityMismatch(
                    f"{path}[{key!r}]",
                    _MISSING,
                    expected_value,
                    detail=f"to be {expected_value!r}, but the key is missing",
                )
            _compare(actual_value, expected_value, f"{path}[{key!r}]")
        for key in actual:
            if key not in expected:
                raise EqualityMismatch(
                    f"{path}[{key!r}]",
                    actual[key],
                    _MISSING,
                    detail=f"to be absent, got {actual[key]!r}",
                )
        return

    if _is_sequence(expected):
        if not _is_sequence(actual):
            raise EqualityMismatch(path, actual, expected)
        for index, (a, e) in enumerate(zip(actual, expected, strict=False)):
            _compare(a, e, f"{path}[{index}]")
        if len(actual) != len(expected):
            raise EqualityMismatch(f"{path} length".lstrip(), len(actual), len(expected))
        return

    if isinstance(expected, Set):
        if not isinstance(actual, Set) or set(actual) != set(expected):
            raise EqualityMismatch(path, actual, expected)
        return

    if actual != expected:
        raise EqualityMismatch(path, actual, expected)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))
