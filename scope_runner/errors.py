"""Exceptions raised while building and running test scopes."""

from typing import Literal

type HookKind = Literal["before_each", "after_each"]


class ScopeRunnerError(Exception):
    """Base class for errors raised by the runner itself."""


class BuildFailure(ScopeRunnerError):
    """Raised when a module's declaration callback fails."""

    def __init__(self, module: str, cause: BaseException | str) -> None:
        self.module = module
        self.cause = cause
        if isinstance(cause, BaseException):
            detail = describe_exception(cause)
        else:
            detail = cause
        super().__init__(f"Failed to build test module '{module}': {detail}")


class BindingExpiredError(ScopeRunnerError):
    """Raised when a declaration binding is used after its callback returned."""


class DuplicateNameError(ScopeRunnerError):
    """Raised when a scope declares two tests or two scopes with one name."""


class ContextInUseError(ScopeRunnerError):
    """Raised when a context is requested for a test that already holds one."""


class HookFailure(ScopeRunnerError):
    """Raised when a before_each or after_each hook fails."""

    def __init__(
        self,
        kind: HookKind,
        scope_path: tuple[str, ...],
        cause: BaseException,
    ) -> None:
        self.kind = kind
        self.scope_path = scope_path
        self.cause = cause
        scope = " > ".join(scope_path) or "<root>"
        super().__init__(f"{kind} hook in '{scope}' failed: {describe_exception(cause)}")


class AssertionFailure(AssertionError):
    """Base class for failures raised by the assertion helpers."""


class EqualityMismatch(AssertionFailure):
    """Raised by assert_equal when the values differ."""

    def __init__(
        self,
        path: str,
        actual: object,
        expected: object,
        *,
        detail: str | None = None,
    ) -> None:
        self.path = path
        self.actual = actual
        self.expected = expected
        where = f"{path} " if path else ""
        if detail is None:
            detail = f"to be {expected!r}, got {actual!r}"
        super().__init__(f"expected {where}{detail}")


class NoThrow(AssertionFailure):
    """Raised by should_throw when the callback returns normally."""


class SubstringMismatch(AssertionFailure):
    """Raised by should_throw when the error message lacks the substring."""

    def __init__(self, substring: str, message: str) -> None:
        self.substring = substring
        self.message = message
        super().__init__(
            f"expected error containing {substring!r}, got {message!r}"
        )


def describe_exception(exc: BaseException) -> str:
    """Render an exception as a one-line failure message."""
    if isinstance(exc, (AssertionFailure, ScopeRunnerError)):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"
