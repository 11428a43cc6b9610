"""Build the immutable scope tree by running declaration callbacks."""

import inspect
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from scope_runner.assertions import assert_equal, should_throw
from scope_runner.errors import BindingExpiredError, BuildFailure, DuplicateNameError
from scope_runner.models.result import ModuleFailure
from scope_runner.models.tree import (
    Hook,
    Modifier,
    ScopeNode,
    ScopePath,
    TestCallback,
    TestLeaf,
)

log = logging.getLogger(__name__)

type Declaration = Callable[["TestProps"], Any]


@dataclass(kw_only=True)
class _ScopeDraft:
    """Mutable scope used only while declarations are running."""

    name: str
    path: ScopePath
    modifier: Modifier = Modifier.NONE
    items: list["TestLeaf | _ScopeDraft"] = field(default_factory=list)
    before_each: list[Hook] = field(default_factory=list)
    after_each: list[Hook] = field(default_factory=list)
    test_names: set[str] = field(default_factory=set)
    scope_names: set[str] = field(default_factory=set)

    def add_test(self, name: str, callback: TestCallback, modifier: Modifier) -> None:
        if name in self.test_names:
            raise DuplicateNameError(
                f"Test '{name}' is declared twice in '{' > '.join(self.path)}'"
            )
        self.test_names.add(name)
        self.items.append(
            TestLeaf(name=name, scope_path=self.path, callback=callback, modifier=modifier)
        )

    def add_scope(self, name: str, modifier: Modifier) -> "_ScopeDraft":
        if name in self.scope_names:
            raise DuplicateNameError(
                f"Scope '{name}' is declared twice in '{' > '.join(self.path)}'"
            )
        self.scope_names.add(name)
        child = _ScopeDraft(name=name, path=(*self.path, name), modifier=modifier)
        self.items.append(child)
        return child

    def freeze(self) -> ScopeNode:
        return ScopeNode(
            name=self.name,
            path=self.path,
            modifier=self.modifier,
            items=tuple(
                item.freeze() if isinstance(item, _ScopeDraft) else item
                for item in self.items
            ),
            before_each=tuple(self.before_each),
            after_each=tuple(self.after_each),
        )


class TestProps:
    """Binding handed to a module's declaration callback.

    The binding is only valid while the declaration callback is running on
    the thread that started it. Once the callback returns, every
    declaring method raises BindingExpiredError.
    """

    __test__ = False

    assert_equal = staticmethod(assert_equal)
    should_throw = staticmethod(should_throw)

    def __init__(self, root: _ScopeDraft) -> None:
        self._stack: list[_ScopeDraft] = [root]
        self._owner = threading.get_ident()
        self._open = True

    def test(self, name: str, callback: TestCallback) -> None:
        """Declare a test in the current scope."""
        self._add_test(name, callback, Modifier.NONE)

    def test_focus(self, name: str, callback: TestCallback) -> None:
        """Declare a test that restricts the run to focused tests."""
        self._add_test(name, callback, Modifier.FOCUS)

    def test_skip(self, name: str, callback: TestCallback) -> None:
        """Declare a test that is reported but not run."""
        self._add_test(name, callback, Modifier.SKIP)

    def before_each(self, callback: Hook) -> None:
        """Run ``callback`` before every test in this scope and nested scopes."""
        self._current("before_each").before_each.append(_require_callable(callback))

    def after_each(self, callback: Hook) -> None:
        """Run ``callback`` after every test in this scope and nested scopes."""
        self._current("after_each").after_each.append(_require_callable(callback))

    def nested(self, name: str, callback: Callable[[], Any]) -> None:
        """Declare a nested scope whose contents ``callback`` declares."""
        self._nest(name, callback, Modifier.NONE)

    def nested_focus(self, name: str, callback: Callable[[], Any]) -> None:
        """Declare a nested scope whose tests are all focused."""
        self._nest(name, callback, Modifier.FOCUS)

    def nested_skip(self, name: str, callback: Callable[[], Any]) -> None:
        """Declare a nested scope whose tests are all skipped."""
        self._nest(name, callback, Modifier.SKIP)

    testFOCUS = test_focus  # noqa: N815
    testSKIP = test_skip  # noqa: N815
    beforeEach = before_each  # noqa: N815
    afterEach = after_each  # noqa: N815
    assertEqual = assert_equal  # noqa: N815
    shouldThrow = should_throw  # noqa: N815

    def close(self) -> None:
        """Invalidate the binding once its declaration callback returned."""
        self._open = False

    def _current(self, operation: str) -> _ScopeDraft:
        if not self._open:
            raise BindingExpiredError(
                f"'{operation}' was called after the declaration callback returned"
            )
        if threading.get_ident() != self._owner:
            raise BindingExpiredError(
                f"'{operation}' was called from a thread other than the declaring one"
            )
        return self._stack[-1]

    def _add_test(self, name: str, callback: TestCallback, modifier: Modifier) -> None:
        scope = self._current("test")
        scope.add_test(name, _require_callable(callback), modifier)

    def _nest(self, name: str, callback: Callable[[], Any], modifier: Modifier) -> None:
        child = self._current("nested").add_scope(name, modifier)
        _require_callable(callback)
        self._stack.append(child)
        try:
            _reject_awaitable(callback(), name)
        finally:
            self._stack.pop()


def build_scope_tree(module: str, declare: Declaration) -> ScopeNode:
    """Run a module's declaration callback once and return its frozen scope.

    Raises:
        BuildFailure: The callback raised or was not synchronous

    """
    draft = _ScopeDraft(name=module, path=(module,))
    props = TestProps(draft)
    try:
        _require_callable(declare)
        _reject_awaitable(declare(props), module)
    except (Exception, SystemExit) as exc:
        raise BuildFailure(module, exc) from exc
    finally:
        props.close()
    return draft.freeze()


def build_run_tree(
    declarations: Mapping[str, Declaration],
    load_failures: Sequence[ModuleFailure] = (),
) -> tuple[ScopeNode, Sequence[ModuleFailure]]:
    """Build one scope per module under a nameless run root.

    A module whose declarations fail is left out of the tree and reported as
    a ModuleFailure. The remaining modules are unaffected.
    """
    modules: list[ScopeNode] = []
    failures: list[ModuleFailure] = list(load_failures)

    for module, declare in declarations.items():
        try:
            modules.append(build_scope_tree(module, declare))
        except BuildFailure as exc:
            log.error("%s", exc, exc_info=exc.cause)
            failures.append(ModuleFailure(module=module, message=str(exc)))

    log.info(
        "Built %d test module(s), %d failed to build", len(modules), len(failures)
    )
    return ScopeNode(name="", path=(), items=tuple(modules)), failures


def _require_callable[F](callback: F) -> F:
    if not callable(callback):
        raise TypeError(f"Expected a callable, got {callback!r}")
    return callback


def _reject_awaitable(result: Any, name: str) -> None:
    if inspect.isawaitable(result):
        if inspect.iscoroutine(result):
            result.close()
        raise TypeError(
            f"Declaration callback for '{name}' must be synchronous; "
            "tests declared after an await would be lost"
        )
