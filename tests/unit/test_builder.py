"""Tests for the scope tree builder."""

import sys
from typing import Any

import pytest

from scope_runner.builder import TestProps, build_run_tree, build_scope_tree
from scope_runner.errors import BindingExpiredError, BuildFailure, DuplicateNameError
from scope_runner.models.tree import Modifier, ScopeNode, TestLeaf


def noop(context: Any) -> None:
    """Do nothing."""


def test_records_tests_with_modifiers() -> None:
    """test, test_focus and test_skip record leaves with their modifier."""

    def declare(t: TestProps) -> None:
        t.test("plain", noop)
        t.test_focus("focused", noop)
        t.test_skip("skipped", noop)

    scope = build_scope_tree("mod", declare)

    assert [leaf.name for leaf in scope.tests] == ["plain", "focused", "skipped"]
    assert [leaf.modifier for leaf in scope.tests] == [
        Modifier.NONE,
        Modifier.FOCUS,
        Modifier.SKIP,
    ]
    assert scope.tests[1].id == ("mod", "focused")


def test_camel_case_aliases_match_snake_case() -> None:
    """testFOCUS and testSKIP behave like test_focus and test_skip."""

    def declare(t: TestProps) -> None:
        t.testFOCUS("focused", noop)
        t.testSKIP("skipped", noop)
        t.beforeEach(noop)
        t.afterEach(noop)

    scope = build_scope_tree("mod", declare)

    assert [leaf.modifier for leaf in scope.tests] == [Modifier.FOCUS, Modifier.SKIP]
    assert scope.before_each == (noop,)
    assert scope.after_each == (noop,)


def test_nested_scopes_preserve_declaration_order() -> None:
    """Tests and nested scopes keep the order they were declared in."""

    def declare(t: TestProps) -> None:
        t.test("first", noop)

        def inner() -> None:
            t.test("inner test", noop)

            def deepest() -> None:
                t.test("deep test", noop)

            t.nested("deeper", deepest)

        t.nested("inner", inner)
        t.test("last", noop)

    scope = build_scope_tree("mod", declare)

    assert [item.name for item in scope.items] == ["first", "inner", "last"]
    assert [leaf.id for _, leaf in scope.walk()] == [
        ("mod", "first"),
        ("mod", "inner", "inner test"),
        ("mod", "inner", "deeper", "deep test"),
        ("mod", "last"),
    ]


def test_hooks_attach_to_current_scope() -> None:
    """Hooks declared inside nested belong to the nested scope."""

    def outer_hook(context: Any) -> None:
        pass

    def inner_hook(context: Any) -> None:
        pass

    def declare(t: TestProps) -> None:
        t.before_each(outer_hook)

        def inner() -> None:
            t.after_each(inner_hook)
            t.test("test", noop)

        t.nested("inner", inner)

    scope = build_scope_tree("mod", declare)
    (inner,) = scope.children

    assert scope.before_each == (outer_hook,)
    assert scope.after_each == ()
    assert inner.before_each == ()
    assert inner.after_each == (inner_hook,)


def test_nested_focus_and_skip_mark_scopes() -> None:
    """nested_focus and nested_skip set the scope modifier."""

    def declare(t: TestProps) -> None:
        t.nested_focus("focused", lambda: t.test("a", noop))
        t.nested_skip("skipped", lambda: t.test("b", noop))

    scope = build_scope_tree("mod", declare)

    assert [child.modifier for child in scope.children] == [
        Modifier.FOCUS,
        Modifier.SKIP,
    ]


def test_scope_nodes_are_immutable() -> None:
    """The built tree cannot be modified."""
    scope = build_scope_tree("mod", lambda t: t.test("a", noop))

    with pytest.raises(AttributeError):
        scope.modifier = Modifier.SKIP  # type: ignore[misc]
    assert isinstance(scope.items, tuple)
    assert isinstance(scope.items[0], TestLeaf)


def test_binding_expires_after_declaration() -> None:
    """Using the binding after the callback returned is rejected."""
    escaped: list[TestProps] = []

    scope = build_scope_tree("mod", escaped.append)

    with pytest.raises(BindingExpiredError):
        escaped[0].test("late", noop)
    assert scope.items == ()


def test_raising_declaration_becomes_build_failure() -> None:
    """A declaration callback that raises fails the build of its module."""

    def declare(t: TestProps) -> None:
        t.test("a", noop)
        raise RuntimeError("boom")

    with pytest.raises(BuildFailure) as exc_info:
        build_scope_tree("mod", declare)

    assert exc_info.value.module == "mod"
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert "RuntimeError: boom" in str(exc_info.value)


def test_exiting_declaration_becomes_build_failure() -> None:
    """A declaration that calls sys.exit fails its module instead of the run."""

    def declare(t: TestProps) -> None:
        t.test("a", noop)
        sys.exit(4)

    with pytest.raises(BuildFailure) as exc_info:
        build_scope_tree("mod", declare)

    assert isinstance(exc_info.value.cause, SystemExit)
    assert "SystemExit: 4" in str(exc_info.value)


def test_async_declaration_is_rejected() -> None:
    """Declarations must run synchronously."""

    async def declare(t: TestProps) -> None:
        t.test("a", noop)

    with pytest.raises(BuildFailure, match="must be synchronous"):
        build_scope_tree("mod", declare)


def test_duplicate_test_name_is_rejected() -> None:
    """Two tests with one name in one scope fail the build."""

    def declare(t: TestProps) -> None:
        t.test("same", noop)
        t.test("same", noop)

    with pytest.raises(BuildFailure) as exc_info:
        build_scope_tree("mod", declare)

    assert isinstance(exc_info.value.cause, DuplicateNameError)


def test_same_test_name_in_different_scopes_is_allowed() -> None:
    """Names only need to be unique within a scope."""

    def declare(t: TestProps) -> None:
        t.test("same", noop)
        t.nested("inner", lambda: t.test("same", noop))

    scope = build_scope_tree("mod", declare)

    assert len(list(scope.walk())) == 2


def test_non_callable_test_is_rejected() -> None:
    """Tests must be callables."""
    with pytest.raises(BuildFailure, match="Expected a callable"):
        build_scope_tree("mod", lambda t: t.test("a", "not callable"))


class TestBuildRunTree:
    """Tests for build_run_tree."""

    def test_builds_one_scope_per_module(self) -> None:
        """Each module becomes a child of the nameless root."""
        root, failures = build_run_tree(
            {
                "alpha": lambda t: t.test("a", noop),
                "beta": lambda t: t.test("b", noop),
            }
        )

        assert isinstance(root, ScopeNode)
        assert root.path == ()
        assert [child.path for child in root.children] == [("alpha",), ("beta",)]
        assert failures == []

    def test_failed_module_is_contained(self) -> None:
        """A failing module is dropped and reported; others still build."""

        def broken(t: TestProps) -> None:
            raise ValueError("bad declaration")

        root, failures = build_run_tree(
            {"broken": broken, "ok": lambda t: t.test("a", noop)}
        )

        assert [child.name for child in root.children] == ["ok"]
        assert len(failures) == 1
        assert failures[0].module == "broken"
        assert "bad declaration" in failures[0].message
