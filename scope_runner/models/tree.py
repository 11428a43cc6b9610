"""Immutable scope tree produced by the builder."""

from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from scope_runner.context import Context

type ScopePath = tuple[str, ...]
type LeafId = tuple[str, ...]
type TestCallback = Callable[[Context], Awaitable[Any] | Any]
type Hook = Callable[[Context], Awaitable[Any] | Any]
type Ancestry = tuple["ScopeNode", ...]


class Modifier(StrEnum):
    """Declaration-time marker on a test or a scope."""

    NONE = "none"
    FOCUS = "focus"
    SKIP = "skip"


@dataclass(frozen=True, kw_only=True)
class TestLeaf:
    """A single declared test."""

    __test__ = False

    name: str
    scope_path: ScopePath
    callback: TestCallback
    modifier: Modifier = Modifier.NONE

    @property
    def id(self) -> LeafId:
        """Identity of the leaf: its scope path followed by its name."""
        return (*self.scope_path, self.name)


@dataclass(frozen=True, kw_only=True)
class ScopeNode:
    """A named group of tests, hooks and nested scopes.

    ``items`` keeps tests and nested scopes interleaved exactly as they were
    declared. The run root has an empty path and one child per test module.
    """

    name: str
    path: ScopePath
    modifier: Modifier = Modifier.NONE
    items: tuple["TestLeaf | ScopeNode", ...] = ()
    before_each: tuple[Hook, ...] = ()
    after_each: tuple[Hook, ...] = ()

    @property
    def children(self) -> tuple["ScopeNode", ...]:
        """Nested scopes in declaration order."""
        return tuple(item for item in self.items if isinstance(item, ScopeNode))

    @property
    def tests(self) -> tuple[TestLeaf, ...]:
        """Tests declared directly in this scope, in declaration order."""
        return tuple(item for item in self.items if isinstance(item, TestLeaf))

    def walk(self) -> Iterator[tuple[Ancestry, TestLeaf]]:
        """Yield ``(ancestry, leaf)`` depth-first in declaration order.

        ``ancestry`` runs from this scope down to the leaf's own scope.
        """
        yield from self._walk(())

    def _walk(self, parents: Ancestry) -> Iterator[tuple[Ancestry, TestLeaf]]:
        ancestry = (*parents, self)
        for item in self.items:
            if isinstance(item, TestLeaf):
                yield ancestry, item
            else:
                yield from item._walk(ancestry)
