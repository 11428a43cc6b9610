"""Models for test execution results."""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Literal

TestStatus = Literal["pass", "fail", "excluded_by_focus", "excluded_by_skip"]

EXCLUDED_STATUSES: frozenset[TestStatus] = frozenset(
    {"excluded_by_focus", "excluded_by_skip"}
)


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Outcome of a single leaf.

    A slow test keeps its real pass/fail status and additionally carries
    ``timeout_warning=True``.
    """

    __test__ = False

    leaf_id: tuple[str, ...]
    status: TestStatus
    duration: float = 0.0
    message: str | None = None
    timeout_warning: bool = False
    elapsed_at_warning: float | None = None

    @property
    def name(self) -> str:
        """Name of the test."""
        return self.leaf_id[-1]

    @property
    def excluded(self) -> bool:
        """Whether the leaf was excluded by focus or skip."""
        return self.status in EXCLUDED_STATUSES


@dataclass(frozen=True, kw_only=True)
class ScopeReport:
    """Results arranged like the scope tree they came from.

    ``items`` interleaves results and nested reports in declaration order.
    """

    name: str
    path: tuple[str, ...]
    items: Sequence["TestResult | ScopeReport"] = ()

    def iter_results(self) -> Iterator[TestResult]:
        """Yield every result under this scope in declaration order."""
        for item in self.items:
            if isinstance(item, TestResult):
                yield item
            else:
                yield from item.iter_results()


@dataclass(frozen=True, kw_only=True)
class ModuleFailure:
    """A test module whose declarations could not be built."""

    module: str
    message: str


@dataclass(frozen=True, kw_only=True)
class RunReport:
    """Everything a reporter receives at the end of a run."""

    root: ScopeReport
    build_failures: Sequence[ModuleFailure] = ()
    duration: float = 0.0

    def results(self) -> list[TestResult]:
        """All results in tree order."""
        return list(self.root.iter_results())

    @property
    def passed(self) -> int:
        """Number of passing tests."""
        return sum(1 for r in self.root.iter_results() if r.status == "pass")

    @property
    def failed(self) -> int:
        """Number of failing tests."""
        return sum(1 for r in self.root.iter_results() if r.status == "fail")

    @property
    def excluded(self) -> int:
        """Number of tests excluded by focus or skip."""
        return sum(1 for r in self.root.iter_results() if r.excluded)

    @property
    def timeout_warnings(self) -> int:
        """Number of tests that outlived the warning delay."""
        return sum(1 for r in self.root.iter_results() if r.timeout_warning)

    @property
    def has_failures(self) -> bool:
        """Whether any test failed or any module failed to build."""
        return self.failed > 0 or bool(self.build_failures)
