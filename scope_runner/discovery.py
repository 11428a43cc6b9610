"""Find and load test modules below a root directory."""

import importlib.util
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from scope_runner.builder import Declaration
from scope_runner.errors import BuildFailure

log = logging.getLogger(__name__)

TEST_SUFFIX = ".test.py"
DECLARATION_ATTRIBUTE = "tests"


@dataclass(frozen=True, kw_only=True)
class TestModule:
    """A file recognised as a test module."""

    __test__ = False

    name: str
    path: Path


def discover_test_modules(root: Path) -> Sequence[TestModule]:
    """Find all ``*.test.py`` files below ``root``, sorted by path.

    The module name is the dotted path relative to ``root`` without the
    suffix, e.g. ``math/vector.test.py`` becomes ``math.vector``.
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Test root not found: {root}")

    modules = [
        TestModule(name=module_name(path.relative_to(root)), path=path)
        for path in sorted(root.rglob(f"*{TEST_SUFFIX}"))
        if path.is_file()
    ]
    log.info("Discovered %d test module(s) in %s", len(modules), root)
    return modules


def module_name(relative: Path) -> str:
    """Dotted module name for a test file path relative to the test root."""
    stem = relative.name.removesuffix(TEST_SUFFIX)
    return ".".join((*relative.parent.parts, stem))


def load_declaration(module: TestModule) -> Declaration:
    """Import a test module and return its ``tests`` declaration callback.

    Raises:
        BuildFailure: The module failed to import or exports no callable ``tests``

    """
    spec = importlib.util.spec_from_file_location(
        f"scope_runner_tests.{module.name}", module.path
    )
    if spec is None or spec.loader is None:
        raise BuildFailure(module.name, f"Cannot import {module.path}")

    loaded = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(loaded)
    except (Exception, SystemExit) as exc:
        raise BuildFailure(module.name, exc) from exc

    declare = getattr(loaded, DECLARATION_ATTRIBUTE, None)
    if not callable(declare):
        raise BuildFailure(
            module.name,
            f"{module.path} must define a callable '{DECLARATION_ATTRIBUTE}'",
        )
    return declare
