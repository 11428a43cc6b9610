"""Decide which leaves run given the focus and skip markers in a tree."""

import logging
from collections import Counter
from collections.abc import Mapping
from enum import StrEnum

from scope_runner.models.tree import LeafId, Modifier, ScopeNode

log = logging.getLogger(__name__)


class Resolution(StrEnum):
    """What the scheduler should do with a leaf."""

    RUN = "run"
    EXCLUDED_BY_FOCUS = "excluded_by_focus"
    EXCLUDED_BY_SKIP = "excluded_by_skip"


def has_focus(root: ScopeNode) -> bool:
    """Whether any scope or test anywhere under ``root`` is focused."""
    if root.modifier is Modifier.FOCUS:
        return True
    if any(leaf.modifier is Modifier.FOCUS for leaf in root.tests):
        return True
    return any(has_focus(child) for child in root.children)


def resolve(root: ScopeNode) -> Mapping[LeafId, Resolution]:
    """Map every leaf under ``root`` to its resolution.

    Focus is global: once anything in the tree is focused, only leaves that
    are focused themselves or sit under a focused scope run. A skip marker on
    the leaf or any enclosing scope excludes the leaf and wins over focus.
    The tree is only read, never modified.
    """
    focus_mode = has_focus(root)
    resolution: dict[LeafId, Resolution] = {}

    for ancestry, leaf in root.walk():
        modifiers = [scope.modifier for scope in ancestry] + [leaf.modifier]
        if Modifier.SKIP in modifiers:
            resolution[leaf.id] = Resolution.EXCLUDED_BY_SKIP
        elif focus_mode and Modifier.FOCUS not in modifiers:
            resolution[leaf.id] = Resolution.EXCLUDED_BY_FOCUS
        else:
            resolution[leaf.id] = Resolution.RUN

    counts = Counter(resolution.values())
    log.info(
        "Resolved %d test(s): run=%d excluded_by_focus=%d excluded_by_skip=%d%s",
        len(resolution),
        counts[Resolution.RUN],
        counts[Resolution.EXCLUDED_BY_FOCUS],
        counts[Resolution.EXCLUDED_BY_SKIP],
        " (focus mode)" if focus_mode else "",
    )
    return resolution
