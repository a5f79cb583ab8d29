#!/usr/bin/env python3
"""
ZARFKIT FILTERS - Explicit Selection
------------------------------------
Include/exclude selection by component name or glob. A leading "-" marks an
exclusion; the last pattern matching a name decides its state.

Author: ZarfKit Team
Date: 2026-02-03
"""

import fnmatch
from enum import Enum
from typing import List, Sequence, Tuple, Union

from zarfkit.core.models import Component, Package
from zarfkit.filters.strategy import ComponentFilterStrategy


class SelectState(Enum):
    UNKNOWN = 0
    INCLUDED = 1
    EXCLUDED = 2


def parse_requested(requested: Union[str, Sequence[str], None]) -> List[str]:
    """Accepts "a,b,-c" or a list, dropping blanks."""
    if not requested:
        return []
    if isinstance(requested, str):
        requested = requested.split(",")
    return [r.strip() for r in requested if r and r.strip()]


def included_or_excluded(name: str, requested: Sequence[str]) -> Tuple[SelectState, List[str]]:
    """
    Evaluates every request in order; the last pattern matching `name`
    decides. Returns the state and every request that matched.
    """
    state = SelectState.UNKNOWN
    matched: List[str] = []
    for request in requested:
        excluded = request.startswith("-")
        pattern = request[1:] if excluded else request
        if fnmatch.fnmatchcase(name, pattern):
            state = SelectState.EXCLUDED if excluded else SelectState.INCLUDED
            matched.append(request)
    return state, matched


def levenshtein(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + (ca != cb)))
        previous = current
    return previous[-1]


def near_misses(request: str, components: Sequence[Component], max_distance: int = 5) -> List[str]:
    target = request.lstrip("-")
    return [c.name for c in components if levenshtein(c.name, target) <= max_distance]


class BySelectState(ComponentFilterStrategy):
    """
    Keeps explicitly included components. With no request list at all,
    everything is kept.
    """

    def __init__(self, requested: Union[str, Sequence[str], None] = None):
        self.requested = parse_requested(requested)

    def apply(self, pkg: Package) -> List[Component]:
        if not self.requested:
            return list(pkg.components)
        return [c for c in pkg.components
                if included_or_excluded(c.name, self.requested)[0] is SelectState.INCLUDED]
