#!/usr/bin/env python3
"""
ZARFKIT FILTERS - Deployment Selection
--------------------------------------
Chooses what gets deployed. Components sharing a (deprecated) group key are
mutually exclusive; an ungrouped component is its own group of one.

Within each group:
  1. required components are always selected,
  2. an explicitly requested component wins,
  3. otherwise the group's default is used,
  4. a multi-member group with neither is an error.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
from typing import Dict, List, Optional, Sequence, Union

from zarfkit.core.errors import (
    ComponentNotFoundError,
    MultipleSameGroupError,
    NoDefaultOrSelectionError,
    PackageFormatError,
)
from zarfkit.core.models import Component, Package
from zarfkit.core.version import UNSET_CLI_VERSION, version_less_than
from zarfkit.filters.select import SelectState, included_or_excluded, near_misses, parse_requested
from zarfkit.filters.strategy import ComponentFilterStrategy

logger = logging.getLogger("zarfkit.filters")

# packages built before this only understood `required`
REQUIRED_LOGIC_BEFORE = "v0.33.0"


def uses_required_logic(pkg: Package) -> bool:
    version = pkg.build.version
    if not version or version == UNSET_CLI_VERSION:
        return False
    try:
        return version_less_than(version, REQUIRED_LOGIC_BEFORE)
    except ValueError as e:
        raise PackageFormatError(f"unable to parse package version: {e}") from e


def group_components(components: Sequence[Component]) -> Dict[str, List[Component]]:
    """Groups by `group` (or name), keeping first-seen group order."""
    grouped: Dict[str, List[Component]] = {}
    for component in components:
        grouped.setdefault(component.group or component.name, []).append(component)
    return grouped


class ForDeploy(ComponentFilterStrategy):
    def __init__(self, requested: Union[str, Sequence[str], None] = None):
        self.requested = parse_requested(requested)

    def apply(self, pkg: Package) -> List[Component]:
        use_required_logic = uses_required_logic(pkg)
        grouped = group_components(pkg.components)
        if self.requested:
            return self._partial(pkg, grouped, use_required_logic)
        return self._defaults(grouped, use_required_logic)

    def _partial(self, pkg: Package, grouped: Dict[str, List[Component]],
                 use_required_logic: bool) -> List[Component]:
        selected: List[Component] = []
        matched = set()

        for group_key, members in grouped.items():
            group_default: Optional[Component] = None
            group_selected: Optional[Component] = None

            for component in members:
                state, requests = included_or_excluded(component.name, self.requested)
                matched.update(requests)

                if component.is_required(use_required_logic):
                    state = SelectState.INCLUDED
                elif state is SelectState.EXCLUDED:
                    continue
                elif state is SelectState.UNKNOWN and component.default and group_default is None:
                    group_default = component

                if state is SelectState.INCLUDED:
                    if group_selected is not None:
                        raise MultipleSameGroupError(group_selected.name, component.name, component.group)
                    selected.append(component)
                    group_selected = component

            if group_selected is None and group_default is not None:
                selected.append(group_default)
            elif group_selected is None and len(members) > 1:
                raise NoDefaultOrSelectionError([c.name for c in members])

        missing = {r: near_misses(r, pkg.components) for r in self.requested if r not in matched}
        if missing:
            raise ComponentNotFoundError(missing)

        # groups are visited in first-seen order, restore package order
        order = {id(c): i for i, c in enumerate(pkg.components)}
        return sorted(selected, key=lambda c: order[id(c)])

    def _defaults(self, grouped: Dict[str, List[Component]], use_required_logic: bool) -> List[Component]:
        """Without a request list: what a confirmed, non-interactive deploy gets."""
        selected: List[Component] = []
        for members in grouped.values():
            if len(members) > 1:
                choice = next((c for c in members if c.default), None)
                if choice is None:
                    raise NoDefaultOrSelectionError([c.name for c in members])
                selected.append(choice)
                logger.debug(f"Selected {choice.name!r} from group {choice.group!r}")
                continue
            component = members[0]
            if component.is_required(use_required_logic) or component.default:
                selected.append(component)
        return selected
