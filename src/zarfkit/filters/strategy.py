#!/usr/bin/env python3
"""
ZARFKIT FILTERS - Strategy Contract
-----------------------------------
A filter takes a package and returns the components it keeps, in package
order. Filters never mutate the package they are given.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
from abc import ABC, abstractmethod
from typing import List

from zarfkit.composer.chain import compatible_component
from zarfkit.core.errors import FilterError, ZarfError
from zarfkit.core.models import Component, Package

logger = logging.getLogger("zarfkit.filters")


class ComponentFilterStrategy(ABC):
    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def apply(self, pkg: Package) -> List[Component]:
        """Returns the components of `pkg` this strategy keeps."""


class EmptyFilter(ComponentFilterStrategy):
    """Keeps everything."""

    def apply(self, pkg: Package) -> List[Component]:
        return list(pkg.components)


class ByArchitectureAndOS(ComponentFilterStrategy):
    """Keeps components whose `only` constraints are unset or match exactly."""

    def __init__(self, arch: str = "", local_os: str = ""):
        self.arch = arch
        self.local_os = local_os

    def apply(self, pkg: Package) -> List[Component]:
        kept = []
        for component in pkg.components:
            only = component.only
            if self.arch and only.cluster.architecture and only.cluster.architecture != self.arch:
                continue
            if self.local_os and only.local_os and only.local_os != self.local_os:
                continue
            kept.append(component)
        return kept


class ForCreate(ComponentFilterStrategy):
    """Keeps components compatible with the architecture and flavor being built."""

    def __init__(self, arch: str, flavor: str = ""):
        self.arch = arch
        self.flavor = flavor

    def apply(self, pkg: Package) -> List[Component]:
        return [c for c in pkg.components if compatible_component(c, self.arch, self.flavor)]


class Combine(ComponentFilterStrategy):
    """
    Threads the package through each strategy in order, handing the next
    strategy a package holding only the components kept so far.
    """

    def __init__(self, *strategies: ComponentFilterStrategy):
        self.strategies = list(strategies)

    def apply(self, pkg: Package) -> List[Component]:
        current = pkg.clone()
        for strategy in self.strategies:
            try:
                current.components = strategy.apply(current)
            except ZarfError as e:
                raise FilterError(strategy.name, e) from e
            logger.debug(f"{strategy.name} kept {[c.name for c in current.components]}")
        return current.components
