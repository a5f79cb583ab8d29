#!/usr/bin/env python3
"""
ZARFKIT COMPOSER - Package Pass
-------------------------------
Runs every top-level component of a package through its import chain and
returns the flattened package. The input package is left untouched.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import time
from pathlib import Path
from typing import List, Optional, Tuple

from zarfkit.composer.chain import ImportChain, RegistryFactory, compatible_component
from zarfkit.core.models import Package

logger = logging.getLogger("zarfkit.composer")


def compose_components(pkg: Package, package_path: Path, arch: str, flavor: str = "",
                       registry_factory: Optional[RegistryFactory] = None,
                       cache_dir: Optional[Path] = None) -> Tuple[Package, List[str]]:
    """
    Flattens each component compatible with `arch`/`flavor`, merges the
    variables and constants found along the chains, and strips the resolved
    architecture and flavor constraints from the result.
    """
    composed_pkg = pkg.clone()
    components = []
    variables = list(composed_pkg.variables)
    constants = list(composed_pkg.constants)
    warnings: List[str] = []

    for index, component in enumerate(pkg.components):
        if not compatible_component(component, arch, flavor):
            logger.debug(f"Skipping {component.name!r}: not compatible with {arch}/{flavor or 'no flavor'}")
            continue

        start = time.monotonic()
        chain = ImportChain.build(
            component, index, pkg.metadata.name, arch, flavor,
            package_path=Path(package_path),
            registry_factory=registry_factory,
            cache_dir=cache_dir,
        )
        logger.debug(f"Building import chain for {component.name!r} took {time.monotonic() - start:.3f}s")

        warnings.extend(chain.migrate(composed_pkg.build))

        composed = chain.compose()
        # resolved filters only bloat the built package
        composed.only.cluster.architecture = ""
        composed.only.flavor = ""
        components.append(composed)

        variables = chain.merge_variables(variables)
        constants = chain.merge_constants(constants)

    composed_pkg.components = components
    composed_pkg.variables = variables
    composed_pkg.constants = constants
    if flavor:
        composed_pkg.build.flavor = flavor
    return composed_pkg, warnings
