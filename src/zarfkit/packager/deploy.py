#!/usr/bin/env python3
"""
ZARFKIT PACKAGER - Deployment Planning
--------------------------------------
Loads a package from any source, narrows it to the components that apply to
this host and the user's selection, and hands back everything a cluster
deployer needs: the verified layout and the unarchived component directories.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from zarfkit.core.config import ZarfConfig
from zarfkit.core.models import Component, Package
from zarfkit.filters.deploy import ForDeploy
from zarfkit.filters.strategy import ByArchitectureAndOS, Combine
from zarfkit.layout.component import ComponentPaths
from zarfkit.layout.package import PackagePaths
from zarfkit.sources.base import RegistryFactory, new_source

logger = logging.getLogger("zarfkit.packager")


@dataclass
class DeploymentPlan:
    package: Package
    layout: PackagePaths
    components: List[Component] = field(default_factory=list)
    directories: Dict[str, ComponentPaths] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def component_names(self) -> List[str]:
        return [c.name for c in self.components]


class Deployer:
    def __init__(self, config: ZarfConfig, registry_factory: Optional[RegistryFactory] = None):
        self.config = config
        self.registry_factory = registry_factory

    def filter(self) -> Combine:
        return Combine(
            ByArchitectureAndOS(self.config.architecture, platform.system().lower()),
            ForDeploy(self.config.optional_components),
        )

    def plan(self, source: str, destination: Optional[Path] = None) -> DeploymentPlan:
        """
        Loads `source` into `destination` (a fresh temp dir by default) with
        the deploy filter applied. Every selected component is unarchived.
        """
        base = Path(destination) if destination else self.config.make_temp_dir(prefix="zarfkit-deploy-")
        layout = PackagePaths(base)
        package_source = new_source(source, self.config, self.registry_factory)

        pkg, warnings = package_source.load_package(layout, self.filter(), unarchive_all=True)
        for warning in warnings:
            logger.warning(warning)
        logger.info(f"Planned deployment of {pkg.metadata.name}: {[c.name for c in pkg.components]}")
        return DeploymentPlan(
            package=pkg,
            layout=layout,
            components=list(pkg.components),
            directories={c.name: layout.components.dirs[c.name] for c in pkg.components},
            warnings=warnings,
        )
