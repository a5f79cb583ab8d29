#!/usr/bin/env python3
"""
ZARFKIT SOURCES - Registry Packages
-----------------------------------
Pulls a package published as an OCI artifact. The package definition is
pulled first; when the caller confirmed a component selection only the
layers those components need are fetched, and integrity is then checked
in partial mode.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
from typing import List, Optional, Tuple

from zarfkit.core.config import ZarfConfig
from zarfkit.core.models import Package
from zarfkit.filters.strategy import ComponentFilterStrategy
from zarfkit.layout.package import PackagePaths
from zarfkit.layout.paths import SBOM_TAR
from zarfkit.registry.client import RegistryClient
from zarfkit.registry.http import HttpRegistryClient
from zarfkit.registry.layers import ALWAYS_PULL, layers_to_pull
from zarfkit.registry.oci import Descriptor
from zarfkit.sources.base import PackageSource, RegistryFactory

logger = logging.getLogger("zarfkit.sources")


class OCISource(PackageSource):
    def __init__(self, source: str, config: ZarfConfig,
                 registry_factory: Optional[RegistryFactory] = None):
        super().__init__(source, config)
        factory = registry_factory or (lambda ref: HttpRegistryClient(ref, plain_http=config.plain_http))
        self.client: RegistryClient = factory(source)

    def _pull_paths(self, dst: PackagePaths, paths: List[str]) -> List[Descriptor]:
        root = self.client.fetch_root()
        layers = [root.locate(p) for p in paths]
        layers = [desc for desc in layers if not desc.is_empty()]
        self.client.pull_layers(layers, dst.base)
        dst.set_from_layers(layers)
        return layers

    def load_package(self, dst: PackagePaths, filter: ComponentFilterStrategy,
                     unarchive_all: bool = True) -> Tuple[Package, List[str]]:
        logger.info(f"Loading package from {self.source}")
        self._pull_paths(dst, ALWAYS_PULL)
        pkg, warnings = dst.read_zarf_yaml()
        pkg.components = filter.apply(pkg)

        requested = [c.name for c in pkg.components] if self.config.optional_components else []
        root = self.client.fetch_root()
        layers = layers_to_pull(self.client, requested, self.config.confirm)
        is_partial = len(layers) != len(root.layers)
        if is_partial:
            logger.debug(f"Pulling {len(layers)} of {len(root.layers)} layers")

        self.client.pull_layers(layers, dst.base)
        dst.set_from_layers(layers)

        warnings.extend(self._validate(dst, pkg, is_partial=is_partial))
        if unarchive_all:
            self._unarchive(dst, pkg)
        return pkg, warnings

    def load_package_metadata(self, dst: PackagePaths, want_sbom: bool = False,
                              skip_validation: bool = False) -> Tuple[Package, List[str]]:
        self._pull_paths(dst, list(ALWAYS_PULL) + ([SBOM_TAR] if want_sbom else []))
        pkg, warnings = dst.read_zarf_yaml()
        warnings.extend(self._validate(dst, pkg, is_partial=True, skip_missing_key=skip_validation,
                                       check_integrity=want_sbom))
        if want_sbom:
            dst.sboms.unarchive()
        return pkg, warnings
