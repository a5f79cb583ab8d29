#!/usr/bin/env python3
"""
ZARFKIT SOURCES - Package Source Contract
-----------------------------------------
A source knows how to fetch a package from one kind of location (tarball,
split tarball, registry, URL) into a PackagePaths layout. Every load ends the
same way: verify the integrity and signature of what was fetched, then
unarchive the selected components.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse

from zarfkit.core.config import ZarfConfig
from zarfkit.core.errors import PackageFormatError
from zarfkit.core.models import Package
from zarfkit.filters.strategy import ComponentFilterStrategy
from zarfkit.integrity.checksums import validate_package_integrity
from zarfkit.integrity.signature import validate_package_signature
from zarfkit.layout.package import PackagePaths
from zarfkit.registry.client import RegistryClient

logger = logging.getLogger("zarfkit.sources")

RegistryFactory = Callable[[str], RegistryClient]

SOURCE_OCI = "oci"
SOURCE_HTTP = "http"
SOURCE_TARBALL = "tarball"
SOURCE_SPLIT = "split"


def identify_source(src: str) -> str:
    """Classifies a package source string as oci, http, split or tarball."""
    parsed = urlparse(src)
    if parsed.scheme and parsed.netloc:
        if parsed.scheme == "oci":
            return SOURCE_OCI
        if parsed.scheme in ("http", "https"):
            return SOURCE_HTTP
        raise PackageFormatError(f"unsupported package source scheme {parsed.scheme!r}: {src}")
    if src.endswith(".tar.zst"):
        raise PackageFormatError(f"zstd-compressed packages are not supported: {src}")
    if ".part000" in src:
        return SOURCE_SPLIT
    if src.endswith(".tar"):
        return SOURCE_TARBALL
    raise PackageFormatError(f"unknown package source {src}")


class PackageSource(ABC):
    def __init__(self, source: str, config: ZarfConfig):
        self.source = source
        self.config = config

    def __repr__(self):
        return f"{type(self).__name__}({self.source!r})"

    @abstractmethod
    def load_package(self, dst: PackagePaths, filter: ComponentFilterStrategy,
                     unarchive_all: bool = True) -> Tuple[Package, List[str]]:
        """Fetches the full package, validates it and applies `filter`."""

    @abstractmethod
    def load_package_metadata(self, dst: PackagePaths, want_sbom: bool = False,
                              skip_validation: bool = False) -> Tuple[Package, List[str]]:
        """Fetches only zarf.yaml, checksums, signature (and SBOMs when asked)."""

    # --- SHARED STEPS ---

    def _validate(self, dst: PackagePaths, pkg: Package, is_partial: bool,
                  skip_missing_key: bool = False, check_integrity: bool = True) -> List[str]:
        if dst.is_legacy_layout():
            logger.debug(f"Skipping validation of legacy package {pkg.metadata.name}")
            return []
        warnings: List[str] = []
        if check_integrity:
            warnings.extend(validate_package_integrity(dst, pkg.metadata.aggregate_checksum, is_partial))
        warnings.extend(validate_package_signature(
            dst,
            public_key_path=self.config.public_key_path,
            skip_missing_key=skip_missing_key,
            insecure=self.config.insecure,
        ))
        return warnings

    @staticmethod
    def _unarchive(dst: PackagePaths, pkg: Package) -> None:
        for component in pkg.components:
            if component.name in dst.components.tarballs:
                dst.components.unarchive(component)
            elif component.name not in dst.components.dirs:
                # components without content ship no tarball
                dst.components.create(component)
        dst.sboms.unarchive()


def new_source(source: str, config: ZarfConfig,
               registry_factory: Optional[RegistryFactory] = None) -> PackageSource:
    """Returns the PackageSource implementation for `source`."""
    from zarfkit.sources.oci import OCISource
    from zarfkit.sources.tarball import SplitTarballSource, TarballSource, URLSource

    kind = identify_source(source)
    logger.debug(f"Identified {source} as a {kind} source")
    if kind == SOURCE_OCI:
        return OCISource(source, config, registry_factory=registry_factory)
    if kind == SOURCE_HTTP:
        return URLSource(source, config)
    if kind == SOURCE_SPLIT:
        return SplitTarballSource(source, config)
    return TarballSource(source, config)
