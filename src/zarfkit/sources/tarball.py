#!/usr/bin/env python3
"""
ZARFKIT SOURCES - Local and Remote Archives
-------------------------------------------
Packages distributed as a single tar, as a set of .partNNN files, or as a
tar behind an http(s) URL. Split and URL sources only fetch the archive and
then hand over to TarballSource.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import shutil
import tarfile
import time
from dataclasses import replace
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import httpx

from zarfkit.core.config import ZarfConfig
from zarfkit.core.errors import PackageFormatError, RegistryError, ZarfError
from zarfkit.core.models import Package
from zarfkit.filters.strategy import ComponentFilterStrategy
from zarfkit.integrity.checksums import shas_match
from zarfkit.layout.package import PackagePaths
from zarfkit.layout.paths import SBOM_TAR
from zarfkit.registry.layers import ALWAYS_PULL
from zarfkit.sources.base import PackageSource
from zarfkit.transport.split import reassemble

logger = logging.getLogger("zarfkit.sources")


def _extract_members(tarball: Path, destination: Path, wanted: Optional[Iterable[str]] = None) -> List[str]:
    """
    Extracts the regular files of `tarball` (all of them, or only those named
    in `wanted`) and returns their package-relative paths.
    """
    wanted = set(wanted) if wanted is not None else None
    try:
        with tarfile.open(tarball, "r:*") as tar:
            members = [m for m in tar.getmembers() if m.isfile()]
            if wanted is not None:
                members = [m for m in members if m.name in wanted]
            tar.extractall(destination, members=members, filter="data")
    except (tarfile.TarError, OSError) as e:
        raise PackageFormatError(f"unable to read package archive {tarball}: {e}") from e
    return [m.name for m in members]


class TarballSource(PackageSource):
    def _check_shasum(self) -> None:
        if self.config.shasum:
            shas_match(self.source, self.config.shasum)

    def load_package(self, dst: PackagePaths, filter: ComponentFilterStrategy,
                     unarchive_all: bool = True) -> Tuple[Package, List[str]]:
        start = time.monotonic()
        logger.info(f"Loading package from {self.source}")
        self._check_shasum()

        dst.set_from_paths(_extract_members(Path(self.source), dst.base))
        pkg, warnings = dst.read_zarf_yaml()
        pkg.components = filter.apply(pkg)

        warnings.extend(self._validate(dst, pkg, is_partial=False))
        if unarchive_all:
            self._unarchive(dst, pkg)

        logger.debug(f"Loaded {self.source} in {time.monotonic() - start:.3f}s")
        return pkg, warnings

    def load_package_metadata(self, dst: PackagePaths, want_sbom: bool = False,
                              skip_validation: bool = False) -> Tuple[Package, List[str]]:
        self._check_shasum()
        wanted = list(ALWAYS_PULL) + ([SBOM_TAR] if want_sbom else [])
        dst.set_from_paths(_extract_members(Path(self.source), dst.base, wanted))

        pkg, warnings = dst.read_zarf_yaml()
        warnings.extend(self._validate(dst, pkg, is_partial=True, skip_missing_key=skip_validation,
                                       check_integrity=want_sbom))
        if want_sbom:
            dst.sboms.unarchive()
        return pkg, warnings


class SplitTarballSource(PackageSource):
    """Reassembles the parts next to part000, then loads the result as a tarball."""

    def _reassembled(self) -> TarballSource:
        part000 = Path(self.source)
        tarball = reassemble(part000, part000.parent, expected_shasum=self.config.shasum)
        self.source = str(tarball)
        # the shasum described the reassembled archive, it is verified now
        config = replace(self.config, shasum="")
        return TarballSource(str(tarball), config)

    def load_package(self, dst: PackagePaths, filter: ComponentFilterStrategy,
                     unarchive_all: bool = True) -> Tuple[Package, List[str]]:
        return self._reassembled().load_package(dst, filter, unarchive_all)

    def load_package_metadata(self, dst: PackagePaths, want_sbom: bool = False,
                              skip_validation: bool = False) -> Tuple[Package, List[str]]:
        return self._reassembled().load_package_metadata(dst, want_sbom, skip_validation)


class URLSource(PackageSource):
    """Downloads a package tarball over http(s)."""

    def __init__(self, source: str, config: ZarfConfig, client: Optional[httpx.Client] = None):
        super().__init__(source, config)
        self.client = client

    def download(self, destination_dir: Path) -> Path:
        name = self.source.rstrip("/").rsplit("/", 1)[-1] or "zarf-package.tar"
        destination = Path(destination_dir) / name
        destination.parent.mkdir(parents=True, exist_ok=True)

        client = self.client or httpx.Client(follow_redirects=True, timeout=60.0)
        try:
            with client.stream("GET", self.source) as response:
                response.raise_for_status()
                with open(destination, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as e:
            raise RegistryError(f"unable to download {self.source}: {e}") from e
        finally:
            if self.client is None:
                client.close()

        if self.config.shasum:
            shas_match(destination, self.config.shasum)
        else:
            logger.warning(f"No shasum provided for {self.source}, skipping download verification")
        logger.info(f"Downloaded {self.source} to {destination}")
        return destination

    def _downloaded(self) -> TarballSource:
        scratch = self.config.make_temp_dir(prefix="zarfkit-download-")
        try:
            tarball = self.download(scratch)
        except ZarfError:
            shutil.rmtree(scratch, ignore_errors=True)
            raise
        config = replace(self.config, shasum="")
        return TarballSource(str(tarball), config)

    def load_package(self, dst: PackagePaths, filter: ComponentFilterStrategy,
                     unarchive_all: bool = True) -> Tuple[Package, List[str]]:
        source = self._downloaded()
        try:
            return source.load_package(dst, filter, unarchive_all)
        finally:
            shutil.rmtree(Path(source.source).parent, ignore_errors=True)

    def load_package_metadata(self, dst: PackagePaths, want_sbom: bool = False,
                              skip_validation: bool = False) -> Tuple[Package, List[str]]:
        source = self._downloaded()
        try:
            return source.load_package_metadata(dst, want_sbom, skip_validation)
        finally:
            shutil.rmtree(Path(source.source).parent, ignore_errors=True)
