#!/usr/bin/env python3
"""
ZARFKIT PACKAGER - Package Creation
-----------------------------------
Turns a directory holding a zarf.yaml into a distributable package:
  1. compose every component's import chain,
  2. drop what a reference package already ships (differential builds),
  3. stage local resources per component and archive them,
  4. checksum, record build data, sign and tar (or split) the result.

Fetching remote resources (images, git repos, remote charts and files) is
handed to a ResourceCollector; the default one only records the request.

Author: ZarfKit Team
Date: 2026-02-03
"""

import getpass
import logging
import os
import shutil
import socket
import tarfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Protocol, Tuple, Union

from zarfkit.composer.chain import RegistryFactory
from zarfkit.composer.compose import compose_components
from zarfkit.composer.override import is_url
from zarfkit.core.config import ZarfConfig
from zarfkit.core.errors import IntegrityError, PackageFormatError, StructuralError
from zarfkit.core.models import Component, Package
from zarfkit.core.version import CLI_VERSION
from zarfkit.core.yamlio import read_package, write_package
from zarfkit.filters.differential import Differential
from zarfkit.integrity.checksums import shas_match
from zarfkit.layout.component import ComponentPaths
from zarfkit.layout.package import PackagePaths
from zarfkit.layout.paths import ZARF_YAML
from zarfkit.packager.deprecated import ALL_MIGRATIONS
from zarfkit.sources.base import new_source

logger = logging.getLogger("zarfkit.packager")

BUILD_TIMESTAMP_FORMAT = "%a, %d %b %Y %H:%M:%S %z"

ERR_DIFFERENTIAL_SAME_VERSION = (
    "unable to create differential package. Please ensure the differential package version "
    "and reference package version are not the same. The package version must be incremented"
)
ERR_DIFFERENTIAL_NO_VERSION = "unable to create differential package. Please ensure both package versions are set"


class ResourceCollector(Protocol):
    def collect(self, component: Component, kind: str, reference: str, destination: Optional[Path]) -> None:
        """Fetches one remote resource of `component` into `destination`."""


class DelegatedResources:
    """Default collector: remembers every remote resource it was handed."""

    def __init__(self):
        self.requests: List[Tuple[str, str, str]] = []

    def collect(self, component: Component, kind: str, reference: str, destination: Optional[Path]) -> None:
        self.requests.append((component.name, kind, reference))
        logger.info(f"[{component.name}] {kind} {reference} is delegated to the resource collector")


def package_name(pkg: Package) -> str:
    """zarf-package-<name>-<arch>[-<version>], as written to disk."""
    arch = pkg.metadata.architecture or pkg.build.architecture
    if pkg.is_init_config():
        name = f"zarf-init-{arch}"
    else:
        name = f"zarf-package-{pkg.metadata.name}-{arch}"
    if pkg.build.differential:
        name = f"{name}-{pkg.build.differential_package_version}-differential-{pkg.metadata.version}"
    elif pkg.metadata.version:
        name = f"{name}-{pkg.metadata.version}"
    return name


def _copy(source: Path, destination: Path) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    if source.is_dir():
        shutil.copytree(source, destination, dirs_exist_ok=True)
    else:
        shutil.copy2(source, destination)


class Creator:
    def __init__(self, config: ZarfConfig, collector: Optional[ResourceCollector] = None,
                 registry_factory: Optional[RegistryFactory] = None):
        self.config = config
        self.collector = collector or DelegatedResources()
        self.registry_factory = registry_factory
        self.package: Optional[Package] = None
        self.package_dir: Path = Path(".")

    # --- DEFINITION ---

    def load_definition(self, package_dir: Union[str, Path]) -> Tuple[Package, List[str]]:
        """Reads, composes and (for differential builds) reduces the definition."""
        self.package_dir = Path(package_dir)
        pkg, warnings = read_package(self.package_dir / ZARF_YAML)
        pkg.metadata.architecture = pkg.metadata.architecture or self.config.architecture

        pkg, compose_warnings = compose_components(
            pkg, self.package_dir, pkg.metadata.architecture, self.config.flavor,
            registry_factory=self.registry_factory,
            cache_dir=self.config.cache_path,
        )
        warnings.extend(compose_warnings)

        if self.config.differential_source:
            self._apply_differential(pkg)
        return pkg, warnings

    def _apply_differential(self, pkg: Package) -> None:
        scratch = self.config.make_temp_dir(prefix="zarfkit-differential-")
        try:
            source = new_source(self.config.differential_source, self.config, self.registry_factory)
            reference, _ = source.load_package_metadata(PackagePaths(scratch), skip_validation=True)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        if not reference.metadata.version or not pkg.metadata.version:
            raise StructuralError(ERR_DIFFERENTIAL_NO_VERSION)
        if reference.metadata.version == pkg.metadata.version:
            raise StructuralError(ERR_DIFFERENTIAL_SAME_VERSION)

        pkg.build.differential = True
        pkg.build.differential_package_version = reference.metadata.version
        names = {c.name for c in pkg.components}
        pkg.build.differential_missing = [c.name for c in reference.components if c.name not in names]
        pkg.components = Differential.from_package(reference).apply(pkg)
        logger.info(f"Building differential package against {reference.metadata.name} {reference.metadata.version}")

    # --- ASSEMBLY ---

    def assemble(self, package_dir: Union[str, Path], dst: PackagePaths) -> Tuple[Package, List[str]]:
        pkg, warnings = self.load_definition(package_dir)
        for component in pkg.components:
            self._add_component(component, dst)
        self.package = pkg
        return pkg, warnings

    def _local(self, source: str) -> Path:
        path = Path(source)
        return path if path.is_absolute() else self.package_dir / path

    def _add_component(self, component: Component, dst: PackagePaths) -> ComponentPaths:
        logger.info(f"Assembling component {component.name}")
        cp = dst.components.create(component)

        for chart in component.charts:
            if chart.local_path:
                _copy(self._local(chart.local_path), cp.charts / chart.name)
            else:
                self.collector.collect(component, "chart", chart.url, cp.charts)
            for idx, values in enumerate(chart.values_files):
                target = cp.values / f"{chart.name}-{idx}"
                if is_url(values):
                    self.collector.collect(component, "values", values, target)
                else:
                    _copy(self._local(values), target)

        for idx, file in enumerate(component.files):
            target = cp.files / str(idx) / Path(file.target).name
            if is_url(file.source):
                self.collector.collect(component, "file", file.source, target)
                continue
            if file.extract_path:
                self._extract_file(self._local(file.source), file.extract_path, target)
            else:
                _copy(self._local(file.source), target)
            if file.shasum:
                shas_match(target, file.shasum)
            os.chmod(target, 0o700 if file.executable or target.is_dir() else 0o600)

        for idx, injection in enumerate(component.data_injections):
            target = cp.data_injections / str(idx) / Path(injection.target.get("path", "")).name
            if is_url(injection.source):
                self.collector.collect(component, "data", injection.source, target)
            else:
                _copy(self._local(injection.source), target)

        for manifest in component.manifests:
            for idx, path in enumerate(manifest.files):
                target = cp.manifests / f"{manifest.name}-{idx}.yaml"
                if is_url(path):
                    self.collector.collect(component, "manifest", path, target)
                else:
                    _copy(self._local(path), target)
            for idx, path in enumerate(manifest.kustomizations):
                target = cp.manifests / f"kustomization-{manifest.name}-{idx}.yaml"
                self.collector.collect(component, "kustomization", path, target)

        for repo in component.repos:
            self.collector.collect(component, "repo", repo, cp.repos)
        for image in component.images:
            self.collector.collect(component, "image", image, None)
        return cp

    @staticmethod
    def _extract_file(archive: Path, member: str, target: Path) -> None:
        try:
            with tarfile.open(archive, "r:*") as tar:
                extracted = tar.extractfile(member)
                if extracted is None:
                    raise IntegrityError(f"{member} in {archive} is not a regular file")
                target.parent.mkdir(parents=True, exist_ok=True)
                with extracted, open(target, "wb") as out:
                    shutil.copyfileobj(extracted, out)
        except KeyError as e:
            raise IntegrityError(f"unable to extract {member} from {archive}: not found") from e
        except tarfile.TarError as e:
            raise PackageFormatError(f"unable to read archive {archive}: {e}") from e

    # --- OUTPUT ---

    def record_build_data(self, pkg: Package) -> None:
        build = pkg.build
        try:
            build.user = getpass.getuser()
        except (KeyError, OSError):
            build.user = ""
        build.terminal = socket.gethostname()
        if pkg.is_init_config() and not pkg.metadata.version:
            pkg.metadata.version = CLI_VERSION
        build.architecture = pkg.metadata.architecture
        build.version = CLI_VERSION
        build.timestamp = datetime.now().astimezone().strftime(BUILD_TIMESTAMP_FORMAT)
        build.flavor = self.config.flavor
        build.migrations = list(ALL_MIGRATIONS)

    def output(self, dst: PackagePaths, destination_dir: Union[str, Path],
               pkg: Optional[Package] = None) -> List[Path]:
        """Archives components, seals the package and writes the tarball(s)."""
        pkg = pkg or self.package
        if pkg is None:
            raise StructuralError("no package has been assembled")

        for component in pkg.components:
            dst.components.archive(component)

        dst.base.mkdir(parents=True, exist_ok=True)
        pkg.metadata.aggregate_checksum = dst.generate_checksums()
        self.record_build_data(pkg)
        write_package(dst.zarf_yaml, pkg)
        dst.sign_package(self.config.signing_key_path, self.config.signing_key_password)

        tarball = Path(destination_dir) / f"{package_name(pkg)}.tar"
        if tarball.exists():
            tarball.unlink()
        return dst.archive_package(tarball, self.config.max_package_size_mb)
