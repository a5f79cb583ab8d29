#!/usr/bin/env python3
"""
ZARFKIT LAYOUT - Component Directories
--------------------------------------
Each component is staged in components/<name>/ while a package is built and
shipped as components/<name>.tar. This module owns that transition in both
directions, producing byte-identical tarballs for identical content.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import os
import shutil
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from zarfkit.core.errors import StructuralError
from zarfkit.core.models import Component
from zarfkit.layout.paths import (
    CHARTS_DIR,
    DATA_INJECTIONS_DIR,
    FILES_DIR,
    MANIFESTS_DIR,
    REPOS_DIR,
    TEMP_DIR,
    VALUES_DIR,
)

logger = logging.getLogger("zarfkit.layout")


def reproducible_tarinfo(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo:
    """Zeroes the metadata that differs between builds."""
    tarinfo.mtime = 0
    tarinfo.uid = 0
    tarinfo.gid = 0
    tarinfo.uname = ""
    tarinfo.gname = ""
    if tarinfo.isdir() or tarinfo.mode & 0o111:
        tarinfo.mode = 0o755
    else:
        tarinfo.mode = 0o644
    return tarinfo


def create_reproducible_tarball(src_dir: Path, prefix: str, destination: Path) -> Path:
    """Archives `src_dir` under `prefix/` with sorted entries and fixed metadata."""
    src_dir = Path(src_dir)
    with tarfile.open(destination, "w", format=tarfile.PAX_FORMAT) as tar:
        if prefix:
            tar.add(src_dir, arcname=prefix, recursive=False, filter=reproducible_tarinfo)
        for item in sorted(src_dir.rglob("*")):
            rel = item.relative_to(src_dir).as_posix()
            arcname = f"{prefix}/{rel}" if prefix else rel
            tar.add(item, arcname=arcname, recursive=False, filter=reproducible_tarinfo)
    return destination


def extract_tarball(tarball: Path, destination: Path, strip_components: int = 0) -> None:
    """Extracts `tarball` into `destination`, optionally dropping leading path segments."""
    destination.mkdir(parents=True, exist_ok=True)
    with tarfile.open(tarball, "r:*") as tar:
        members = []
        for member in tar.getmembers():
            if strip_components:
                segments = member.name.split("/")[strip_components:]
                if not segments or segments == [""]:
                    continue
                member.name = "/".join(segments)
            members.append(member)
        tar.extractall(path=destination, members=members, filter="data")


def _dir_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            total += os.path.getsize(os.path.join(root, name))
    return total


@dataclass
class ComponentPaths:
    base: Path
    temp: Optional[Path] = None
    files: Optional[Path] = None
    charts: Optional[Path] = None
    values: Optional[Path] = None
    repos: Optional[Path] = None
    manifests: Optional[Path] = None
    data_injections: Optional[Path] = None

    @classmethod
    def for_component(cls, base: Path, component: Component) -> "ComponentPaths":
        """The directories `component` needs, without touching the filesystem."""
        cp = cls(base=base, temp=base / TEMP_DIR)
        if component.files:
            cp.files = base / FILES_DIR
        if component.charts:
            cp.charts = base / CHARTS_DIR
            if any(chart.values_files for chart in component.charts):
                cp.values = base / VALUES_DIR
        if component.repos:
            cp.repos = base / REPOS_DIR
        if component.manifests:
            cp.manifests = base / MANIFESTS_DIR
        if component.data_injections:
            cp.data_injections = base / DATA_INJECTIONS_DIR
        return cp


@dataclass
class Components:
    base: Path
    dirs: Dict[str, ComponentPaths] = field(default_factory=dict)
    tarballs: Dict[str, Path] = field(default_factory=dict)

    def create(self, component: Component) -> ComponentPaths:
        name = component.name
        if name in self.tarballs:
            raise StructuralError(f"component tarball for {name!r} exists, use unarchive instead")

        cp = ComponentPaths.for_component(self.base / name, component)
        for directory in (cp.base, cp.temp, cp.files, cp.charts, cp.values,
                          cp.repos, cp.manifests, cp.data_injections):
            if directory is not None:
                directory.mkdir(parents=True, exist_ok=True, mode=0o700)
        self.dirs[name] = cp
        return cp

    def archive(self, component: Component, cleanup_temp: bool = True) -> Optional[Path]:
        """
        Tars the staged directory into <name>.tar and removes the directory.
        A component with no content gets no tarball.
        """
        name = component.name
        if name not in self.dirs:
            raise StructuralError(f"component {name!r} was not created or unarchived")
        cp = self.dirs.pop(name)
        if cleanup_temp and cp.temp is not None:
            shutil.rmtree(cp.temp, ignore_errors=True)

        tarball: Optional[Path] = None
        if _dir_size(cp.base) > 0:
            tarball = self.base / f"{name}.tar"
            create_reproducible_tarball(cp.base, name, tarball)
            self.tarballs[name] = tarball
            logger.debug(f"Archived component {name} to {tarball}")
        else:
            logger.debug(f"Component {name} is empty, skipping archiving")

        shutil.rmtree(cp.base)
        return tarball

    def unarchive(self, component: Component) -> ComponentPaths:
        name = component.name
        tarball = self.tarballs.get(name)
        if tarball is None:
            raise StructuralError(f"component {name!r} has no tarball loaded")
        if not tarball.is_file():
            raise StructuralError(f"component tarball {tarball} does not exist")

        cp = ComponentPaths.for_component(self.base / name, component)
        cp.temp = None
        self.dirs[name] = cp
        del self.tarballs[name]

        if cp.base.exists():
            logger.debug(f"Component {name} already unarchived")
            return cp

        extract_tarball(tarball, self.base)
        tarball.unlink()
        logger.debug(f"Unarchived component {name}")
        return cp

    def unarchive_all(self, components) -> Dict[str, ComponentPaths]:
        """Unarchives every given component that has a tarball loaded."""
        for component in components:
            if component.name in self.tarballs:
                self.unarchive(component)
        return dict(self.dirs)
