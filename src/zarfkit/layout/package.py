#!/usr/bin/env python3
"""
ZARFKIT LAYOUT - Package Paths
------------------------------
Maps a package's logical contents to concrete paths below one base
directory. A path is only set once the file is known to belong to the
package (created locally, or pulled from a tarball or registry), so the
layout always describes what was actually loaded.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import shutil
import tarfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Union

from zarfkit.core.errors import SplitError
from zarfkit.core.models import Package
from zarfkit.core.version import version_less_than
from zarfkit.core.yamlio import read_package
from zarfkit.integrity.checksums import generate_checksums
from zarfkit.integrity.signature import sign_blob
from zarfkit.layout.component import (
    Components,
    create_reproducible_tarball,
    extract_tarball,
    reproducible_tarinfo,
)
from zarfkit.layout.paths import (
    CHECKSUMS,
    COMPONENTS_DIR,
    IMAGES_BLOBS_DIR,
    IMAGES_DIR,
    IMAGES_INDEX,
    IMAGES_OCI_LAYOUT,
    INDEX_JSON,
    OCI_LAYOUT,
    SBOM_DIR,
    SBOM_TAR,
    SIGNATURE,
    ZARF_YAML,
)
from zarfkit.packager.deprecated import migrate_package
from zarfkit.transport.split import MAX_PARTS, split_file

logger = logging.getLogger("zarfkit.layout")

LEGACY_LAYOUT_BEFORE = "v0.25.0"
LEGACY_LAYOUT_WARNING = (
    "Detected deprecated package layout, migrating to new layout - support for this "
    "package will be dropped in a future release"
)


@dataclass
class Images:
    base: Optional[Path] = None
    oci_layout: Optional[Path] = None
    index: Optional[Path] = None
    blobs: List[Path] = field(default_factory=list)

    def add_blob(self, digest: str) -> Path:
        """Registers blobs/sha256/<digest> below the images base."""
        digest = digest.split(":", 1)[-1]
        if self.base is None:
            raise ValueError("images base is not set")
        blob = self.base / "blobs" / "sha256" / digest
        if blob not in self.blobs:
            self.blobs.append(blob)
        return blob


@dataclass
class SBOMs:
    path: Optional[Path] = None

    def is_tarball(self) -> bool:
        return self.path is not None and self.path.suffix == ".tar" and self.path.is_file()

    def unarchive(self) -> Optional[Path]:
        """Expands sboms.tar into the sboms/ directory beside it."""
        if not self.is_tarball():
            return self.path
        directory = self.path.with_name(SBOM_DIR)
        extract_tarball(self.path, directory)
        self.path.unlink()
        self.path = directory
        return directory

    def archive(self) -> Optional[Path]:
        """Packs the sboms/ directory into sboms.tar."""
        if self.path is None or not self.path.is_dir():
            return self.path
        tarball = self.path.with_name(SBOM_TAR)
        create_reproducible_tarball(self.path, "", tarball)
        shutil.rmtree(self.path)
        self.path = tarball
        return tarball


class PackagePaths:
    """The on-disk layout of one package rooted at `base`."""

    def __init__(self, base: Union[str, Path]):
        self.base = Path(base)
        self.zarf_yaml: Optional[Path] = self.base / ZARF_YAML
        self.checksums: Optional[Path] = self.base / CHECKSUMS
        self.signature: Optional[Path] = None
        self.components = Components(base=self.base / COMPONENTS_DIR)
        self.sboms = SBOMs()
        self.images = Images()
        self._legacy_layout = False

    def __repr__(self):
        return f"PackagePaths({str(self.base)!r})"

    # --- PATH MAPPING ---

    def add_images(self) -> "PackagePaths":
        self.images.base = self.base / IMAGES_DIR
        self.images.oci_layout = self.images.base / OCI_LAYOUT
        self.images.index = self.images.base / INDEX_JSON
        return self

    def add_sboms(self) -> "PackagePaths":
        self.sboms = SBOMs(path=self.base / SBOM_DIR)
        return self

    def set_from_paths(self, paths: Iterable[str]) -> None:
        """Registers each package-relative path that was loaded."""
        for rel in paths:
            rel = rel.replace("\\", "/")
            if rel == ZARF_YAML:
                self.zarf_yaml = self.base / rel
            elif rel == SIGNATURE:
                self.signature = self.base / rel
            elif rel == CHECKSUMS:
                self.checksums = self.base / rel
            elif rel == SBOM_TAR:
                self.sboms.path = self.base / rel
            elif rel == IMAGES_OCI_LAYOUT:
                self.images.oci_layout = self.base / rel
            elif rel == IMAGES_INDEX:
                self.images.index = self.base / rel
            elif rel.startswith(IMAGES_BLOBS_DIR + "/"):
                if self.images.base is None:
                    self.images.base = self.base / IMAGES_DIR
                self.images.add_blob(rel.rsplit("/", 1)[-1])
            elif rel.startswith(COMPONENTS_DIR + "/") and rel.endswith(".tar"):
                name = rel[len(COMPONENTS_DIR) + 1:-len(".tar")]
                self.components.tarballs[name] = self.base / rel
            else:
                logger.debug(f"Ignoring path {rel}")

    def set_from_layers(self, layers) -> None:
        """Registers the title annotation of every pulled registry layer."""
        self.set_from_paths(desc.title for desc in layers if desc.title)

    def files(self) -> Dict[str, str]:
        """Every file the layout knows about, relative path -> absolute path."""
        path_map: Dict[str, str] = {}

        def add(path: Optional[Path]) -> None:
            if path is None:
                return
            path_map[path.relative_to(self.base).as_posix()] = str(path)

        add(self.zarf_yaml)
        add(self.signature)
        add(self.checksums)
        add(self.images.oci_layout)
        add(self.images.index)
        for blob in self.images.blobs:
            add(blob)
        for tarball in self.components.tarballs.values():
            add(tarball)
        if self.sboms.is_tarball():
            add(self.sboms.path)
        return path_map

    # --- PACKAGE DEFINITION ---

    def read_zarf_yaml(self) -> Tuple[Package, List[str]]:
        """
        Reads zarf.yaml, reports a legacy layout, and replays the migrations
        a built package recorded.
        """
        pkg, warnings = read_package(self.zarf_yaml, migrate=False)
        if self.detect_legacy_layout(pkg):
            warnings.append(LEGACY_LAYOUT_WARNING)
        if pkg.build.migrations:
            warnings.extend(migrate_package(pkg))
        return pkg, warnings

    def detect_legacy_layout(self, pkg: Package) -> bool:
        """
        Packages built before checksums existed carry neither a checksums file
        nor a signature. Legacy sboms/ directories are moved to the current
        location.
        """
        has_checksums = self.checksums is not None and self.checksums.is_file()
        if has_checksums or self.signature is not None:
            return False
        try:
            legacy = version_less_than(pkg.build.version, LEGACY_LAYOUT_BEFORE)
        except ValueError:
            return False
        if not legacy:
            return False
        self._legacy_layout = True

        legacy_sboms = self.base / SBOM_DIR
        if legacy_sboms.is_dir():
            self.add_sboms()
        for component in pkg.components:
            if component.name not in self.components.tarballs and component.name not in self.components.dirs:
                self.components.create(component)
        return True

    def is_legacy_layout(self) -> bool:
        return self._legacy_layout

    # --- PRODUCTION ---

    def generate_checksums(self) -> str:
        return generate_checksums(self)

    def sign_package(self, signing_key_path: str, password: str = "") -> Optional[Path]:
        if not signing_key_path:
            return None
        self.signature = self.base / SIGNATURE
        sign_blob(self.zarf_yaml, self.signature, signing_key_path, password or None)
        return self.signature

    def archive_package(self, destination: Union[str, Path], max_package_size_mb: int = 0) -> List[Path]:
        """
        Tars the whole layout into `destination`. Splits it when it is larger
        than `max_package_size_mb` (decimal megabytes). Returns the files
        written.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tarfile.open(destination, "w", format=tarfile.PAX_FORMAT) as tar:
            for rel, abs_path in sorted(self.files().items()):
                tar.add(abs_path, arcname=rel, recursive=False, filter=reproducible_tarinfo)
        size = destination.stat().st_size
        logger.info(f"Package saved to {destination} ({size} bytes)")

        chunk_size = max_package_size_mb * 1000 * 1000
        if max_package_size_mb > 0 and size > chunk_size:
            if size // chunk_size > MAX_PARTS:
                raise SplitError(
                    "unable to split the package archive into multiple files: must be less than 1,000 files"
                )
            logger.info(f"Package is larger than {max_package_size_mb}MB, splitting into multiple files")
            return split_file(destination, chunk_size)
        return [destination]
