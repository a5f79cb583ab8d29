#!/usr/bin/env python3
"""
ZARFKIT REGISTRY - Client Contract
----------------------------------
The registry surface the engine depends on: fetch, resolve, push and copy.
Everything else (root manifest, package definition, image index, pulling a
set of layers to disk) is derived from those four operations here.

Author: ZarfKit Team
Date: 2026-02-03
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from zarfkit.core.errors import RegistryError
from zarfkit.core.models import Package
from zarfkit.core.yamlio import parse_package
from zarfkit.integrity.checksums import sha256_file
from zarfkit.layout.paths import IMAGES_INDEX, ZARF_YAML
from zarfkit.registry.oci import Descriptor, Index, Manifest

logger = logging.getLogger("zarfkit.registry")

OCI_SCHEME = "oci://"


def parse_oci_url(url: str) -> Tuple[str, str, str]:
    """
    Splits `oci://host/repo/path:tag` (or `@sha256:...`) into
    (registry, repository, tag-or-digest). A missing tag means "latest".
    """
    if not url.startswith(OCI_SCHEME):
        raise RegistryError(f"{url} is not a valid OCI URL")
    rest = url[len(OCI_SCHEME):]
    registry, sep, repo = rest.partition("/")
    if not sep or not registry or not repo:
        raise RegistryError(f"{url} is not a valid OCI URL: missing repository")

    if "@" in repo:
        repo, tag = repo.split("@", 1)
    elif ":" in repo.rsplit("/", 1)[-1]:
        repo, tag = repo.rsplit(":", 1)
    else:
        tag = "latest"
    if not repo or not tag:
        raise RegistryError(f"{url} is not a valid OCI URL")
    return registry, repo, tag


class RegistryClient(ABC):
    """
    One remote package reference. Subclasses provide the four primitive
    operations; the fetch_* helpers decode the package documents on top.
    """

    def __init__(self, reference: str):
        self.reference = reference
        self._root: Optional[Manifest] = None

    # --- PRIMITIVES ---

    @abstractmethod
    def fetch(self, desc: Descriptor) -> bytes:
        """Returns the content addressed by `desc`."""

    @abstractmethod
    def resolve(self, reference: str) -> Descriptor:
        """Resolves a tag or digest to the descriptor of its manifest."""

    @abstractmethod
    def push(self, desc: Descriptor, data: bytes, reference: str = "") -> None:
        """Stores `data` under `desc`; manifests are additionally tagged with `reference`."""

    def copy(self, destination: "RegistryClient",
             predicate: Optional[Callable[[Descriptor], bool]] = None) -> Descriptor:
        """Copies the root manifest and every layer `predicate` accepts into `destination`."""
        root_desc = self.resolve(self._tag())
        root = self.fetch_root()
        for layer in root.layers:
            if predicate is None or predicate(layer):
                destination.push(layer, self.fetch(layer))
        if not root.config.is_empty():
            destination.push(root.config, self.fetch(root.config))
        destination.push(root_desc, self.fetch(root_desc), reference=destination._tag())
        return root_desc

    # --- DERIVED ---

    def _tag(self) -> str:
        return parse_oci_url(self.reference)[2] if self.reference.startswith(OCI_SCHEME) else self.reference

    def fetch_root(self) -> Manifest:
        if self._root is None:
            desc = self.resolve(self._tag())
            self._root = Manifest.from_json(self.fetch(desc))
            logger.debug(f"Fetched root manifest of {self.reference} ({len(self._root.layers)} layers)")
        return self._root

    def fetch_manifest(self, desc: Descriptor) -> Manifest:
        return Manifest.from_json(self.fetch(desc))

    def fetch_layer(self, path: str) -> bytes:
        desc = self.fetch_root().locate(path)
        if desc.is_empty():
            raise RegistryError(f"{path} not found in {self.reference}")
        return self.fetch(desc)

    def fetch_package_yaml(self) -> Package:
        return parse_package(self.fetch_layer(ZARF_YAML), f"{self.reference}/{ZARF_YAML}")

    def fetch_images_index(self) -> Index:
        return Index.from_json(self.fetch_layer(IMAGES_INDEX))

    def pull_layers(self, layers: List[Descriptor], destination: Path) -> List[Path]:
        """
        Writes each layer to `destination/<title>`. Files already on disk with
        the right digest are not fetched again.
        """
        destination = Path(destination)
        written: List[Path] = []
        for desc in layers:
            if not desc.title:
                raise RegistryError(f"layer {desc.digest} in {self.reference} has no title annotation")
            target = destination / desc.title
            if target.is_file() and sha256_file(target) == desc.encoded:
                written.append(target)
                continue
            data = self.fetch(desc)
            if hashlib.sha256(data).hexdigest() != desc.encoded:
                raise RegistryError(f"digest mismatch for {desc.title} from {self.reference}")
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            written.append(target)
            logger.debug(f"Pulled {desc.title} ({desc.size} bytes)")
        return written

