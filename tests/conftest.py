import json
from dataclasses import replace
from pathlib import Path
from typing import Dict, Optional

import pytest

from zarfkit.core.config import ZarfConfig
from zarfkit.core.errors import RegistryError
from zarfkit.core.yamlio import dumps
from zarfkit.layout.package import PackagePaths
from zarfkit.packager.create import Creator
from zarfkit.registry.client import OCI_SCHEME, RegistryClient, parse_oci_url
from zarfkit.registry.oci import (
    ANNOTATION_BASE_IMAGE_NAME,
    ANNOTATION_TITLE,
    OCI_IMAGE_MANIFEST,
    ZARF_CONFIG_MEDIA_TYPE,
    ZARF_LAYER_MEDIA_TYPE_BLOB,
    Descriptor,
    Index,
    Manifest,
)


class FakeRegistry(RegistryClient):
    """In-memory registry shared by every client created from the same store."""

    def __init__(self, reference: str, store: Optional[dict] = None):
        super().__init__(reference)
        self.store = store if store is not None else {"blobs": {}, "tags": {}}
        self.fetched = []

    @property
    def repo(self) -> str:
        if self.reference.startswith(OCI_SCHEME):
            registry, repo, _ = parse_oci_url(self.reference)
            return f"{registry}/{repo}"
        return self.reference

    def fetch(self, desc: Descriptor) -> bytes:
        self.fetched.append(desc.digest)
        try:
            return self.store["blobs"][desc.digest]
        except KeyError:
            raise RegistryError(f"{desc.digest} not found in {self.reference}")

    def resolve(self, reference: str) -> Descriptor:
        try:
            return self.store["tags"][(self.repo, reference)]
        except KeyError:
            raise RegistryError(f"{self.reference}: tag {reference} not found")

    def push(self, desc: Descriptor, data: bytes, reference: str = "") -> None:
        self.store["blobs"][desc.digest] = data
        if reference:
            self.store["tags"][(self.repo, reference)] = desc


def publish_directory(client: FakeRegistry, base: Path) -> Manifest:
    """Pushes every file below `base` as a titled layer and tags a root manifest."""
    layers = []
    for path in sorted(p for p in Path(base).rglob("*") if p.is_file()):
        data = path.read_bytes()
        rel = path.relative_to(base).as_posix()
        desc = Descriptor.for_bytes(ZARF_LAYER_MEDIA_TYPE_BLOB, data, {ANNOTATION_TITLE: rel})
        client.push(desc, data)
        layers.append(desc)

    config_data = json.dumps({"architecture": "amd64"}).encode()
    config = Descriptor.for_bytes(ZARF_CONFIG_MEDIA_TYPE, config_data)
    client.push(config, config_data)

    root = Manifest(config=config, layers=layers)
    data = root.to_json()
    client.push(Descriptor.for_bytes(OCI_IMAGE_MANIFEST, data), data, reference=client._tag())
    return root


def write_images(base: Path, images: Dict[str, bytes], base_names: Optional[Dict[str, str]] = None) -> None:
    """
    Writes a minimal OCI image layout below base/images: one manifest with a
    config blob and a single layer per image.
    """
    blobs = base / "images" / "blobs" / "sha256"
    blobs.mkdir(parents=True, exist_ok=True)
    index = Index()
    for image, content in images.items():
        layer = Descriptor.for_bytes("application/vnd.oci.image.layer.v1.tar", content)
        config_data = json.dumps({"image": image}).encode()
        config = Descriptor.for_bytes("application/vnd.oci.image.config.v1+json", config_data)
        manifest_data = Manifest(config=config, layers=[layer]).to_json()
        manifest = Descriptor.for_bytes(OCI_IMAGE_MANIFEST, manifest_data, {
            ANNOTATION_BASE_IMAGE_NAME: (base_names or {}).get(image, image),
        })
        for desc, data in ((layer, content), (config, config_data), (manifest, manifest_data)):
            (blobs / desc.encoded).write_bytes(data)
        index.manifests.append(manifest)
    (base / "images" / "index.json").write_bytes(index.to_json())
    (base / "images" / "oci-layout").write_text('{"imageLayoutVersion": "1.0.0"}')


def write_definition(directory: Path, definition: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "zarf.yaml"
    path.write_text(dumps(definition), encoding="utf-8")
    return path


@pytest.fixture
def registry_store():
    return {"blobs": {}, "tags": {}}


@pytest.fixture
def registry_factory(registry_store):
    return lambda reference: FakeRegistry(reference, registry_store)


@pytest.fixture
def config(tmp_path):
    return ZarfConfig(
        cache_dir=str(tmp_path / "cache"),
        temp_dir=str(tmp_path / "tmp"),
        architecture="amd64",
    )


@pytest.fixture
def build_package(tmp_path, config):
    """
    Builds a package tarball from a definition (and optional local files)
    and returns the written paths.
    """
    counter = {"n": 0}

    def _build(definition: dict, files: Optional[Dict[str, str]] = None, **overrides):
        counter["n"] += 1
        src = tmp_path / f"src-{counter['n']}"
        write_definition(src, definition)
        for rel, content in (files or {}).items():
            (src / rel).parent.mkdir(parents=True, exist_ok=True)
            (src / rel).write_text(content)

        build_config = replace(config, **overrides)
        build_dir = tmp_path / f"build-{counter['n']}"
        out = tmp_path / f"out-{counter['n']}"
        out.mkdir()
        creator = Creator(build_config)
        layout = PackagePaths(build_dir)
        creator.assemble(src, layout)
        return creator.output(layout, out)

    return _build
