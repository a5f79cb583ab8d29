#!/usr/bin/env python3
"""
ZARFKIT PARTIAL LAYERS - Minimal Pull Planner
---------------------------------------------
Given a subset of component names, works out which layers of a remote
package have to be pulled to deploy exactly that subset plus whatever the
package marks as required.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
from typing import Dict, List, Sequence

from zarfkit.core.errors import RegistryError, StructuralError
from zarfkit.layout.paths import (
    CHECKSUMS,
    COMPONENTS_DIR,
    IMAGES_BLOBS_DIR,
    IMAGES_INDEX,
    IMAGES_OCI_LAYOUT,
    SBOM_TAR,
    SIGNATURE,
    ZARF_YAML,
)
from zarfkit.registry.client import RegistryClient
from zarfkit.registry.oci import ANNOTATION_BASE_IMAGE_NAME, ZARF_LAYER_MEDIA_TYPE_BLOB, Descriptor
from zarfkit.transform.image import DOCKER_HOST, parse_image_ref

logger = logging.getLogger("zarfkit.registry.layers")

# pulled whenever they exist
ALWAYS_PULL = [ZARF_YAML, CHECKSUMS, SIGNATURE]


def _image_manifest(index_manifests: List[Descriptor], image: str) -> Descriptor:
    ref = parse_image_ref(image)
    for desc in index_manifests:
        base_name = desc.annotations.get(ANNOTATION_BASE_IMAGE_NAME, "")
        if base_name == ref.reference:
            return desc
        # older packages left docker.io off the annotation
        if base_name == ref.path + ref.tag_or_digest and ref.host == DOCKER_HOST:
            return desc
    raise RegistryError(f"image {image} not found in the image index of the package")


def layers_from_requested_components(client: RegistryClient, requested: Sequence[str]) -> List[Descriptor]:
    """
    Returns the descriptors needed for `requested` plus every required
    component: component tarballs, sboms.tar, and for their images the image
    index, oci-layout, manifest, config and layer blobs.
    """
    root = client.fetch_root()
    pkg = client.fetch_package_yaml()

    known = {c.name for c in pkg.components}
    for name in requested:
        if name not in known:
            raise StructuralError(f"component {name} does not exist in this package")

    layers: List[Descriptor] = []
    images: Dict[str, bool] = {}
    for component in pkg.components:
        if component.name in requested or component.is_required():
            for image in component.images:
                images.setdefault(image, True)
            layers.append(root.locate(f"{COMPONENTS_DIR}/{component.name}.tar"))

    sboms = root.locate(SBOM_TAR)
    if not sboms.is_empty():
        layers.append(sboms)

    if images and root.locate(IMAGES_INDEX).is_empty():
        # images are collected outside the package builder
        logger.warning(f"{client.reference} references {len(images)} images but ships no image index")
    elif images:
        layers.append(root.locate(IMAGES_INDEX))
        layers.append(root.locate(IMAGES_OCI_LAYOUT))
        index = client.fetch_images_index()
        for image in images:
            manifest_desc = _image_manifest(index.manifests, image)
            # image manifests travel as package blobs
            manifest_desc.media_type = ZARF_LAYER_MEDIA_TYPE_BLOB
            manifest = client.fetch_manifest(manifest_desc)

            layers.append(root.locate(f"{IMAGES_BLOBS_DIR}/{manifest_desc.encoded}"))
            layers.append(root.locate(f"{IMAGES_BLOBS_DIR}/{manifest.config.encoded}"))
            for layer in manifest.layers:
                layers.append(root.locate(f"{IMAGES_BLOBS_DIR}/{layer.encoded}"))

    logger.debug(f"Selected {len(layers)} layers for components {list(requested)}")
    return _dedupe(layers)


def _dedupe(layers: List[Descriptor]) -> List[Descriptor]:
    """Drops empty descriptors and repeats of a digest already listed."""
    seen = set()
    out: List[Descriptor] = []
    for desc in layers:
        if desc.is_empty() or desc.digest in seen:
            continue
        seen.add(desc.digest)
        out.append(desc)
    return out


def layers_to_pull(client: RegistryClient, requested: Sequence[str], confirm: bool) -> List[Descriptor]:
    """
    Partial selection is honoured only when the caller confirmed; otherwise
    every layer of the root manifest is pulled.
    """
    root = client.fetch_root()
    if not (confirm and requested):
        return list(root.layers)

    layers: List[Descriptor] = []
    for path in ALWAYS_PULL:
        desc = root.locate(path)
        if not desc.is_empty():
            layers.append(desc)
    layers.extend(layers_from_requested_components(client, requested))
    return _dedupe(layers)
