#!/usr/bin/env python3
"""
ZARFKIT REGISTRY - OCI Documents
--------------------------------
Media types, descriptors, manifests and indexes a package is stored as
when published to a registry.

Author: ZarfKit Team
Date: 2026-02-03
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from zarfkit.core.errors import PackageFormatError

# OCI standard manifest types
OCI_IMAGE_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
OCI_IMAGE_INDEX = "application/vnd.oci.image.index.v1+json"
DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"

MANIFEST_MEDIA_TYPES = (OCI_IMAGE_MANIFEST, OCI_IMAGE_INDEX, DOCKER_MANIFEST, DOCKER_MANIFEST_LIST)

# Package layer and config types
ZARF_LAYER_MEDIA_TYPE_BLOB = "application/vnd.zarf.layer.v1.blob"
ZARF_CONFIG_MEDIA_TYPE = "application/vnd.zarf.config.v1+json"

# Standard annotations
ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_BASE_IMAGE_NAME = "org.opencontainers.image.base.name"
ANNOTATION_DESCRIPTION = "org.opencontainers.image.description"


def digest_of(data: bytes) -> str:
    return "sha256:" + hashlib.sha256(data).hexdigest()


@dataclass
class Descriptor:
    media_type: str = ""
    digest: str = ""
    size: int = 0
    annotations: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Descriptor":
        data = data or {}
        return cls(
            media_type=data.get("mediaType", ""),
            digest=data.get("digest", ""),
            size=int(data.get("size", 0) or 0),
            annotations=dict(data.get("annotations") or {}),
        )

    @classmethod
    def for_bytes(cls, media_type: str, data: bytes, annotations: Optional[Dict[str, str]] = None) -> "Descriptor":
        return cls(media_type=media_type, digest=digest_of(data), size=len(data), annotations=dict(annotations or {}))

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"mediaType": self.media_type, "digest": self.digest, "size": self.size}
        if self.annotations:
            out["annotations"] = dict(self.annotations)
        return out

    @property
    def encoded(self) -> str:
        """The hex part of the digest."""
        return self.digest.split(":", 1)[-1]

    @property
    def title(self) -> str:
        return self.annotations.get(ANNOTATION_TITLE, "")

    def is_empty(self) -> bool:
        return is_empty_descriptor(self)


def is_empty_descriptor(desc: Optional[Descriptor]) -> bool:
    return desc is None or (not desc.media_type and not desc.digest and desc.size == 0)


def _loads(data: bytes, what: str) -> Dict[str, Any]:
    try:
        doc = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise PackageFormatError(f"unable to decode {what}: {e}") from e
    if not isinstance(doc, dict):
        raise PackageFormatError(f"unable to decode {what}: expected a JSON object")
    return doc


@dataclass
class Manifest:
    config: Descriptor = field(default_factory=Descriptor)
    layers: List[Descriptor] = field(default_factory=list)
    annotations: Dict[str, str] = field(default_factory=dict)
    media_type: str = OCI_IMAGE_MANIFEST

    @classmethod
    def from_json(cls, data: bytes) -> "Manifest":
        doc = _loads(data, "manifest")
        return cls(
            config=Descriptor.from_dict(doc.get("config")),
            layers=[Descriptor.from_dict(layer) for layer in doc.get("layers") or []],
            annotations=dict(doc.get("annotations") or {}),
            media_type=doc.get("mediaType", OCI_IMAGE_MANIFEST),
        )

    def to_json(self) -> bytes:
        doc: Dict[str, Any] = {
            "schemaVersion": 2,
            "mediaType": self.media_type,
            "config": self.config.to_dict(),
            "layers": [layer.to_dict() for layer in self.layers],
        }
        if self.annotations:
            doc["annotations"] = dict(self.annotations)
        return json.dumps(doc, sort_keys=True).encode()

    def locate(self, path: str) -> Descriptor:
        """Finds a layer by its title annotation; an empty descriptor when absent."""
        for layer in self.layers:
            if layer.title == path:
                return layer
        return Descriptor()


@dataclass
class Index:
    manifests: List[Descriptor] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: bytes) -> "Index":
        doc = _loads(data, "image index")
        return cls(manifests=[Descriptor.from_dict(m) for m in doc.get("manifests") or []])

    def to_json(self) -> bytes:
        doc = {
            "schemaVersion": 2,
            "mediaType": OCI_IMAGE_INDEX,
            "manifests": [m.to_dict() for m in self.manifests],
        }
        return json.dumps(doc, sort_keys=True).encode()
