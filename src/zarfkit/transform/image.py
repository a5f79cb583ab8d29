#!/usr/bin/env python3
"""
ZARFKIT TRANSFORM - Image References
------------------------------------
Parses container image references with the same normalisation docker
applies: a bare name lives on docker.io under library/, and a reference
without tag or digest points at :latest.

Author: ZarfKit Team
Date: 2026-02-03
"""

import re
from dataclasses import dataclass

from zarfkit.core.errors import PackageFormatError

DOCKER_HOST = "docker.io"
DEFAULT_TAG = "latest"

_PATH_RE = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*(?:/[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*)*$")
_TAG_RE = re.compile(r"^[\w][\w.-]{0,127}$")
_DIGEST_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$")


@dataclass
class ImageRef:
    host: str
    name: str           # fully qualified, e.g. docker.io/library/nginx
    path: str           # repository path without host
    tag: str = ""
    digest: str = ""
    reference: str = ""  # original string, ":latest" appended when name-only
    tag_or_digest: str = ""


def _split_host(remainder: str):
    first, sep, rest = remainder.partition("/")
    if sep and ("." in first or ":" in first or first == "localhost"):
        return first, rest
    return DOCKER_HOST, remainder


def parse_image_ref(src: str) -> ImageRef:
    """Parses `src` into an ImageRef, raising PackageFormatError if malformed."""
    if not src or src != src.strip():
        raise PackageFormatError(f"invalid image reference: {src!r}")

    remainder, digest = src, ""
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not _DIGEST_RE.match(digest):
            raise PackageFormatError(f"invalid digest in image reference: {src!r}")

    tag = ""
    last_slash = remainder.rfind("/")
    colon = remainder.rfind(":")
    if colon > last_slash:
        remainder, tag = remainder[:colon], remainder[colon + 1:]
        if not _TAG_RE.match(tag):
            raise PackageFormatError(f"invalid tag in image reference: {src!r}")

    host, path = _split_host(remainder)
    if host == DOCKER_HOST and "/" not in path:
        path = f"library/{path}"
    if not _PATH_RE.match(path):
        raise PackageFormatError(f"invalid repository name in image reference: {src!r}")

    reference = src
    if not tag and not digest:
        tag = DEFAULT_TAG
        reference += f":{DEFAULT_TAG}"

    tag_or_digest = f"@{digest}" if digest else f":{tag}"
    return ImageRef(
        host=host,
        name=f"{host}/{path}",
        path=path,
        tag=tag,
        digest=digest,
        reference=reference,
        tag_or_digest=tag_or_digest,
    )
