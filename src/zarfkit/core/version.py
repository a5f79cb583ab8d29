#!/usr/bin/env python3
"""
ZARFKIT CORE - Build Versions
-----------------------------
Minimal semantic version ordering for build versions recorded in zarf.yaml.

Author: ZarfKit Team
Date: 2026-02-03
"""

import re
from typing import Tuple

UNSET_CLI_VERSION = "UnsetCLIVersion"

_VERSION_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$")


def parse_version(version: str) -> Tuple[int, int, int, int]:
    """
    Returns a sortable tuple. A pre-release sorts before its release.
    Raises ValueError when `version` is not a semantic version.
    """
    match = _VERSION_RE.match(version.strip())
    if not match:
        raise ValueError(f"invalid semantic version: {version!r}")
    major, minor, patch, pre = match.groups()
    return int(major), int(minor or 0), int(patch or 0), 0 if pre else 1


def version_less_than(version: str, other: str) -> bool:
    return parse_version(version) < parse_version(other)

# release of the package format this tool writes into build.version
CLI_VERSION = "v0.41.0"
