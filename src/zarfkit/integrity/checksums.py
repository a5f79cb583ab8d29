#!/usr/bin/env python3
"""
ZARFKIT INTEGRITY - Checksum Manifest
-------------------------------------
Generates checksums.txt for a package layout and validates a layout against
it. The sha256 of checksums.txt itself is the aggregate checksum recorded in
the package metadata, which anchors the whole manifest.

Validation runs in one of two modes:
  * full:    every listed file must exist and match, and every file on disk
             must be listed.
  * partial: only files that were actually materialised are checked; a file
             that was loaded or explicitly required must still be present.

Author: ZarfKit Team
Date: 2026-02-03
"""

import hashlib
import logging
import os
import re
from pathlib import Path
from typing import Dict, Iterable, List, Union

from zarfkit.core.errors import IntegrityError
from zarfkit.layout.paths import CHECKSUMS, ZARF_YAML

logger = logging.getLogger("zarfkit.integrity")

BLOCK_SIZE = 1024 * 1024
_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")


def sha256_file(path: Union[str, Path]) -> str:
    """Streams `path` through sha256 in fixed-size blocks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def shas_match(path: Union[str, Path], expected: str) -> None:
    """Raises IntegrityError naming `path` when its sha256 differs from `expected`."""
    try:
        actual = sha256_file(path)
    except OSError as e:
        raise IntegrityError(f"unable to read {path} for checksum validation: {e}") from e
    if actual != expected.lower():
        raise IntegrityError(f"shasum mismatch for file {path}: expected {expected}, got {actual}")


def generate_checksums(paths) -> str:
    """
    Writes `<sha256> <relative path>` lines for every file the layout knows
    about except zarf.yaml and checksums.txt, sorted. Returns the sha256 of
    the written checksums file.
    """
    lines: List[str] = []
    for rel, abs_path in paths.files().items():
        if rel in (ZARF_YAML, CHECKSUMS):
            continue
        lines.append(f"{sha256_file(abs_path)} {rel}")
    lines.sort()

    checksums_path = Path(paths.checksums)
    checksums_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    aggregate = sha256_file(checksums_path)
    logger.debug(f"Wrote {len(lines)} checksums to {checksums_path} (aggregate {aggregate})")
    return aggregate


def _files_on_disk(base: Path) -> Dict[str, bool]:
    """Every regular file beneath `base`, keyed by absolute path, unchecked."""
    found: Dict[str, bool] = {}
    for root, _dirs, files in os.walk(base):
        for name in files:
            found[os.path.join(root, name)] = False
    return found


def validate_package_integrity(paths, aggregate_checksum: str, is_partial: bool,
                               required: Iterable[str] = ()) -> List[str]:
    """
    Validates the layout in `paths` against its checksums file.
    `required` lists relative paths that must be present even in partial mode.
    Returns advisory warnings; any violation raises IntegrityError.
    """
    checksums_path = Path(paths.checksums) if paths.checksums else None
    has_checksums = checksums_path is not None and checksums_path.is_file()

    # --- LEGACY: packages that predate checksums carry neither ---
    if not aggregate_checksum:
        if has_checksums:
            raise IntegrityError(
                f"unable to validate checksums, {CHECKSUMS} is present but the package "
                f"metadata records no aggregate checksum"
            )
        return ["package has no checksums; its integrity cannot be verified"]

    if not _SHA256_RE.match(aggregate_checksum.lower()):
        raise IntegrityError(f"invalid aggregate checksum {aggregate_checksum!r}: expected 64 hex characters")
    if not has_checksums:
        raise IntegrityError(f"unable to validate checksums, {CHECKSUMS} was not loaded")
    if not paths.zarf_yaml or not Path(paths.zarf_yaml).is_file():
        raise IntegrityError(f"unable to validate checksums, {ZARF_YAML} was not loaded")

    shas_match(checksums_path, aggregate_checksum)

    base = Path(paths.base)
    checked = _files_on_disk(base)
    for pre_marked in (paths.zarf_yaml, paths.checksums, paths.signature):
        if pre_marked:
            checked[str(pre_marked)] = True

    loaded = {str(p) for p in paths.files().values()}
    required = set(required)

    with open(checksums_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.rstrip("\n")
            # a package without components or images yields an empty manifest
            if not line:
                continue
            parts = line.split(" ")
            if len(parts) != 2 or not parts[0] or not parts[1]:
                raise IntegrityError(f"invalid checksum line: {line}")
            sha, rel = parts
            path = str(base / rel)

            if not os.path.isfile(path):
                if not is_partial and not checked.get(path):
                    raise IntegrityError(f"unable to validate checksums - missing file: {rel}")
                if is_partial and (path in loaded or rel in required):
                    raise IntegrityError(f"unable to validate partial checksums - missing file: {rel}")
                continue

            shas_match(path, sha)
            checked[path] = True
            logger.debug(f"Validated checksum of {rel}")

    for rel in sorted(required):
        if not (base / rel).is_file():
            raise IntegrityError(f"unable to validate partial checksums - missing file: {rel}")

    for path in sorted(loaded):
        if not checked.get(path):
            raise IntegrityError(f"unable to validate loaded checksums, {path} did not get checked")

    for path, was_checked in sorted(checked.items()):
        if not was_checked:
            raise IntegrityError(f"unable to validate checksums, {path} did not get checked")

    return []
