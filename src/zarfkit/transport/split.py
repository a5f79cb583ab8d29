#!/usr/bin/env python3
"""
ZARFKIT SPLIT ENGINE - Chunked Transport
----------------------------------------
Cuts a package tarball into fixed-size parts and puts it back together.

  <name>.part000       JSON header {"count", "bytes", "sha256sum"}
  <name>.part001..NNN  raw data, in order

Both directions stream through a bounded buffer, never holding the whole
file in memory. Parts are only removed after the reassembled file hashes
to the value recorded in the header.

Author: ZarfKit Team
Date: 2026-02-03
"""

import hashlib
import json
import logging
import os
from pathlib import Path
from typing import Callable, List, Optional, Union

from zarfkit.core.errors import PackageFormatError, SplitError
from zarfkit.core.models import SplitPackageData
from zarfkit.integrity.checksums import sha256_file

logger = logging.getLogger("zarfkit.split")

BUFFER_SIZE = 16 * 1024 * 1024
MAX_PARTS = 999

# called with the number of bytes just written
ProgressCallback = Callable[[int], None]


def part_name(path: Union[str, Path], index: int) -> Path:
    path = Path(path)
    return path.with_name(f"{path.name}.part{index:03d}")


def split_file(src: Union[str, Path], chunk_size: int,
               progress: Optional[ProgressCallback] = None) -> List[Path]:
    """
    Splits `src` into `chunk_size` byte parts beside it, writes the header
    part and deletes `src`. Returns every part written, header first.
    """
    src = Path(src)
    if chunk_size <= 0:
        raise SplitError(f"invalid chunk size {chunk_size} for {src}")

    buffer_size = min(BUFFER_SIZE, chunk_size)
    digest = hashlib.sha256()
    total = 0
    parts: List[Path] = []

    with open(src, "rb") as f:
        index = 1
        while True:
            part_path = part_name(src, index)
            written = 0
            with open(part_path, "wb") as out:
                while written < chunk_size:
                    block = f.read(min(buffer_size, chunk_size - written))
                    if not block:
                        break
                    out.write(block)
                    digest.update(block)
                    written += len(block)
                    if progress:
                        progress(len(block))
            if written == 0:
                # source length was an exact multiple of the chunk size
                part_path.unlink()
                break
            total += written
            parts.append(part_path)
            logger.debug(f"Wrote {part_path.name} ({written} bytes)")
            if written < chunk_size:
                break
            index += 1

    if len(parts) > MAX_PARTS:
        for part in parts:
            part.unlink()
        raise SplitError(f"unable to split {src}: must be less than {MAX_PARTS + 1} files")

    header = SplitPackageData(count=len(parts), bytes=total, sha256sum=digest.hexdigest())
    header_path = part_name(src, 0)
    header_path.write_text(json.dumps(header.to_dict()), encoding="utf-8")

    src.unlink()
    logger.info(f"Split {src.name} into {len(parts)} parts of up to {chunk_size} bytes")
    return [header_path] + parts


def read_header(part000: Union[str, Path]) -> SplitPackageData:
    try:
        return SplitPackageData.from_dict(json.loads(Path(part000).read_text(encoding="utf-8")))
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise PackageFormatError(f"unable to read split package header {part000}: {e}") from e


def reassemble(part000: Union[str, Path], destination_dir: Union[str, Path],
               expected_shasum: str = "", progress: Optional[ProgressCallback] = None) -> Path:
    """
    Rebuilds the file described by `part000` into `destination_dir` and
    returns its path. The parts are deleted once the hash has been verified.
    """
    part000 = Path(part000)
    if not part000.name.endswith(".part000"):
        raise SplitError(f"{part000} is not the first part of a split package")
    base_name = part000.name[: -len(".part000")]

    header = read_header(part000)
    parts = sorted(part000.parent.glob(f"{base_name}.part*"))
    data_parts = [p for p in parts if p != part000]

    if len(data_parts) != header.count:
        raise SplitError(f"package is missing parts, expected {header.count}, found {len(data_parts)}")
    if expected_shasum and expected_shasum.lower() != header.sha256sum:
        raise SplitError("mismatch in CLI options and package metadata")

    destination = Path(destination_dir) / base_name
    destination.parent.mkdir(parents=True, exist_ok=True)
    with open(destination, "wb") as out:
        for part in data_parts:
            with open(part, "rb") as f:
                for block in iter(lambda: f.read(BUFFER_SIZE), b""):
                    out.write(block)
                    if progress:
                        progress(len(block))

    if sha256_file(destination) != header.sha256sum:
        raise SplitError(f"package integrity check failed for {destination}")

    for part in parts:
        os.remove(part)
    logger.info(f"Reassembled {destination.name} from {header.count} parts")
    return destination
