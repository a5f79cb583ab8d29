#!/usr/bin/env python3
"""
ZARFKIT COMPOSER - Remote Skeletons
-----------------------------------
Materialises the component of a remote (skeleton) import in the local
cache so the import chain can rewrite its paths like a local one.

Author: ZarfKit Team
Date: 2026-02-03
"""

import hashlib
import logging
import os
from pathlib import Path

from zarfkit.core.errors import StructuralError
from zarfkit.integrity.checksums import sha256_file
from zarfkit.layout.component import extract_tarball
from zarfkit.layout.paths import COMPONENTS_DIR

logger = logging.getLogger("zarfkit.composer")


def fetch_oci_skeleton(chain) -> None:
    """
    When the chain ends in a remote import, pull that component's tarball
    into `<cache>/oci` and point the tail's relative path at the extracted
    directory. Content-addressed: dirs/<tarball digest>, or
    dirs/<sha256(url + name)> when the skeleton ships no tarball.
    """
    if not chain.contains_oci_import():
        return
    if chain.cache_dir is None:
        raise StructuralError("cannot compose a remote import: no cache directory configured")

    node = chain.prev_of(chain.tail)
    url = node.component.import_.url
    name = node.import_name()
    remote = chain.get_remote(url)
    desc = remote.fetch_root().locate(f"{COMPONENTS_DIR}/{name}.tar")

    cache = chain.cache_dir / "oci"
    cache.mkdir(parents=True, exist_ok=True)

    tarball = None
    if desc.is_empty():
        dir_id = hashlib.sha256((url + name).encode()).hexdigest()
        directory = cache / "dirs" / dir_id
        logger.debug(f"Creating empty directory for remote component: <cache>/oci/dirs/{dir_id}")
    else:
        tarball = cache / "blobs" / "sha256" / desc.encoded
        directory = cache / "dirs" / desc.encoded
        if not (tarball.is_file() and sha256_file(tarball) == desc.encoded):
            remote.pull_layers([desc], cache / "_pull")
            tarball.parent.mkdir(parents=True, exist_ok=True)
            os.replace(cache / "_pull" / desc.title, tarball)
            logger.debug(f"Pulled {desc.title} from {url}")

    directory.mkdir(parents=True, exist_ok=True)
    # the tail is the only node whose path is relative to the cache
    chain.tail.relative_to_head = Path(os.path.relpath(directory, chain.package_path.resolve())).as_posix()

    if tarball is not None:
        # drop the leading <component-name>/ of every entry
        extract_tarball(tarball, directory, strip_components=1)
