#!/usr/bin/env python3
"""
ZARFKIT LAYOUT - Path Names
---------------------------
Relative paths that make up a package on disk and inside its tarball.

Author: ZarfKit Team
Date: 2026-02-03
"""

ZARF_YAML = "zarf.yaml"
CHECKSUMS = "checksums.txt"
SIGNATURE = "zarf.yaml.sig"

COMPONENTS_DIR = "components"

IMAGES_DIR = "images"
OCI_LAYOUT = "oci-layout"
INDEX_JSON = "index.json"
IMAGES_OCI_LAYOUT = f"{IMAGES_DIR}/{OCI_LAYOUT}"
IMAGES_INDEX = f"{IMAGES_DIR}/{INDEX_JSON}"
IMAGES_BLOBS_DIR = f"{IMAGES_DIR}/blobs/sha256"

SBOM_DIR = "sboms"
SBOM_TAR = "sboms.tar"

# per-component directories
TEMP_DIR = "temp"
FILES_DIR = "files"
CHARTS_DIR = "charts"
VALUES_DIR = "values"
REPOS_DIR = "repos"
MANIFESTS_DIR = "manifests"
DATA_INJECTIONS_DIR = "data"
