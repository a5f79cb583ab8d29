#!/usr/bin/env python3
"""
ZARFKIT CONFIG - Explicit Runtime Settings
------------------------------------------
All knobs the engine reads are carried on a ZarfConfig instance that callers
pass in. Nothing below the CLI reads the environment on its own.

Author: ZarfKit Team
Date: 2026-02-03
"""

import os
import platform
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

ENV_CACHE = "ZARFKIT_CACHE"
ENV_TMP = "ZARFKIT_TMP"
ENV_ARCHITECTURE = "ZARFKIT_ARCHITECTURE"

DEFAULT_CACHE_DIR = "~/.zarfkit-cache"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
}


def normalize_architecture(machine: str) -> str:
    """Maps platform machine names onto the OCI architecture names."""
    return _ARCH_ALIASES.get(machine.lower(), machine.lower())


@dataclass
class ZarfConfig:
    cache_dir: str = DEFAULT_CACHE_DIR
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    architecture: str = ""
    flavor: str = ""
    max_package_size_mb: int = 0
    insecure: bool = False
    confirm: bool = False
    public_key_path: str = ""
    signing_key_path: str = ""
    signing_key_password: str = ""
    shasum: str = ""
    optional_components: List[str] = field(default_factory=list)
    differential_source: str = ""
    plain_http: bool = False

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ZarfConfig":
        env = os.environ if environ is None else environ
        return cls(
            cache_dir=env.get(ENV_CACHE) or DEFAULT_CACHE_DIR,
            temp_dir=env.get(ENV_TMP) or tempfile.gettempdir(),
            architecture=env.get(ENV_ARCHITECTURE) or normalize_architecture(platform.machine()),
        )

    @property
    def cache_path(self) -> Path:
        return Path(self.cache_dir).expanduser()

    @property
    def temp_path(self) -> Path:
        return Path(self.temp_dir).expanduser()

    def make_temp_dir(self, prefix: str = "zarfkit-") -> Path:
        self.temp_path.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix=prefix, dir=str(self.temp_path)))
