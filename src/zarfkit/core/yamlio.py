#!/usr/bin/env python3
"""
ZARFKIT YAML I/O - Package Definition Round-Trip
------------------------------------------------
Reads and writes zarf.yaml with ruamel's round-trip loader so the written
definition keeps the indentation style of hand-authored files.

Author: ZarfKit Team
Date: 2026-02-03
"""

import io
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from zarfkit.core.errors import PackageFormatError
from zarfkit.core.models import Package

logger = logging.getLogger("zarfkit.yamlio")

PREFERRED_ORDER = ["kind", "metadata", "build", "components", "constants", "variables"]


def _new_yaml() -> YAML:
    yaml = YAML(typ='rt')
    yaml.preserve_quotes = True
    yaml.indent(mapping=2, sequence=4, offset=2)
    yaml.width = 4096
    return yaml


def _to_plain(data: Any) -> Any:
    """Converts ruamel containers to builtin dicts and lists."""
    if isinstance(data, dict):
        return {str(k): _to_plain(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_to_plain(v) for v in data]
    return data


def _sorted_map(data: Dict[str, Any]) -> CommentedMap:
    """
    Orders top-level keys by PREFERRED_ORDER. Unknown keys keep their
    relative original position after the known ones.
    """
    keys = list(data.keys())

    def sort_logic(key):
        if key in PREFERRED_ORDER:
            return PREFERRED_ORDER.index(key)
        return len(PREFERRED_ORDER) + keys.index(key)

    out = CommentedMap()
    for key in sorted(keys, key=sort_logic):
        out[key] = data[key]
    return out


def loads(text: str, source: str = "<string>") -> Dict[str, Any]:
    try:
        data = _new_yaml().load(text)
    except YAMLError as e:
        raise PackageFormatError(f"unable to parse {source}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PackageFormatError(f"unable to parse {source}: expected a mapping at the document root")
    return _to_plain(data)


def dumps(data: Dict[str, Any]) -> str:
    stream = io.StringIO()
    _new_yaml().dump(_sorted_map(data), stream)
    return stream.getvalue()


def parse_package(text: Union[str, bytes], source: str = "<string>") -> Package:
    if isinstance(text, bytes):
        text = text.decode("utf-8-sig")
    return Package.from_dict(loads(text, source))


def read_package(path: Union[str, Path], migrate: bool = True) -> Tuple[Package, List[str]]:
    """
    Parses a zarf.yaml and, unless `migrate` is off, applies deprecated-field
    migrations. Returns the package and any advisory warnings.
    """
    # deferred: packager.deprecated imports this module
    from zarfkit.packager.deprecated import migrate_package

    path = Path(path)
    try:
        raw_text = path.read_text(encoding='utf-8-sig')
    except OSError as e:
        raise PackageFormatError(f"unable to read {path}: {e}") from e
    pkg = parse_package(raw_text, str(path))
    warnings = migrate_package(pkg) if migrate else []
    logger.debug(f"Loaded package {pkg.metadata.name!r} from {path} ({len(pkg.components)} components)")
    return pkg, warnings


def write_package(path: Union[str, Path], pkg: Package) -> Path:
    path = Path(path)
    path.write_text(dumps(pkg.to_dict()), encoding='utf-8')
    return path
