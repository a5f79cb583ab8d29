#!/usr/bin/env python3
"""
ZARFKIT TRANSFORM - Git References
----------------------------------
Splits `<url>@<ref>` repository strings and classifies the ref part.

Author: ZarfKit Team
Date: 2026-02-03
"""

import re
from dataclasses import dataclass
from typing import Tuple

from zarfkit.core.errors import PackageFormatError

GIT_URL_RE = re.compile(
    r"^(?P<proto>[a-z]+:\/\/)(?P<hostPath>.+?)\/(?P<repo>[\w\-\.]+?)?(?P<git>\.git)?(\/)?"
    r"(?P<atRef>@(?P<force>\+)?(?P<ref>[\/\+\w\-\.]+))?"
    r"(?P<gitPath>\/(?P<gitPathId>info\/.*|git-upload-pack|git-receive-pack))?$"
)

_HASH_RE = re.compile(r"^[0-9a-fA-F]{40}$")

REFS_HEADS = "refs/heads/"
REFS_TAGS = "refs/tags/"


@dataclass(frozen=True)
class GitRef:
    name: str

    @property
    def is_hash(self) -> bool:
        return is_hash(self.name)

    @property
    def is_branch(self) -> bool:
        return self.name.startswith(REFS_HEADS)

    @property
    def is_tag(self) -> bool:
        return self.name.startswith(REFS_TAGS)

    @property
    def short(self) -> str:
        for prefix in (REFS_HEADS, REFS_TAGS):
            if self.name.startswith(prefix):
                return self.name[len(prefix):]
        return self.name


def is_hash(ref: str) -> bool:
    return bool(_HASH_RE.match(ref))


def parse_git_ref(ref: str) -> GitRef:
    """A commit hash stays as is; anything not under refs/ is taken as a tag."""
    if is_hash(ref):
        return GitRef(ref)
    if not ref.startswith("refs/"):
        ref = f"{REFS_TAGS}{ref}"
    return GitRef(ref)


def git_url_split_ref(source_url: str) -> Tuple[str, str]:
    """Returns (url without the @ref suffix, the plain ref or '')."""
    match = GIT_URL_RE.match(source_url)
    if not match:
        raise PackageFormatError(f"unable to get extract protocol from URL {source_url}")
    get = match.groupdict()
    url = f"{get['proto']}{get['hostPath']}/{get['repo'] or ''}{get['git'] or ''}"
    return url, get["ref"] or ""
