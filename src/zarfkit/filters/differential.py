#!/usr/bin/env python3
"""
ZARFKIT FILTERS - Differential Packages
---------------------------------------
Drops images and repositories a reference package already ships. Floating
image tags and movable git refs are always kept, since their content may
have changed since the reference was built.

Author: ZarfKit Team
Date: 2026-02-03
"""

from typing import Iterable, List

from zarfkit.core.models import Component, Package
from zarfkit.filters.strategy import ComponentFilterStrategy
from zarfkit.transform.git import git_url_split_ref, is_hash, parse_git_ref
from zarfkit.transform.image import parse_image_ref

FLOATING_TAGS = (":latest", ":stable", ":nightly")


def keep_image(image: str, reference_images) -> bool:
    if parse_image_ref(image).tag_or_digest in FLOATING_TAGS:
        return True
    return image not in reference_images


def keep_repo(repo: str, reference_repos) -> bool:
    _, ref = git_url_split_ref(repo)
    if not ref:
        return True
    pinned = parse_git_ref(ref).is_tag or is_hash(ref)
    return not pinned or repo not in reference_repos


class Differential(ComponentFilterStrategy):
    def __init__(self, images: Iterable[str] = (), repos: Iterable[str] = ()):
        self.images = set(images)
        self.repos = set(repos)

    @classmethod
    def from_package(cls, reference: Package) -> "Differential":
        images, repos = set(), set()
        for component in reference.components:
            images.update(component.images)
            repos.update(component.repos)
        return cls(images, repos)

    def apply(self, pkg: Package) -> List[Component]:
        kept: List[Component] = []
        for component in pkg.components:
            component = component.clone()
            component.images = [i for i in component.images if keep_image(i, self.images)]
            component.repos = [r for r in component.repos if keep_repo(r, self.repos)]
            kept.append(component)
        return kept
