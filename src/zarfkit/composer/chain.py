#!/usr/bin/env python3
"""
ZARFKIT COMPOSER - Import Chain
-------------------------------
Resolves a component's `import` references into a chain of nodes and
flattens that chain into one component.

The chain is an arena: `ImportChain.nodes` holds every node, and each node
refers to its neighbours by index. Index 0 is the head (the component as
written in the package being built); the last index is the tail (the most
deeply imported component, which imports nothing).

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import os
import posixpath
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from zarfkit.composer.override import (
    fix_paths,
    override_actions,
    override_deprecated,
    override_health_checks,
    override_metadata,
    override_resources,
)
from zarfkit.core.errors import PackageFormatError, RegistryError, StructuralError
from zarfkit.core.models import BuildData, Component, Constant, Package, Variable
from zarfkit.core.yamlio import read_package
from zarfkit.layout.paths import ZARF_YAML
from zarfkit.packager.deprecated import migrate_component
from zarfkit.registry.client import OCI_SCHEME, RegistryClient

logger = logging.getLogger("zarfkit.composer")

RegistryFactory = Callable[[str], RegistryClient]


def validate_component_compose(component: Component) -> None:
    """Checks the import reference of `component` in isolation."""
    path, url = component.import_.path, component.import_.url
    problems = []
    if not path and not url:
        problems.append("neither a path nor a URL was provided")
    if path and url:
        problems.append("both a path and a URL were provided")
    if path and not url and os.path.isabs(path):
        problems.append("path cannot be an absolute path")
    if url and not path and not url.startswith(OCI_SCHEME):
        problems.append("URL is not a valid OCI URL")
    if problems:
        raise StructuralError(f"invalid imported definition for {component.name}: {'; '.join(problems)}")


def compatible_component(component: Component, arch: str, flavor: str) -> bool:
    satisfies_arch = not component.only.cluster.architecture or component.only.cluster.architecture == arch
    satisfies_flavor = not component.only.flavor or component.only.flavor == flavor
    return satisfies_arch and satisfies_flavor


@dataclass
class Node:
    component: Component
    index: int                      # position in the source zarf.yaml
    original_package_name: str
    relative_to_head: str
    source_dir: Optional[Path]      # resolved directory of the source package, None when remote
    variables: List[Variable] = field(default_factory=list)
    constants: List[Constant] = field(default_factory=list)
    prev: Optional[int] = None
    next: Optional[int] = None

    def import_name(self) -> str:
        """The component name this node's import refers to."""
        return self.component.import_.name or self.component.name

    @property
    def is_local_import(self) -> bool:
        return bool(self.component.import_.path)

    @property
    def is_remote_import(self) -> bool:
        return bool(self.component.import_.url)


class ImportChain:
    """
    Built by `ImportChain.build`. Holds nodes only for the duration of one
    composition pass.
    """

    def __init__(self, package_path: Path, cache_dir: Optional[Path] = None,
                 registry_factory: Optional[RegistryFactory] = None):
        self.nodes: List[Node] = []
        self.package_path = Path(package_path)
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self.registry_factory = registry_factory
        self._remote: Optional[RegistryClient] = None

    # --- ARENA ---

    @property
    def head(self) -> Node:
        return self.nodes[0]

    @property
    def tail(self) -> Node:
        return self.nodes[-1]

    def prev_of(self, node: Node) -> Optional[Node]:
        return None if node.prev is None else self.nodes[node.prev]

    def next_of(self, node: Node) -> Optional[Node]:
        return None if node.next is None else self.nodes[node.next]

    def _append(self, node: Node) -> Node:
        if self.nodes:
            node.prev = len(self.nodes) - 1
            self.nodes[-1].next = len(self.nodes)
        self.nodes.append(node)
        logger.debug(f"Appended {node.component.name!r} from {node.relative_to_head or node.original_package_name}")
        return node

    def import_location(self, node: Node) -> str:
        """Where the node's component was loaded from, as seen from the head package."""
        prev = self.prev_of(node)
        if prev is not None and prev.is_remote_import:
            return prev.component.import_.url
        return node.relative_to_head

    def contains_oci_import(self) -> bool:
        """Only the second-to-last node may import from a registry."""
        prev = self.prev_of(self.tail)
        return prev is not None and prev.is_remote_import

    def get_remote(self, url: str) -> RegistryClient:
        if self._remote is None:
            if self.registry_factory is None:
                raise StructuralError(f"cannot import {url}: no registry client configured")
            self._remote = self.registry_factory(url)
            try:
                self._remote.fetch_root()
            except RegistryError as e:
                raise StructuralError(f"published skeleton package for {url!r} does not exist: {e}") from e
        return self._remote

    # --- RESOLUTION ---

    @classmethod
    def build(cls, head: Component, index: int, original_package_name: str, arch: str, flavor: str = "",
              package_path: Path = Path("."), registry_factory: Optional[RegistryFactory] = None,
              cache_dir: Optional[Path] = None) -> "ImportChain":
        """
        Follows `head`'s imports until a component that imports nothing.
        Raises StructuralError for any malformed link.
        """
        if not arch:
            raise StructuralError("cannot build import chain: architecture must be provided")

        chain = cls(package_path, cache_dir=cache_dir, registry_factory=registry_factory)
        head_dir = chain.package_path.resolve()
        chain._append(Node(
            component=head.clone(),
            index=index,
            original_package_name=original_package_name,
            relative_to_head=".",
            source_dir=head_dir,
        ))
        seen: Dict[Tuple[str, str], int] = {(str(head_dir), head.name): 0}
        history: List[str] = []

        node = chain.head
        while node is not None:
            if not node.is_local_import and not node.is_remote_import:
                return chain

            validate_component_compose(node.component)

            prev = chain.prev_of(node)
            if prev is not None and prev.is_remote_import:
                kind = "remote" if node.is_remote_import else "local"
                raise StructuralError(
                    f"detected malformed import chain, cannot import {kind} components from remote components"
                )

            name = node.import_name()
            if node.is_local_import:
                history.append(node.component.import_.path)
                relative_to_head = posixpath.normpath(posixpath.join(*history))
                source_dir = (chain.package_path / relative_to_head).resolve()
                location = relative_to_head

                key = (str(source_dir), name)
                if key in seen:
                    raise StructuralError(f"detected circular import chain: {' -> '.join(history)}")

                try:
                    pkg, _ = read_package(source_dir / ZARF_YAML, migrate=False)
                except PackageFormatError as e:
                    raise StructuralError(f"unable to load imported package for {node.component.name}: {e}") from e
            else:
                url = node.component.import_.url
                relative_to_head, source_dir, location = "", None, url
                try:
                    pkg = chain.get_remote(url).fetch_package_yaml()
                except RegistryError as e:
                    raise StructuralError(f"unable to fetch imported package {url}: {e}") from e

            found, found_index = chain._locate(pkg, name, location, arch, flavor)
            new = chain._append(Node(
                component=found.clone(),
                index=found_index,
                original_package_name=pkg.metadata.name,
                relative_to_head=relative_to_head,
                source_dir=source_dir,
                variables=list(pkg.variables),
                constants=list(pkg.constants),
            ))
            if source_dir is not None:
                seen[(str(source_dir), name)] = len(chain.nodes) - 1
            node = new
        return chain

    @staticmethod
    def _locate(pkg: Package, name: str, location: str, arch: str, flavor: str) -> Tuple[Component, int]:
        named = [(i, c) for i, c in enumerate(pkg.components) if c.name == name]
        found = [(i, c) for i, c in named if compatible_component(c, arch, flavor)]
        if not found:
            other_archs = sorted({c.only.cluster.architecture for _, c in named})
            if named and "" not in other_archs and arch not in other_archs:
                raise StructuralError(
                    f"component {name!r} in {location!r} is built for architecture "
                    f"{', '.join(other_archs)}, not {arch!r}"
                )
            raise StructuralError(f"component {name!r} not found in {location!r}")
        if len(found) > 1:
            raise StructuralError(f"multiple components named {name!r} found in {location!r} satisfying {arch!r}")
        index, component = found[0]
        return component, index

    def __str__(self) -> str:
        head = self.head
        if head.next is None:
            return f"component {head.component.name!r} imports nothing"

        def where(node: Node) -> str:
            return node.component.import_.path or node.component.import_.url

        parts = [f"component {head.component.name!r} imports {head.import_name()!r} in {where(head)}"]
        node = self.next_of(head)
        while node is not None and node is not self.tail:
            parts.append(f", which imports {node.import_name()!r} in {where(node)}")
            node = self.next_of(node)
        return "".join(parts)

    # --- FLATTENING ---

    def migrate(self, build: BuildData) -> List[str]:
        warnings: List[str] = []
        for node in self.nodes:
            node.component, found = migrate_component(build, node.component)
            warnings.extend(found)
        if warnings:
            warnings.append(f"Migrations were performed on the import chain of: {self.head.component.name!r}")
        return warnings

    def compose(self) -> Component:
        """
        Flattens the chain. The tail is the base; walking back to the head,
        each node's resources are appended after those of the nodes it imports
        and its metadata overrides theirs.
        """
        if self.tail.prev is None:
            return self.tail.component.clone()

        # deferred: skeleton pulls in the tarball helpers of layout
        from zarfkit.composer.skeleton import fetch_oci_skeleton
        fetch_oci_skeleton(self)

        composed = Component(name="")
        node: Optional[Node] = self.tail
        while node is not None:
            child = fix_paths(node.component.clone(), node.relative_to_head, str(self.package_path))
            override_metadata(composed, child)
            override_deprecated(composed, child)
            override_resources(composed, child)
            override_actions(composed, child)
            override_health_checks(composed, child)
            node = self.prev_of(node)

        logger.debug(f"Composed {self}")
        return composed

    def merge_variables(self, existing: List[Variable]) -> List[Variable]:
        return self._merge(existing, lambda n: n.variables)

    def merge_constants(self, existing: List[Constant]) -> List[Constant]:
        return self._merge(existing, lambda n: n.constants)

    def _merge(self, existing, items_of):
        """Closer to the head wins; `existing` wins over the whole chain."""
        merged: list = []
        node: Optional[Node] = self.tail
        while node is not None:
            merged = _merge_by_name(items_of(node), merged)
            node = self.prev_of(node)
        return _merge_by_name(existing, merged)


def _merge_by_name(first, second):
    out = list(first)
    names = {item.name for item in out}
    for item in second:
        if item.name not in names:
            out.append(item)
            names.add(item.name)
    return out
