#!/usr/bin/env python3
"""
ZARFKIT COMPOSER - Overrides & Path Fixing
------------------------------------------
The merge rules applied while flattening an import chain, and the rewriting
of component-relative paths so they resolve from the head package root.

Every function here works on the `composed` component in place and never
touches `override`.

Author: ZarfKit Team
Date: 2026-02-03
"""

import copy
import os
import posixpath
from typing import List, Optional

from zarfkit.core.errors import StructuralError
from zarfkit.core.models import ACTION_BUCKETS, ACTION_SETS, Action, Component


def is_url(path: str) -> bool:
    scheme, sep, rest = path.partition("://")
    return bool(sep and scheme and rest and scheme.replace("+", "").replace("-", "").isalnum())


def make_path_relative_to(path: str, relative_to: str) -> str:
    """Joins `path` onto `relative_to`. URLs and absolute paths come back unchanged."""
    if not path or is_url(path) or os.path.isabs(path):
        return path
    root = posixpath.normpath(relative_to.replace(os.sep, "/")) if relative_to else "."
    return posixpath.normpath(posixpath.join(root, path))


def _fix_action_paths(actions: List[Action], default_dir: str, relative_to_head: str) -> None:
    for action in actions:
        directory = action.dir if action.dir is not None else default_dir
        action.dir = make_path_relative_to(directory, relative_to_head) if directory else relative_to_head


def fix_paths(component: Component, relative_to_head: str, package_path: str = ".") -> Component:
    """Rewrites every local path of `component` to be relative to the head package."""
    for f in component.files:
        f.source = make_path_relative_to(f.source, relative_to_head)

    for chart in component.charts:
        chart.values_files = [make_path_relative_to(v, relative_to_head) for v in chart.values_files]
        if chart.local_path:
            chart.local_path = make_path_relative_to(chart.local_path, relative_to_head)

    for manifest in component.manifests:
        manifest.files = [make_path_relative_to(f, relative_to_head) for f in manifest.files]
        fixed = []
        for kustomization in manifest.kustomizations:
            composed = make_path_relative_to(kustomization, relative_to_head)
            # kustomize also accepts remote refs that are not URLs
            fixed.append(composed if os.path.exists(os.path.join(package_path, composed)) else kustomization)
        manifest.kustomizations = fixed

    for injection in component.data_injections:
        injection.source = make_path_relative_to(injection.source, relative_to_head)

    on_create = component.actions.on_create
    for bucket in ACTION_BUCKETS:
        _fix_action_paths(getattr(on_create, bucket), on_create.defaults.dir, relative_to_head)

    if component.cosign_key_path:
        component.cosign_key_path = make_path_relative_to(component.cosign_key_path, relative_to_head)
    return component


def override_metadata(composed: Component, override: Component) -> None:
    composed.name = override.name
    composed.default = override.default
    composed.required = override.required
    composed.optional = override.optional

    if override.description:
        composed.description = override.description
    if override.only.flavor:
        composed.only.flavor = override.only.flavor

    if override.only.local_os:
        if composed.only.local_os:
            raise StructuralError(
                f'component {composed.name!r}: "only.localOS" {composed.only.local_os!r} '
                f"cannot be redefined as {override.only.local_os!r} during compose"
            )
        composed.only.local_os = override.only.local_os


def override_deprecated(composed: Component, override: Component) -> None:
    if override.cosign_key_path:
        composed.cosign_key_path = override.cosign_key_path
    composed.group = override.group

    scripts, incoming = composed.scripts, override.scripts
    scripts.prepare.extend(incoming.prepare)
    scripts.before.extend(incoming.before)
    scripts.after.extend(incoming.after)
    scripts.retry = scripts.retry or incoming.retry
    scripts.show_output = scripts.show_output or incoming.show_output
    if incoming.timeout_seconds > 0:
        scripts.timeout_seconds = incoming.timeout_seconds


def _find_by_name(items, name: str) -> Optional[object]:
    for item in items:
        if item.name == name:
            return item
    return None


def override_resources(composed: Component, override: Component) -> None:
    composed.data_injections.extend(copy.deepcopy(override.data_injections))
    composed.files.extend(copy.deepcopy(override.files))
    composed.images.extend(override.images)
    composed.repos.extend(override.repos)

    # charts and manifests stay unique by name
    for chart in override.charts:
        existing = _find_by_name(composed.charts, chart.name)
        if existing is None:
            composed.charts.append(copy.deepcopy(chart))
            continue
        if chart.namespace:
            existing.namespace = chart.namespace
        if chart.release_name:
            existing.release_name = chart.release_name
        existing.values_files.extend(chart.values_files)
        existing.variables.extend(copy.deepcopy(chart.variables))

    for manifest in override.manifests:
        existing = _find_by_name(composed.manifests, manifest.name)
        if existing is None:
            composed.manifests.append(copy.deepcopy(manifest))
            continue
        if manifest.namespace:
            existing.namespace = manifest.namespace
        existing.files.extend(manifest.files)
        existing.kustomizations.extend(manifest.kustomizations)


def override_actions(composed: Component, override: Component) -> None:
    for set_name in ACTION_SETS:
        target = getattr(composed.actions, set_name)
        source = getattr(override.actions, set_name)
        target.defaults = copy.deepcopy(source.defaults)
        for bucket in ACTION_BUCKETS:
            getattr(target, bucket).extend(copy.deepcopy(getattr(source, bucket)))


def override_health_checks(composed: Component, override: Component) -> None:
    composed.health_checks.extend(copy.deepcopy(override.health_checks))
