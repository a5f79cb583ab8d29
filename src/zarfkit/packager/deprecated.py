#!/usr/bin/env python3
"""
ZARFKIT DEPRECATED - Legacy Field Migrations
--------------------------------------------
Rewrites fields that older package definitions used into their current form.
Every migration is idempotent: the legacy field is cleared once it has been
carried over, and packages that record a migration in build.migrations skip it.

Author: ZarfKit Team
Date: 2026-02-03
"""

import logging
import sys
from typing import List, Tuple

from zarfkit.core.models import (
    ACTION_BUCKETS,
    ACTION_SETS,
    Action,
    ActionDefaults,
    BuildData,
    Component,
    DeprecatedScripts,
    Package,
)

logger = logging.getLogger("zarfkit.deprecated")

SCRIPTS_TO_ACTIONS = "scripts-to-actions"
PLURALIZE_SET_VARIABLE = "pluralize-set-variable"

ALL_MIGRATIONS = [SCRIPTS_TO_ACTIONS, PLURALIZE_SET_VARIABLE]


def _migrate_scripts_to_actions(component: Component) -> Tuple[Component, str]:
    scripts = component.scripts
    if scripts.is_empty():
        return component, ""

    defaults = ActionDefaults(
        mute=not scripts.show_output,
        max_total_seconds=scripts.timeout_seconds,
        # retry used to mean "forever"
        max_retries=sys.maxsize if scripts.retry else 0,
    )

    has_scripts = False
    if scripts.prepare:
        has_scripts = True
        component.actions.on_create.defaults = defaults
        component.actions.on_create.after.extend(Action(cmd=s) for s in scripts.prepare)
    if scripts.before:
        has_scripts = True
        component.actions.on_deploy.defaults = defaults
        component.actions.on_deploy.before.extend(Action(cmd=s) for s in scripts.before)
    if scripts.after:
        has_scripts = True
        component.actions.on_deploy.defaults = defaults
        component.actions.on_deploy.after.extend(Action(cmd=s) for s in scripts.after)

    component.scripts = DeprecatedScripts()
    if not has_scripts:
        return component, ""
    return component, (
        f"Component '{component.name}' is using scripts which will be removed in a "
        f"future release. Please migrate to actions."
    )


def _migrate_set_variable(component: Component) -> Tuple[Component, str]:
    migrated = False
    for set_name in ACTION_SETS:
        action_set = getattr(component.actions, set_name)
        for bucket in ACTION_BUCKETS:
            for action in getattr(action_set, bucket):
                if action.set_variable and not action.set_variables:
                    migrated = True
                    action.set_variables = [{"name": action.set_variable}]
                action.set_variable = ""
    if not migrated:
        return component, ""
    return component, (
        f"Component '{component.name}' is using setVariable in actions which will be removed "
        f"in a future release. Please migrate to the list form of setVariables."
    )


def _clear_set_variable(component: Component) -> None:
    for set_name in ACTION_SETS:
        action_set = getattr(component.actions, set_name)
        for bucket in ACTION_BUCKETS:
            for action in getattr(action_set, bucket):
                action.set_variable = ""


def migrate_component(build: BuildData, component: Component) -> Tuple[Component, List[str]]:
    """
    Runs every migration not already recorded in `build.migrations`.
    Returns a migrated copy and the warnings the migrations produced.
    """
    component = component.clone()
    warnings: List[str] = []

    if SCRIPTS_TO_ACTIONS in build.migrations:
        component.scripts = DeprecatedScripts()
    else:
        component, warning = _migrate_scripts_to_actions(component)
        if warning:
            warnings.append(warning)

    if PLURALIZE_SET_VARIABLE in build.migrations:
        _clear_set_variable(component)
    else:
        component, warning = _migrate_set_variable(component)
        if warning:
            warnings.append(warning)

    if component.group:
        warnings.append(
            f"Component '{component.name}' is using group which has been deprecated and will "
            f"be removed in a future release. Please migrate to another solution."
        )

    for warning in warnings:
        logger.debug(warning)
    return component, warnings


def migrate_package(pkg: Package) -> List[str]:
    """Migrates every component of `pkg` in place."""
    warnings: List[str] = []
    for i, component in enumerate(pkg.components):
        pkg.components[i], found = migrate_component(pkg.build, component)
        warnings.extend(found)
    return warnings
