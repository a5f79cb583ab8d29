#!/usr/bin/env python3
"""
ZARFKIT ERRORS - Failure Taxonomy
---------------------------------
Every terminal condition raised by the assembly and distribution engine.
Nothing in the core swallows these; advisory conditions are returned as
warning strings next to the primary value instead.

Author: ZarfKit Team
Date: 2026-02-03
"""

from typing import Dict, List


class ZarfError(Exception):
    """Root of all errors raised by zarfkit."""


class PackageFormatError(ZarfError):
    """A zarf.yaml, header part or registry document could not be decoded."""


# --- STRUCTURAL ---

class StructuralError(ZarfError):
    """Malformed import chains, missing referenced components, arch mismatch."""


# --- INTEGRITY ---

class IntegrityError(ZarfError):
    """Checksum mismatch, missing or unexpected files."""


class SignatureError(IntegrityError):
    """Signature and key expectations disagree, or verification failed."""


class SplitError(IntegrityError):
    """A split package is missing parts or reassembles to the wrong hash."""


# --- SELECTION ---

class SelectionError(ZarfError):
    """The requested component selection cannot be satisfied."""


class NoDefaultOrSelectionError(SelectionError):
    def __init__(self, candidates: List[str]):
        self.candidates = candidates
        super().__init__(
            f"no compatible components found that match the selection, "
            f"and no default was set for the group: {', '.join(candidates)}"
        )


class MultipleSameGroupError(SelectionError):
    def __init__(self, first: str, second: str, group: str):
        self.first = first
        self.second = second
        self.group = group
        super().__init__(
            f"cannot specify multiple components ({first}, {second}) "
            f"within the same group ({group})"
        )


class ComponentNotFoundError(SelectionError):
    """One or more request tokens matched nothing. Maps token -> near misses."""

    def __init__(self, missing: Dict[str, List[str]]):
        self.missing = missing
        parts = []
        for requested, suggestions in missing.items():
            msg = f"no compatible components found that match {requested!r}"
            if suggestions:
                msg += f" (did you mean: {', '.join(suggestions)})"
            parts.append(msg)
        super().__init__("; ".join(parts))

    @property
    def suggestions(self) -> List[str]:
        found: List[str] = []
        for names in self.missing.values():
            found.extend(n for n in names if n not in found)
        return found


class FilterError(SelectionError):
    """Raised by Combine when one of its strategies fails."""

    def __init__(self, strategy: str, cause: Exception):
        self.strategy = strategy
        self.cause = cause
        super().__init__(f"{strategy}: {cause}")


# --- COLLABORATORS ---

class RegistryError(ZarfError):
    """A registry operation failed; the message names the reference."""
