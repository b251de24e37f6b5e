"""Data models for version constraints and resolution candidates."""

from dataclasses import dataclass
from typing import Union

import semantic_version


@dataclass(frozen=True)
class VersionConstraint:
    """Structured version setting: a constraint plus a tag prefix (e.g. "jq-")."""
    constraints: str = ""
    prefix: str = ""


# A binary's version is either a raw constraint string or a structured spec.
VersionRef = Union[str, VersionConstraint]


def as_constraint(ref: VersionRef) -> VersionConstraint:
    """Normalize a version reference to its structured form."""
    if isinstance(ref, VersionConstraint):
        return ref
    return VersionConstraint(constraints=ref or "")


@dataclass(frozen=True)
class Candidate:
    """A remote version that parsed as a semantic version."""
    raw: str  # text as listed remotely, prefix included
    version: semantic_version.Version
