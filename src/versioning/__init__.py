"""Version parsing, constraint matching and remote version resolution."""

from versioning.models import VersionConstraint, VersionRef, as_constraint
from versioning.parser import parse_constraint, parse_version
from versioning.resolver import find_latest_version, get_versions, resolve_version

__all__ = [
    "VersionConstraint",
    "VersionRef",
    "as_constraint",
    "find_latest_version",
    "get_versions",
    "parse_constraint",
    "parse_version",
    "resolve_version",
]
