"""Version and constraint parsing.

Release tags are parsed leniently: an optional leading ``v`` and missing
minor/patch components are accepted (``v1.2`` is 1.2.0). Constraints use the
common semver grammar: comparison operators, ``~``/``^``/``~=``, wildcards
(``1.x``, ``1.2.*``), hyphen ranges (``1.2 - 1.4``), conjunction with commas or
whitespace and disjunction with ``||``. Each conjunction is normalized into a
``semantic_version.SimpleSpec``.
"""

import re
from typing import List, Optional, Tuple

import semantic_version

from constants import Constants
from errors import InvalidConstraint

_IDENT = r"[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*"
_VERSION_RE = re.compile(
    r"^v?(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    rf"(?:-(?P<prerelease>{_IDENT}))?(?:\+(?P<build>{_IDENT}))?$"
)
# Version operand of a comparator, wildcards allowed in minor/patch.
_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])(?:\.(?P<minor>\d+|[xX*]))?(?:\.(?P<patch>\d+|[xX*]))?"
    rf"(?:-(?P<prerelease>{_IDENT}))?(?:\+(?P<build>{_IDENT}))?$"
)
_COMPARATOR_RE = re.compile(r"^(?P<op>~=|==|!=|>=|<=|=|>|<|~>|~|\^)?(?P<version>.+)$")
_HYPHEN_RE = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")
_OP_SPACE_RE = re.compile(r"(~=|==|!=|>=|<=|=|>|<|~>|~|\^)\s+")
_WILDCARDS = ("x", "X", "*")


def parse_version(text: str) -> Optional[semantic_version.Version]:
    """Parse a release tag as a semantic version, or return None."""
    m = _VERSION_RE.match(text.strip())
    if not m:
        return None
    try:
        return semantic_version.Version(
            major=int(m.group("major")),
            minor=int(m.group("minor") or 0),
            patch=int(m.group("patch") or 0),
            prerelease=tuple(m.group("prerelease").split(".")) if m.group("prerelease") else (),
            build=tuple(m.group("build").split(".")) if m.group("build") else (),
        )
    except ValueError:
        # e.g. numeric prerelease identifiers with leading zeros
        return None


def is_unconstrained(text: str) -> bool:
    return text.strip() in Constants.UNCONSTRAINED_VERSIONS


class Constraint:
    """A parsed constraint: a disjunction of SimpleSpec conjunctions."""

    def __init__(self, text: str, alternatives: List[Optional[semantic_version.SimpleSpec]],
                 allows_prerelease: bool):
        self.text = text
        self._alternatives = alternatives  # None entries match everything
        self.allows_prerelease = allows_prerelease

    def match(self, version: semantic_version.Version) -> bool:
        if not self._alternatives:
            return True
        return any(spec is None or spec.match(version) for spec in self._alternatives)

    def __repr__(self) -> str:
        return f"Constraint({self.text!r})"


def _format(major: int, minor: int, patch: int, pre: Optional[str], build: Optional[str]) -> str:
    out = f"{major}.{minor}.{patch}"
    if pre:
        out += f"-{pre}"
    if build:
        out += f"+{build}"
    return out


def _comparator_clauses(op: str, operand: str) -> Tuple[List[str], bool]:
    """Translate one comparator into SimpleSpec clauses.

    Returns the clauses and whether the operand names a prerelease.
    """
    m = _PARTIAL_RE.match(operand)
    if not m:
        raise ValueError(f"invalid version {operand!r}")
    major, minor, patch = m.group("major"), m.group("minor"), m.group("patch")
    pre, build = m.group("prerelease"), m.group("build")

    if major in _WILDCARDS:
        if op in ("", "=", "==", ">=", "<="):
            return [], False
        raise ValueError(f"wildcard not allowed with {op!r}")

    if op in ("~", "~>", "^", "~="):
        parts = [p for p in (major, minor, patch) if p and p not in _WILDCARDS]
        clause = ("~" if op == "~>" else op) + ".".join(parts)
        if pre and len(parts) == 3:
            clause += f"-{pre}"
        return [clause], bool(pre)

    # missing or wildcard components
    minor_free = minor is None or minor in _WILDCARDS
    patch_free = minor_free or patch is None or patch in _WILDCARDS
    maj = int(major)
    mnr = 0 if minor_free else int(minor)
    ptc = 0 if patch_free else int(patch)
    exact = _format(maj, mnr, ptc, pre, build)

    if op in ("", "=", "=="):
        if minor_free:
            return [f">={maj}.0.0", f"<{maj + 1}.0.0"], False
        if patch_free:
            return [f">={maj}.{mnr}.0", f"<{maj}.{mnr + 1}.0"], False
        return [f"=={exact}"], bool(pre)
    if op == "!=":
        if minor_free or patch_free:
            raise ValueError(f"wildcard not allowed with {op!r}")
        return [f"!={exact}"], bool(pre)
    if op == ">" and (minor_free or patch_free):
        # ">1.2" means above every 1.2.x
        upper = f"{maj + 1}.0.0" if minor_free else f"{maj}.{mnr + 1}.0"
        return [f">={upper}"], False
    if op == "<=" and (minor_free or patch_free):
        upper = f"{maj + 1}.0.0" if minor_free else f"{maj}.{mnr + 1}.0"
        return [f"<{upper}"], False
    return [f"{op}{exact}"], bool(pre)


def _parse_conjunction(text: str) -> Tuple[Optional[semantic_version.SimpleSpec], bool]:
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        text = f">={hyphen.group('low')},<={hyphen.group('high')}"
    text = _OP_SPACE_RE.sub(r"\1", text)
    clauses: List[str] = []
    prerelease = False
    for part in re.split(r"[,\s]+", text.strip()):
        if not part:
            continue
        m = _COMPARATOR_RE.match(part)
        if not m:
            raise ValueError(f"invalid comparator {part!r}")
        part_clauses, part_pre = _comparator_clauses(m.group("op") or "", m.group("version"))
        clauses.extend(part_clauses)
        prerelease = prerelease or part_pre
    if not clauses:
        return None, prerelease
    return semantic_version.SimpleSpec(",".join(clauses)), prerelease


def parse_constraint(text: str) -> Constraint:
    """Parse a constraint expression.

    The sentinels "", "*" and "latest" produce a constraint matching every
    version.

    Raises:
        InvalidConstraint: If the expression cannot be parsed.
    """
    raw = text or ""
    if is_unconstrained(raw):
        return Constraint(raw, [], False)
    alternatives: List[Optional[semantic_version.SimpleSpec]] = []
    allows_prerelease = False
    for alt in raw.split("||"):
        if not alt.strip():
            raise InvalidConstraint(f"invalid constraint {raw!r}: empty alternative", constraint=raw)
        try:
            spec, pre = _parse_conjunction(alt)
        except ValueError as exc:
            raise InvalidConstraint(f"invalid constraint {raw!r}: {exc}", constraint=raw) from exc
        alternatives.append(spec)
        allows_prerelease = allows_prerelease or pre
    return Constraint(raw, alternatives, allows_prerelease)
