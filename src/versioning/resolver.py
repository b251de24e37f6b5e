"""Version resolution against a provider's remote release listing."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import requests
from jsonpath_ng.ext import parse as jsonpath_parse

from common.cancellation import CancellationToken, ensure_token
from common.http_client import next_link, raise_for_status, safe_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from errors import InvalidVersionPath, NoMatchingVersion, ProviderResponseError
from versioning.models import Candidate
from versioning.parser import parse_constraint, parse_version

logger = logging.getLogger(__name__)


def resolve_version(
    session: requests.Session,
    versions_url: str,
    path: str,
    constraint: str,
    prefix: str = "",
    *,
    token: Optional[CancellationToken] = None,
) -> str:
    """Return the latest listed version matching ``constraint``.

    If no ``versions_url`` is given the constraint is returned as-is; for
    providers without version discovery it is an opaque literal.
    """
    if not versions_url:
        return constraint
    versions = get_versions(session, versions_url, path, token=token)
    return find_latest_version(versions, constraint, prefix)


def get_versions(
    session: requests.Session,
    url: str,
    path: str,
    *,
    token: Optional[CancellationToken] = None,
) -> List[str]:
    """Fetch a versions listing, following ``Link: rel="next"`` pagination.

    Args:
        session: Provider session.
        url: First page of the listing.
        path: JSONPath selecting version strings in each page.
        token: Cancellation token checked before every page.

    Returns:
        Version strings of all pages, in page order.

    Raises:
        ProviderHTTPError: A page answered with a non-200 status.
        ProviderResponseError: A page is not valid JSON.
        InvalidVersionPath: ``path`` is not a valid JSONPath expression.
    """
    token = ensure_token(token)
    expr = _compile_path(path)
    versions: List[str] = []
    seen = set()
    current: Optional[str] = url
    while current and current not in seen:
        seen.add(current)
        res = safe_get(session, current, context="versions", token=token)
        raise_for_status(res, current)
        try:
            doc = res.json()
        except ValueError as exc:
            raise ProviderResponseError(
                f"unmarshal response body: {exc}", url=safe_url(current)
            ) from exc
        page = retrieve_versions(doc, expr)
        versions.extend(page)
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched versions page",
                extra=extra_context(
                    event="versions_page",
                    component="resolver",
                    target=safe_url(current),
                    count=len(page),
                ),
            )
        current = next_link(res)
    return versions


def _compile_path(path: str) -> Any:
    try:
        return jsonpath_parse(path)
    except Exception as exc:  # older jsonpath-ng releases raise bare Exception on syntax errors
        raise InvalidVersionPath(f"invalid versions path {path!r}: {exc}", path=path) from exc


def retrieve_versions(doc: Any, path: Any) -> List[str]:
    """Extract non-empty version strings from a decoded JSON document.

    ``path`` is a JSONPath expression or an already compiled one.
    """
    expr = _compile_path(path) if isinstance(path, str) else path
    versions: List[str] = []
    for match in expr.find(doc):
        value = match.value
        if not isinstance(value, str):
            logger.debug("Skipping non-string version value %r", value)
            continue
        if value == "":
            continue
        versions.append(value)
    return versions


def _strip_prefix(text: str, prefix: str) -> str:
    return text[len(prefix):] if prefix and text.startswith(prefix) else text


def find_latest_version(versions: Sequence[str], constraint: str, prefix: str = "") -> str:
    """Select the highest listed version satisfying ``constraint``.

    Candidates and constraint are compared with ``prefix`` stripped. Tags that
    do not parse as semantic versions are ignored. Prereleases are only
    considered when the constraint itself names a prerelease version.

    Returns:
        ``prefix`` followed by the winning candidate's original text.

    Raises:
        InvalidConstraint: The constraint cannot be parsed.
        NoMatchingVersion: No candidate satisfies the constraint.
    """
    spec = parse_constraint(_strip_prefix(constraint or "", prefix))

    matches: List[Candidate] = []
    for raw in versions:
        stripped = _strip_prefix(raw, prefix)
        version = parse_version(stripped)
        if version is None:
            continue
        if version.prerelease and not spec.allows_prerelease:
            continue
        if not spec.match(version):
            continue
        matches.append(Candidate(raw=stripped, version=version))

    if not matches:
        raise NoMatchingVersion(
            f"no matching versions: {constraint!r}", constraint=constraint, candidates=len(versions)
        )

    # text tie-break keeps the choice independent of listing order
    matches.sort(key=lambda c: c.raw, reverse=True)
    matches.sort(key=lambda c: c.version, reverse=True)
    return prefix + matches[0].raw
