"""Provider DSN parsing.

A DSN is a compact ``scheme://host/path?key=value`` specifier, e.g.
``github://cluttrdev/prebuilt?asset=prebuilt_{{ .Version }}_linux-amd64.tar.gz``.
The scheme names the provider; host, path and query parameters are free-form
values substituted into the provider's templates. Query values may be
templates themselves and are kept verbatim.
"""

from __future__ import annotations

import re
from typing import Dict
from urllib.parse import parse_qsl, urlsplit

from errors import InvalidSpecifier
from provider.models import ProviderData

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")

# https://github.com/<owner>/<repo>/releases/download/<version>/<asset...>
_GITHUB_RELEASE_RE = re.compile(
    r"^(?P<owner>[^/]+)/(?P<repo>[^/]+)/releases/download/(?P<version>[^/]+)/(?P<asset>.+)$"
)


def parse_dsn(text: str) -> ProviderData:
    """Parse a provider DSN into ``ProviderData``.

    Args:
        text: Specifier string.

    Returns:
        ProviderData with scheme, host, path (leading slash stripped) and the
        query parameters (last value wins on repeated keys).

    Raises:
        InvalidSpecifier: If the string is not a well-formed URI.
    """
    if not isinstance(text, str) or not text.strip():
        raise InvalidSpecifier("empty provider specifier", dsn=text)
    try:
        parts = urlsplit(text.strip())
        _ = parts.port  # validates the port component
    except ValueError as exc:
        raise InvalidSpecifier(f"invalid provider specifier: {exc}", dsn=text) from exc

    if not parts.scheme or not _SCHEME_RE.match(parts.scheme) or "://" not in text:
        raise InvalidSpecifier(
            "invalid provider specifier: expected scheme://host/path", dsn=text
        )

    query: Dict[str, str] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        query[key] = value

    return ProviderData(
        scheme=parts.scheme.lower(),
        host=parts.netloc.rpartition("@")[2],
        path=parts.path.lstrip("/"),
        query=query,
    )


def route_github_release_url(data: ProviderData) -> ProviderData:
    """Map a ``https://github.com/...`` release download URL onto the github provider.

    Other DSNs are returned unchanged.

    Raises:
        InvalidSpecifier: For a github.com URL that is not a release download URL.
    """
    if data.scheme not in ("http", "https") or data.host.lower() != "github.com":
        return data
    m = _GITHUB_RELEASE_RE.match(data.path)
    if not m:
        raise InvalidSpecifier(
            "github.com URLs must have the form "
            "https://github.com/<owner>/<repo>/releases/download/<version>/<asset>",
            dsn=f"{data.scheme}://{data.host}/{data.path}",
        )
    query = dict(data.query)
    query["asset"] = m.group("asset")
    return ProviderData(scheme="github", host=m.group("owner"), path=m.group("repo"), query=query)
