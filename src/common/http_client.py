"""Shared HTTP helpers used by the version resolver and the downloader.

Encapsulates session construction (connection pooling, bearer-token auth) and
the common request/timeout error handling so callers avoid duplicating
try/except blocks. Transport failures surface as ``HTTPRequestError`` and
non-success statuses as ``ProviderHTTPError``; nothing here exits the process
because requests run inside worker threads.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from requests.auth import AuthBase

from constants import Constants
from common.cancellation import CancellationToken, ensure_token
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from errors import HTTPRequestError, ProviderHTTPError

logger = logging.getLogger(__name__)


class BearerAuth(AuthBase):
    """Attach ``Authorization: Bearer <token>`` unless the request has one."""

    def __init__(self, token: str):
        self.token = token

    def __call__(self, r: requests.PreparedRequest) -> requests.PreparedRequest:
        if "Authorization" not in r.headers:
            r.headers["Authorization"] = f"Bearer {self.token}"
        return r

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BearerAuth) and other.token == self.token

    def __repr__(self) -> str:
        return "BearerAuth(***)"


def new_session(token: Optional[str] = None) -> requests.Session:
    """Create a pooled session, authenticated when ``token`` is non-empty.

    Proxy settings are taken from the environment (``trust_env``).
    """
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=Constants.HTTP_POOL_CONNECTIONS,
        pool_maxsize=Constants.HTTP_POOL_MAXSIZE,
    )
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers["User-Agent"] = Constants.USER_AGENT
    if token:
        session.auth = BearerAuth(token)
    return session


def safe_get(
    session: requests.Session,
    url: str,
    *,
    context: str,
    token: Optional[CancellationToken] = None,
    stream: bool = False,
    **kwargs: Any,
) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        session: Session carrying pooling and authentication.
        url: Target URL.
        context: Human-readable source tag for logs (e.g., "versions", "download").
        token: Cancellation token checked before the request is issued.
        stream: Whether to defer downloading the body.
        **kwargs: Passed through to ``session.get``.

    Returns:
        requests.Response: The HTTP response object, whatever its status.

    Raises:
        Cancelled: The run was cancelled before the request started.
        HTTPRequestError: Connection failure or timeout.
    """
    token = ensure_token(token)
    token.raise_if_cancelled()
    safe_target = safe_url(url)
    timeout = (Constants.CONNECT_TIMEOUT, token.timeout(Constants.REQUEST_TIMEOUT))
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context,
                ),
            )
        try:
            res = session.get(url, timeout=timeout, stream=stream, **kwargs)
        except requests.Timeout as exc:
            raise HTTPRequestError(
                f"{context} request timed out after {timeout[1]:.0f} seconds",
                url=safe_target,
            ) from exc
        except requests.RequestException as exc:  # includes ConnectionError
            raise HTTPRequestError(
                f"{context} connection error: {exc}", url=safe_target
            ) from exc
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                    context=context,
                ),
            )
        return res


def raise_for_status(res: requests.Response, url: str) -> None:
    """Raise ``ProviderHTTPError`` unless the response status is 200.

    The (truncated) response body is kept as diagnostic metadata.
    """
    if res.status_code == 200:
        return
    try:
        body = res.text[: Constants.ERROR_BODY_MAX_CHARS]
    except (requests.RequestException, UnicodeDecodeError):
        body = ""
    finally:
        res.close()
    raise ProviderHTTPError(res.status_code, res.reason or "", body, url=safe_url(url))


def next_link(res: requests.Response) -> Optional[str]:
    """Return the ``rel="next"`` URL of a paginated response, if any."""
    links = getattr(res, "links", None) or {}
    nxt = links.get("next") or {}
    return nxt.get("url") or None
