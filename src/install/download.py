"""Streaming asset downloads."""

from __future__ import annotations

import logging
import os
import posixpath
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlsplit

import requests

from common.cancellation import CancellationToken, ensure_token
from common.http_client import raise_for_status, safe_get
from common.logging_utils import Timer, extra_context, safe_url
from constants import Constants
from errors import DownloadError, HTTPRequestError

logger = logging.getLogger(__name__)


def asset_filename(url: str) -> str:
    """Basename of the URL path, used as the local file name."""
    name = posixpath.basename(unquote(urlsplit(url).path))
    if name in ("", ".", ".."):
        raise DownloadError(f"cannot derive file name from url: {safe_url(url)}", url=safe_url(url))
    return name


def download(
    session: requests.Session,
    url: str,
    directory: Union[str, "os.PathLike[str]"],
    *,
    token: Optional[CancellationToken] = None,
) -> Path:
    """Stream ``url`` into ``directory``.

    Args:
        session: Session of the binary's provider.
        url: Asset URL.
        directory: Existing directory receiving the file.
        token: Cancellation token, checked before the request and between chunks.

    Returns:
        Path of the downloaded file.

    Raises:
        ProviderHTTPError: The server answered with a non-200 status.
        HTTPRequestError: Transport failure while connecting or reading.
        DownloadError: The file could not be written.
        Cancelled: The run was cancelled; no partial file is left behind.
    """
    token = ensure_token(token)
    target = Path(directory) / asset_filename(url)

    with Timer() as t:
        res = safe_get(session, url, context="download", token=token, stream=True)
        raise_for_status(res, url)
        size = 0
        try:
            with res, open(target, "wb") as fh:
                for chunk in res.iter_content(chunk_size=Constants.DOWNLOAD_CHUNK_SIZE):
                    token.raise_if_cancelled()
                    if chunk:
                        fh.write(chunk)
                        size += len(chunk)
        except requests.RequestException as exc:
            _remove_partial(target)
            raise HTTPRequestError(f"download interrupted: {exc}", url=safe_url(url)) from exc
        except OSError as exc:
            _remove_partial(target)
            raise DownloadError(f"write output file: {exc}", url=safe_url(url)) from exc
        except BaseException:
            _remove_partial(target)
            raise

    logger.debug(
        "Downloaded asset",
        extra=extra_context(
            event="download_complete",
            component="download",
            target=safe_url(url),
            bytes=size,
            duration_ms=t.duration_ms(),
        ),
    )
    return target


def _remove_partial(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial download %s: %s", path, exc)
