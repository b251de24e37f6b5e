"""Installing resolved binaries concurrently."""

from __future__ import annotations

import logging
import os
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from common.cancellation import CancellationToken, ensure_token
from common.logging_utils import Timer, extra_context
from errors import InstallError, PrebuiltError, get_metadata
from install.atomic import install_file
from install.download import download
from install.extract import extract
from lockfile.models import BinaryData
from provider.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def install_binary(
    registry: ProviderRegistry,
    data: BinaryData,
    scratch: Path,
    install_dir: Path,
    *,
    token: Optional[CancellationToken] = None,
) -> Path:
    """Download, optionally extract, and install one binary.

    Raises:
        PrebuiltError: Any download, extract or install failure, with the
            download URL attached as metadata.
    """
    token = ensure_token(token)
    session = registry.session(data.provider)
    try:
        path = download(session, data.download_url, scratch, token=token)
        if data.extract_path:
            path = extract(path, data.extract_path)
        token.raise_if_cancelled()
        try:
            return install_file(path, install_dir / data.name)
        except OSError as exc:
            raise PrebuiltError(f"install binary: {exc}", path=str(install_dir / data.name)) from exc
    except PrebuiltError as exc:
        raise exc.with_metadata(url=data.download_url)


def install_binaries(
    registry: ProviderRegistry,
    binaries: Sequence[BinaryData],
    install_dir: Union[str, "os.PathLike[str]"],
    *,
    token: Optional[CancellationToken] = None,
) -> List[Path]:
    """Install every binary, each in its own worker thread.

    All binaries are attempted even if some fail.

    Returns:
        Installed paths, in the order of ``binaries``.

    Raises:
        InstallError: One or more binaries failed; lists their names.
    """
    token = ensure_token(token)
    install_dir = Path(install_dir)
    if not binaries:
        return []

    installed: Dict[str, Path] = {}
    failed: List[str] = []
    with Timer() as t, tempfile.TemporaryDirectory(prefix="prebuilt-") as tmp_root:
        with ThreadPoolExecutor(max_workers=len(binaries), thread_name_prefix="install") as executor:
            futures: Dict[Future, BinaryData] = {}
            for index, data in enumerate(binaries):
                scratch = Path(tmp_root) / str(index)
                scratch.mkdir()
                futures[executor.submit(install_binary, registry, data, scratch, install_dir, token=token)] = data

            for future in as_completed(futures):
                data = futures[future]
                try:
                    installed[data.name] = future.result()
                except PrebuiltError as exc:
                    failed.append(data.name)
                    logger.error(
                        "Failed to install %s: %s",
                        data.name,
                        exc,
                        extra=extra_context(
                            event="install_failed",
                            component="install",
                            name=data.name,
                            **{k: v for k, v in get_metadata(exc).items() if k != "name"},
                        ),
                    )
                    continue
                logger.info(
                    "Installed %s %s",
                    data.name,
                    data.version,
                    extra=extra_context(
                        event="installed",
                        component="install",
                        name=data.name,
                        version=data.version,
                        path=str(installed[data.name]),
                    ),
                )

    if failed:
        order = {b.name: i for i, b in enumerate(binaries)}
        raise InstallError(sorted(failed, key=order.__getitem__))
    logger.debug("Installed %d binaries in %d ms", len(installed), t.duration_ms())
    return [installed[b.name] for b in binaries]
