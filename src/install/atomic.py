"""Atomic placement of installed binaries."""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from constants import Constants

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def backup_path(dst: Path) -> Path:
    """Where the previously installed binary is kept: ``.<name>.old``."""
    return dst.with_name(f".{dst.name}.old")


def install_file(src: PathLike, dst: PathLike) -> Path:
    """Copy ``src`` to ``dst`` so that ``dst`` is never seen half-written.

    The file is copied to a temporary file next to ``dst`` and made
    executable. An existing ``dst`` is moved to ``.<name>.old`` before the
    temporary file is renamed into place; if that rename fails the old binary
    is moved back.

    Raises:
        OSError: Copying or renaming failed. No temporary file is left behind.
    """
    src, dst = Path(src), Path(dst)
    dst.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{dst.name}.", suffix=".new", dir=str(dst.parent))
    tmp = Path(tmp_name)
    backup: Optional[Path] = None
    try:
        with os.fdopen(fd, "wb") as out, open(src, "rb") as inp:
            shutil.copyfileobj(inp, out)
        os.chmod(tmp, Constants.BINARY_MODE)

        if dst.exists():
            backup = backup_path(dst)
            if backup.exists():
                backup.unlink()
            os.replace(dst, backup)
        try:
            os.replace(tmp, dst)
        except OSError:
            if backup is not None:
                os.replace(backup, dst)
            raise
    except BaseException:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise

    logger.debug("Installed %s", dst)
    return dst
