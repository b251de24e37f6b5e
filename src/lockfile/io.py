"""Reading and writing lock files (YAML)."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Union

import yaml

from common.logging_utils import extra_context
from errors import LockDigestMismatch, LockFileError
from lockfile.models import BinaryData, Lock
from constants import Constants

logger = logging.getLogger(__name__)

_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

PathLike = Union[str, "os.PathLike[str]"]


def lock_path_for(config_path: PathLike) -> Path:
    """Lock file location: the config path with its extension replaced."""
    return Path(config_path).with_suffix(Constants.LOCK_FILE_EXT)


def _format_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(_TIME_FORMAT)


def _parse_time(value: Any) -> datetime:
    # PyYAML already turns unquoted timestamps into datetimes
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.strptime(value, _TIME_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError as exc:
            raise LockFileError(f"invalid generated timestamp: {value!r}") from exc
    raise LockFileError(f"invalid generated timestamp: {value!r}")


def dump_lock(lock: Lock) -> str:
    """Serialize a lock to YAML text."""
    doc = {
        "generated": _format_time(lock.generated),
        "digest": lock.digest,
        "binaries": [b.to_dict() for b in lock.binaries],
    }
    return yaml.safe_dump(doc, sort_keys=False, default_flow_style=False, allow_unicode=True)


def load_lock(text: str) -> Lock:
    """Parse YAML text into a verified lock.

    Raises:
        LockFileError: The document is malformed.
        LockDigestMismatch: The digest does not match the binaries.
    """
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise LockFileError(f"parse lock file: {exc}") from exc
    if not isinstance(doc, dict):
        raise LockFileError("parse lock file: expected a mapping")
    binaries = doc.get("binaries") or []
    if not isinstance(binaries, list):
        raise LockFileError("parse lock file: binaries must be a list")
    digest = doc.get("digest")
    if not isinstance(digest, str) or not digest:
        raise LockFileError("parse lock file: missing digest")
    lock = Lock(
        generated=_parse_time(doc.get("generated")),
        digest=digest,
        binaries=tuple(BinaryData.from_dict(b) for b in binaries),
    )
    if not lock.verify():
        raise LockDigestMismatch("lock file digest mismatch", digest=digest)
    return lock


def write_lock_file(lock: Lock, path: PathLike) -> Path:
    """Atomically write ``lock`` to ``path``.

    Raises:
        LockFileError: The file could not be written.
    """
    target = Path(path)
    content = dump_lock(lock)
    fd, tmp = tempfile.mkstemp(prefix=f".{target.name}.", dir=str(target.parent or Path(".")))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.replace(tmp, target)
    except OSError as exc:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise LockFileError(f"write lock file: {exc}", path=str(target)) from exc
    logger.info(
        "Wrote lock file",
        extra=extra_context(
            event="lock_written", component="lockfile", path=str(target), count=len(lock.binaries)
        ),
    )
    return target


def read_lock_file(path: PathLike) -> Lock:
    """Read and verify the lock file at ``path``.

    Raises:
        FileNotFoundError: No lock file exists.
        LockFileError: The file is unreadable or malformed.
        LockDigestMismatch: The digest does not match the binaries.
    """
    target = Path(path)
    try:
        with open(target, "r", encoding="utf-8") as fh:
            text = fh.read()
    except FileNotFoundError:
        raise
    except OSError as exc:
        raise LockFileError(f"read lock file: {exc}", path=str(target)) from exc
    try:
        return load_lock(text)
    except LockFileError as exc:
        raise exc.with_metadata(path=str(target))
