"""Extraction of a single member from a downloaded archive."""

from __future__ import annotations

import logging
import shutil
import tarfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import IO, Union

from errors import ExtractError

logger = logging.getLogger(__name__)

_TAR_SUFFIXES = (".tar", ".tar.gz", ".tgz", ".tar.xz", ".txz", ".tar.bz2", ".tbz2", ".tbz")


def _validate_member_path(member: str) -> PurePosixPath:
    """Reject member paths that would land outside the extraction directory."""
    relative = PurePosixPath(member.replace("\\", "/"))
    if relative.is_absolute():
        raise ExtractError(f"unsafe absolute path: {member}", member=member)
    parts = [p for p in relative.parts if p != "."]
    if not parts:
        raise ExtractError(f"empty member path: {member!r}", member=member)
    if ".." in parts:
        raise ExtractError(f"unsafe path: {member}", member=member)
    return PurePosixPath(*parts)


def _normalize(name: str) -> str:
    parts = [p for p in PurePosixPath(name.replace("\\", "/")).parts if p != "."]
    return "/".join(parts)


def archive_kind(path: Union[str, Path]) -> str:
    """Return "zip" or "tar" by file name, or raise ExtractError."""
    lower = Path(path).name.lower()
    if lower.endswith(".zip"):
        return "zip"
    if lower.endswith(_TAR_SUFFIXES):
        return "tar"
    raise ExtractError(f"unsupported archive: {Path(path).name}", archive=str(path))


def extract(archive: Union[str, Path], member: str) -> Path:
    """Extract ``member`` from ``archive`` into the archive's directory.

    Args:
        archive: Downloaded archive; tar (any compression) or zip.
        member: Path of the wanted file inside the archive.

    Returns:
        Path of the extracted file.

    Raises:
        ExtractError: Unsupported format, unreadable archive, missing member
            or a member path escaping the extraction directory.
    """
    archive = Path(archive)
    relative = _validate_member_path(member)
    dst = archive.parent.joinpath(*relative.parts)
    kind = archive_kind(archive)
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        if kind == "zip":
            _extract_zip(archive, str(relative), dst)
        else:
            _extract_tar(archive, str(relative), dst)
    except (tarfile.TarError, zipfile.BadZipFile) as exc:
        raise ExtractError(f"read archive {archive.name}: {exc}", archive=str(archive)) from exc
    except OSError as exc:
        raise ExtractError(f"extract {member}: {exc}", archive=str(archive)) from exc
    logger.debug("Extracted %s from %s", member, archive.name)
    return dst


def _copy(source: IO[bytes], dst: Path) -> None:
    with source, open(dst, "wb") as out:
        shutil.copyfileobj(source, out)


def _extract_tar(archive: Path, wanted: str, dst: Path) -> None:
    with tarfile.open(archive, mode="r:*") as tar:
        for info in tar:
            if _normalize(info.name) != wanted:
                continue
            if not info.isfile():
                raise ExtractError(f"not a regular file: {info.name}", member=info.name)
            source = tar.extractfile(info)
            if source is None:
                raise ExtractError(f"cannot read member: {info.name}", member=info.name)
            _copy(source, dst)
            return
    raise ExtractError(f"file not found: {wanted}", member=wanted, archive=str(archive))


def _extract_zip(archive: Path, wanted: str, dst: Path) -> None:
    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            if info.is_dir() or _normalize(info.filename) != wanted:
                continue
            _copy(zf.open(info, "r"), dst)
            return
    raise ExtractError(f"file not found: {wanted}", member=wanted, archive=str(archive))
