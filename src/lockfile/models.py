"""Lock data model and its content digest."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from errors import LockFileError


@dataclass(frozen=True)
class BinaryData:
    """A fully resolved binary: what to download and where to find it."""
    name: str
    provider: str = ""
    version: str = ""
    download_url: str = ""
    extract_path: str = ""

    def to_dict(self) -> Dict[str, str]:
        """Serialized mapping as stored in the lock file."""
        out = {
            "name": self.name,
            "provider": self.provider,
            "version": self.version,
            "downloadURL": self.download_url,
        }
        if self.extract_path:
            out["extractPath"] = self.extract_path
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BinaryData":
        """Build from a lock file mapping.

        Raises:
            LockFileError: If the entry is not a mapping or lacks a name.
        """
        if not isinstance(data, Mapping):
            raise LockFileError(f"invalid binary entry: {data!r}")
        name = data.get("name")
        if not name or not isinstance(name, str):
            raise LockFileError("invalid binary entry: missing name")
        return cls(
            name=name,
            provider=str(data.get("provider") or ""),
            version=str(data.get("version") or ""),
            download_url=str(data.get("downloadURL") or ""),
            extract_path=str(data.get("extractPath") or ""),
        )


def _sorted(binaries: Iterable[BinaryData]) -> Tuple[BinaryData, ...]:
    return tuple(sorted(binaries, key=lambda b: b.name))


def compute_digest(binaries: Iterable[BinaryData]) -> str:
    """Return ``sha256:<hex>`` of the canonical JSON of the name-sorted binaries."""
    payload = json.dumps(
        [b.to_dict() for b in _sorted(binaries)],
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return "sha256:" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass(frozen=True)
class Lock:
    """Resolved binaries together with their digest and generation time."""
    generated: datetime
    digest: str
    binaries: Tuple[BinaryData, ...] = field(default_factory=tuple)

    @classmethod
    def create(cls, binaries: Iterable[BinaryData]) -> "Lock":
        """Sort ``binaries`` by name, hash them and stamp the current time."""
        ordered = _sorted(binaries)
        return cls(generated=utc_now(), digest=compute_digest(ordered), binaries=ordered)

    def verify(self) -> bool:
        """Return True if the stored digest matches the binaries."""
        return self.digest == compute_digest(self.binaries)

    def select(self, names: Iterable[str]) -> List[BinaryData]:
        """Binaries whose name is in ``names``, in lock order.

        An empty selection returns every binary.
        """
        wanted = set(names)
        if not wanted:
            return list(self.binaries)
        return [b for b in self.binaries if b.name in wanted]
