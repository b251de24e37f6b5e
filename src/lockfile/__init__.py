"""Lock model, digest and lock file I/O."""

from lockfile.io import lock_path_for, read_lock_file, write_lock_file
from lockfile.models import BinaryData, Lock, compute_digest

__all__ = [
    "BinaryData",
    "Lock",
    "compute_digest",
    "lock_path_for",
    "read_lock_file",
    "write_lock_file",
]
