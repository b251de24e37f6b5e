"""The ``lock`` subcommand: resolve all configured binaries into a lock file."""

import logging
from pathlib import Path

from common.cancellation import CancellationToken
from config import Config, load_config_file
from lockfile import Lock, lock_path_for, write_lock_file
from provider import ProviderRegistry
from resolution import BinaryResolver

logger = logging.getLogger(__name__)


def resolve_lock(cfg: Config, token: CancellationToken) -> Lock:
    """Resolve every configured binary; raises on the first failure."""
    registry = ProviderRegistry().init(cfg.providers)
    try:
        return BinaryResolver(registry).resolve(cfg.binaries, token=token)
    finally:
        registry.close()


def run_lock(args, token: CancellationToken) -> Path:
    """Write the lock file next to the configuration file.

    Nothing is written if any binary fails to resolve.

    Returns:
        Path of the written lock file.
    """
    cfg = load_config_file(args.CONFIG)
    lock = resolve_lock(cfg, token)
    path = write_lock_file(lock, lock_path_for(args.CONFIG))
    if not args.QUIET:
        for binary in lock.binaries:
            print(f"{binary.name} {binary.version}")
        print(f"Wrote {path}")
    return path
