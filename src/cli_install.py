"""The ``install`` subcommand.

If no lock file exists yet, all configured binaries are resolved and locked
first. Otherwise the existing lock is read, verified and used as-is, so an
install never silently picks up newer releases.
"""

import logging
from pathlib import Path
from typing import List, Sequence

from common.cancellation import CancellationToken
from common.logging_utils import extra_context
from config import BinarySpec, Config, expand_path, load_config_file
from errors import NameNotFound
from install import install_binaries
from lockfile import BinaryData, Lock, lock_path_for, read_lock_file, write_lock_file
from provider import ProviderRegistry
from resolution import BinaryResolver

logger = logging.getLogger(__name__)


def select_specs(cfg: Config, names: Sequence[str]) -> List[BinarySpec]:
    """Configured binaries for ``names``, or all of them when none are given.

    Raises:
        NameNotFound: A name is not configured.
    """
    if not names:
        return list(cfg.binaries)
    specs = []
    for name in names:
        spec = cfg.find(name)
        if spec is None:
            raise NameNotFound(f"name {name} not found", name=name)
        specs.append(spec)
    return specs


def _label(spec: BinarySpec) -> str:
    if spec.lock_name():
        return spec.lock_name()
    if isinstance(spec.provider, str):
        return spec.provider
    return spec.provider.name


def select_locked(
    resolver: BinaryResolver, lock: Lock, specs: Sequence[BinarySpec], lock_path: Path
) -> List[BinaryData]:
    """Locked entries for ``specs``.

    Raises:
        NameNotFound: A configured binary has no entry in the lock.
    """
    selected = []
    for spec in specs:
        data = resolver.find_locked(spec, lock)
        if data is None:
            raise NameNotFound(
                f"name {_label(spec)} not found in {lock_path}, run 'lock' to update it",
                name=spec.name,
                lock=str(lock_path),
            )
        selected.append(data)
    return selected


def load_or_create_lock(
    resolver: BinaryResolver, cfg: Config, lock_path: Path, token: CancellationToken
) -> Lock:
    """Read the lock file, or resolve and write it if it does not exist."""
    try:
        lock = read_lock_file(lock_path)
    except FileNotFoundError:
        logger.info(
            "No lock file found, resolving binaries",
            extra=extra_context(event="lock_missing", component="cli", path=str(lock_path)),
        )
        lock = resolver.resolve(cfg.binaries, token=token)
        write_lock_file(lock, lock_path)
        return lock
    logger.debug(
        "Using lock file %s",
        lock_path,
        extra=extra_context(event="lock_loaded", component="cli", digest=lock.digest),
    )
    return lock


def run_install(args, token: CancellationToken) -> List[Path]:
    """Install the requested binaries.

    Returns:
        Installed file paths.

    Raises:
        NameNotFound: A requested name is unknown or missing from the lock.
        InstallError: One or more binaries failed to install.
    """
    cfg = load_config_file(args.CONFIG)
    specs = select_specs(cfg, args.NAMES)
    lock_path = lock_path_for(args.CONFIG)
    install_dir = Path(expand_path(cfg.global_.install_dir))

    registry = ProviderRegistry().init(cfg.providers)
    try:
        resolver = BinaryResolver(registry)
        lock = load_or_create_lock(resolver, cfg, lock_path, token)
        # also sets up sessions of inline providers for the download
        binaries = select_locked(resolver, lock, specs, lock_path)
        paths = install_binaries(registry, binaries, install_dir, token=token)
    finally:
        registry.close()

    if not args.QUIET:
        for data, path in zip(binaries, paths):
            print(f"Installed {data.name} {data.version} -> {path}")
    return paths
