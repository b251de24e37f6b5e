"""Concurrent resolution of configured binaries into a lock.

Each binary is resolved independently (provider, version, download URL,
extract path) by a bounded pool of worker threads. The results are merged by
the calling thread only, sorted by name and hashed, so the lock does not
depend on the order in which workers finish.
"""

from __future__ import annotations

import logging
import posixpath
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlsplit

from common.cancellation import CancellationToken, ensure_token
from common.logging_utils import Timer, extra_context
from config import BinarySpec
from constants import Constants
from errors import PrebuiltError
from lockfile.models import BinaryData, Lock
from provider.models import Provider, ProviderData
from provider.registry import ProviderRegistry
from templating import render
from versioning.models import as_constraint
from versioning.resolver import resolve_version

logger = logging.getLogger(__name__)


def display_name(spec: BinarySpec, download_url: str = "") -> str:
    """Name a resolved binary is recorded and installed under.

    Falls back from ``bin_name`` and ``name`` to the basename of the extract
    path and finally to the basename of the download URL path.
    """
    if spec.bin_name:
        return spec.bin_name
    if spec.name:
        return spec.name
    if spec.extract_path:
        return posixpath.basename(spec.extract_path.rstrip("/"))
    return posixpath.basename(urlsplit(download_url).path)


def _result(future: Future) -> BinaryData:
    """Return a worker's result, wrapping unexpected errors in ``PrebuiltError``."""
    try:
        return future.result()
    except PrebuiltError:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        raise PrebuiltError(f"resolve binary: {exc}") from exc


class BinaryResolver:
    """Resolves binary specs against a provider registry.

    Args:
        registry: Initialized provider registry, shared read-only by workers.
        concurrency: Number of worker threads.
    """

    def __init__(self, registry: ProviderRegistry, concurrency: int = Constants.RESOLVE_CONCURRENCY):
        self.registry = registry
        self.concurrency = max(1, concurrency)

    def resolve_one(self, spec: BinarySpec, token: Optional[CancellationToken] = None) -> BinaryData:
        """Resolve a single binary.

        Raises:
            PrebuiltError: Any provider, template, HTTP or version error.
        """
        token = ensure_token(token)
        token.raise_if_cancelled()
        prov, data = self.registry.resolve(spec.provider)
        provider_ctx = data.as_context()

        versions_url = render(prov.spec.versions_url, {"Provider": provider_ctx})
        wanted = as_constraint(spec.version)
        try:
            version = resolve_version(
                prov.session,
                versions_url,
                prov.spec.versions_path,
                wanted.constraints,
                wanted.prefix,
                token=token,
            )
        except PrebuiltError as exc:
            raise exc.with_metadata(url=versions_url)

        return self._build(spec, prov, data, version)

    def _build(self, spec: BinarySpec, prov: Provider, data: ProviderData, version: str) -> BinaryData:
        ctx = {"Provider": data.as_context(), "Version": version}
        download_url = render(prov.spec.download_url, ctx)
        extract_path = render(spec.extract_path, ctx) if spec.extract_path else ""

        return BinaryData(
            name=display_name(spec, download_url),
            provider=prov.spec.name,
            version=version,
            download_url=download_url,
            extract_path=extract_path,
        )

    def find_locked(self, spec: BinarySpec, lock: Lock) -> Optional[BinaryData]:
        """Return the lock entry recorded for ``spec``, if any.

        Binaries with a configured name are looked up by it. Unnamed ones are
        recorded under a name derived from their rendered templates, so each
        entry of the same provider is re-rendered with its locked version and
        compared. No request is made.
        """
        prov, data = self.registry.resolve(spec.provider)
        name = spec.lock_name()
        if name:
            found = lock.select([name])
            return found[0] if found else None
        for entry in lock.binaries:
            if entry.provider == prov.spec.name and self._build(spec, prov, data, entry.version) == entry:
                return entry
        return None

    def resolve(self, specs: Sequence[BinarySpec], token: Optional[CancellationToken] = None) -> Lock:
        """Resolve all ``specs`` concurrently into a lock.

        Every submitted job is waited for, even after a failure. The first
        failure observed is raised with the binary name attached and no lock
        is produced.

        Raises:
            Cancelled: The token was cancelled or its deadline passed.
            PrebuiltError: The first resolution failure.
        """
        token = ensure_token(token)
        resolved: List[BinaryData] = []
        first_error: Optional[BaseException] = None

        with Timer() as t:
            with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="resolve") as executor:
                futures: Dict[Future, BinarySpec] = {
                    executor.submit(self.resolve_one, spec, token): spec for spec in specs
                }
                for future in as_completed(futures):
                    spec = futures[future]
                    try:
                        data = _result(future)
                    except PrebuiltError as exc:
                        exc.with_metadata(name=spec.name)
                        if first_error is None:
                            first_error = exc
                        continue
                    resolved.append(data)
                    logger.debug(
                        "Resolved binary",
                        extra=extra_context(
                            event="resolved",
                            component="resolver",
                            name=data.name,
                            version=data.version,
                        ),
                    )

        if first_error is not None:
            raise first_error

        lock = Lock.create(resolved)
        logger.info(
            "Resolved %d binaries",
            len(lock.binaries),
            extra=extra_context(
                event="resolve_complete",
                component="resolver",
                count=len(lock.binaries),
                duration_ms=t.duration_ms(),
            ),
        )
        return lock
