"""Error taxonomy for prebuilt.

Every error raised by the resolution and install code derives from
:class:`PrebuiltError`, which carries a dict of key-value diagnostic metadata
(failing URL, offending template, binary name, ...). Metadata is added as an
error propagates with :meth:`PrebuiltError.with_metadata`, and collected along
the whole exception chain with :func:`get_metadata`, so wrapping an error with
``raise ... from exc`` never loses what the inner layers recorded.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class PrebuiltError(Exception):
    """Base class for all prebuilt errors."""

    def __init__(self, message: str, **metadata: Any):
        super().__init__(message)
        self.message = message
        self.metadata: Dict[str, Any] = dict(metadata)

    def with_metadata(self, **metadata: Any) -> "PrebuiltError":
        """Attach metadata, keeping values recorded closer to the cause."""
        for key, value in metadata.items():
            self.metadata.setdefault(key, value)
        return self

    def __str__(self) -> str:
        return self.message


class ConfigError(PrebuiltError):
    """Raised when the configuration document cannot be decoded."""


class InvalidSpecifier(PrebuiltError):
    """Raised when a provider DSN is not a well-formed URI."""


class MissingProviderName(PrebuiltError):
    """Raised when a provider spec has an empty name."""


class DuplicateProvider(PrebuiltError):
    """Raised when two providers share a name."""


class UnknownProvider(PrebuiltError):
    """Raised when a DSN references an unregistered scheme."""


class MissingQueryParameter(PrebuiltError):
    """Raised when a DSN lacks a query parameter its provider requires."""


class HTTPRequestError(PrebuiltError):
    """Raised when an HTTP request fails at the transport level."""


class ProviderHTTPError(PrebuiltError):
    """Raised on a non-success HTTP status from a listing or download."""

    def __init__(self, status: int, reason: str = "", body: str = "", **metadata: Any):
        message = f"{status} - {reason}" if reason else str(status)
        super().__init__(message, status=status, body=body, **metadata)
        self.status = status
        self.body = body


class ProviderResponseError(PrebuiltError):
    """Raised when a versions listing is not valid JSON."""


class InvalidVersionPath(PrebuiltError):
    """Raised when a versions JSONPath expression cannot be parsed."""


class InvalidConstraint(PrebuiltError):
    """Raised when a version constraint cannot be parsed."""


class TemplateError(PrebuiltError):
    """Raised when a template fails to parse or execute."""

    def __init__(self, message: str, template: str = "", **metadata: Any):
        super().__init__(message, template=template, **metadata)
        self.template = template


class NoMatchingVersion(PrebuiltError):
    """Raised when no candidate version satisfies a constraint."""


class NameNotFound(PrebuiltError):
    """Raised when a requested binary name is unknown."""


class LockFileError(PrebuiltError):
    """Raised when a lock file cannot be read or written."""


class LockDigestMismatch(LockFileError):
    """Raised when a lock file's digest does not match its binaries."""


class DownloadError(PrebuiltError):
    """Raised when an asset cannot be downloaded."""


class ExtractError(PrebuiltError):
    """Raised when a file cannot be extracted from an archive."""


class InstallError(PrebuiltError):
    """Raised when one or more binaries failed to install."""

    def __init__(self, failed: Iterable[str], **metadata: Any):
        self.failed: List[str] = list(failed)
        super().__init__(f"installation failed: {self.failed}", **metadata)


class Cancelled(PrebuiltError):
    """Raised when the run was cancelled or its deadline passed."""


def get_metadata(exc: Optional[BaseException]) -> Dict[str, Any]:
    """Collect metadata along an exception chain.

    Inner (causing) errors take precedence for duplicate keys, since they
    recorded the most specific value.
    """
    chain: List[BaseException] = []
    seen = set()
    while exc is not None and id(exc) not in seen:
        seen.add(id(exc))
        chain.append(exc)
        exc = exc.__cause__ or exc.__context__
    merged: Dict[str, Any] = {}
    for err in chain:
        for key, value in getattr(err, "metadata", {}).items():
            merged[key] = value
    return merged
