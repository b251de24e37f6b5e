"""Data models for providers and provider references."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

import requests


@dataclass(frozen=True)
class ProviderSpec:
    """Template bundle describing how to list versions and build download URLs."""
    name: str = ""
    versions_url: str = ""  # template, empty means no version discovery
    versions_path: str = ""  # JSONPath over the decoded listing
    download_url: str = ""  # template
    auth_token: str = ""  # literal token or ${ENV_VAR} reference
    required_params: Tuple[str, ...] = ()  # DSN query parameters that must be present


@dataclass(frozen=True)
class ProviderData:
    """Decoded DSN, exposed to templates as ``.Provider``."""
    scheme: str = ""
    host: str = ""
    path: str = ""
    query: Dict[str, str] = field(default_factory=dict)

    def as_context(self) -> Dict[str, Any]:
        """Template view using the field names of the template dialect."""
        return {
            "Scheme": self.scheme,
            "Host": self.host,
            "Path": self.path,
            "Query": dict(self.query),
        }


@dataclass(frozen=True)
class Provider:
    """Runtime provider: a spec plus the session used to reach it."""
    spec: ProviderSpec
    session: requests.Session = field(compare=False, repr=False)


# A binary's provider is either a DSN string or an inline spec literal.
ProviderRef = Union[str, ProviderSpec]
