"""Provider registry: built-in and user providers keyed by name.

The registry is built once per run and then only read, so it (and the
sessions it owns) can be shared by every resolution and install worker.
"""
from __future__ import annotations

import logging
import os
import re
import threading
from typing import Dict, Iterable, Optional, Tuple

import requests

from common.http_client import new_session
from common.logging_utils import extra_context
from errors import (
    DuplicateProvider,
    MissingProviderName,
    MissingQueryParameter,
    UnknownProvider,
)
from provider.builtin import BUILTIN_PROVIDERS
from provider.dsn import parse_dsn, route_github_release_url
from provider.models import Provider, ProviderData, ProviderRef, ProviderSpec

logger = logging.getLogger(__name__)

_ENV_REF_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


def resolve_auth_token(value: str) -> Optional[str]:
    """Resolve a provider's auth token setting.

    ``${NAME}`` is looked up in the environment (unset or empty means no
    token); any other non-empty value is used literally.
    """
    if not value:
        return None
    m = _ENV_REF_RE.match(value.strip())
    if m:
        return os.environ.get(m.group(1)) or None
    return value


def new_provider(spec: ProviderSpec) -> Provider:
    """Build a runtime provider with its own session."""
    token = resolve_auth_token(spec.auth_token)
    return Provider(spec=spec, session=new_session(token))


class ProviderRegistry:
    """Named providers plus a shared default session for ad-hoc downloads."""

    def __init__(self) -> None:
        self._providers: Dict[str, Provider] = {}
        self._adhoc: Dict[ProviderSpec, Provider] = {}
        self._default_session: Optional[requests.Session] = None
        self._lock = threading.Lock()

    def init(self, specs: Iterable[ProviderSpec] = ()) -> "ProviderRegistry":
        """Register the built-in providers, then ``specs``, in order.

        Raises:
            MissingProviderName: A spec has an empty name.
            DuplicateProvider: A name is registered twice.
        """
        self.close()
        self._providers = {}
        for spec in (*BUILTIN_PROVIDERS, *specs):
            self._register(spec)
        logger.debug(
            "Providers initialized",
            extra=extra_context(
                event="providers_init",
                component="registry",
                providers=",".join(self.names()),
            ),
        )
        return self

    def _register(self, spec: ProviderSpec) -> None:
        if not spec.name:
            raise MissingProviderName("init provider: missing provider name")
        if spec.name in self._providers:
            raise DuplicateProvider(
                f"init provider: provider already initialized: {spec.name}", name=spec.name
            )
        self._providers[spec.name] = new_provider(spec)

    def names(self) -> Tuple[str, ...]:
        return tuple(self._providers)

    def resolve(self, ref: ProviderRef) -> Tuple[Provider, ProviderData]:
        """Resolve a binary's provider reference.

        Inline specs become ad-hoc providers that are not registered; DSN
        strings are parsed and looked up by scheme.

        Raises:
            InvalidSpecifier: Malformed DSN.
            UnknownProvider: The DSN scheme is not registered.
            MissingQueryParameter: A query parameter the provider requires is absent.
        """
        if isinstance(ref, ProviderSpec):
            with self._lock:
                prov = self._adhoc.get(ref)
                if prov is None:
                    prov = self._adhoc[ref] = new_provider(ref)
            return prov, ProviderData(scheme=ref.name)

        data = route_github_release_url(parse_dsn(ref))
        prov = self._providers.get(data.scheme)
        if prov is None:
            raise UnknownProvider(f"provider unknown: {data.scheme}", provider=data.scheme)
        for param in prov.spec.required_params:
            if not data.query.get(param):
                raise MissingQueryParameter(
                    f"missing query parameter: {param}", provider=data.scheme, parameter=param
                )
        return prov, data

    def session(self, name: str) -> requests.Session:
        """Session of the named provider, or the shared unauthenticated one.

        Ad-hoc providers created for inline specs are matched by name too.
        """
        prov = self._providers.get(name)
        if prov is not None:
            return prov.session
        with self._lock:
            for adhoc in self._adhoc.values():
                if adhoc.spec.name == name:
                    return adhoc.session
            if self._default_session is None:
                self._default_session = new_session()
            return self._default_session

    def close(self) -> None:
        for prov in (*self._providers.values(), *self._adhoc.values()):
            prov.session.close()
        self._adhoc = {}
        if self._default_session is not None:
            self._default_session.close()
            self._default_session = None
