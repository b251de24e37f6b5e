"""Configuration file loading.

The configuration is a YAML document with three sections::

    global:
      installDir: ~/.local/bin
    binaries:
      - name: jq
        version: latest
        provider: github://jqlang/jq?asset=jq-linux-amd64
    providers:
      - name: internal
        versionsUrl: https://example.org/api/releases
        versionsJsonPath: $[*].version
        downloadUrl: https://example.org/dl/{{ .Version }}
        authToken: ${INTERNAL_TOKEN}

``version`` and ``provider`` take either a scalar or a mapping; the
:class:`ConfigDecoder` handed to :func:`load_config` decides between the two.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import IO, Any, Mapping, Optional, Tuple, Union

import yaml

from constants import Constants
from errors import ConfigError
from provider.models import ProviderRef, ProviderSpec
from versioning.models import VersionConstraint, VersionRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BinarySpec:
    """A binary as configured by the user."""
    name: str = ""
    bin_name: str = ""  # installed file name, defaults to name
    version: VersionRef = ""
    provider: ProviderRef = ""
    extract_path: str = ""  # template of the member to extract from an archive

    def lock_name(self) -> str:
        """Configured installed name, empty when the name is derived from templates."""
        return self.bin_name or self.name


@dataclass(frozen=True)
class GlobalConfig:
    install_dir: str = Constants.DEFAULT_INSTALL_DIR


@dataclass(frozen=True)
class Config:
    global_: GlobalConfig = field(default_factory=GlobalConfig)
    binaries: Tuple[BinarySpec, ...] = ()
    providers: Tuple[ProviderSpec, ...] = ()

    def find(self, name: str) -> Optional[BinarySpec]:
        """Return the binary configured under ``name``, if any."""
        for spec in self.binaries:
            if spec.name == name:
                return spec
        return None


def _str_field(data: Mapping[str, Any], key: str, where: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ConfigError(f"{where}: {key} must be a string, got {type(value).__name__}", key=key)
    return str(value)


def _mapping(value: Any, where: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"{where}: expected a mapping, got {type(value).__name__}")
    return value


class ConfigDecoder:
    """Decodes the raw YAML document into typed configuration.

    Union-typed settings are decoded scalar first with a mapping fallback;
    any other YAML type is rejected. Subclass and override a ``decode_*``
    method to change how one setting is read.
    """

    def decode_version(self, value: Any) -> VersionRef:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        # unquoted numbers like `1.7` are read by YAML as floats
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, Mapping):
            return VersionConstraint(
                constraints=_str_field(value, "constraints", "version"),
                prefix=_str_field(value, "prefix", "version"),
            )
        raise ConfigError(f"version: invalid type: {type(value).__name__}")

    def decode_provider(self, value: Any) -> ProviderRef:
        if isinstance(value, str):
            return value
        if isinstance(value, Mapping):
            return self.decode_provider_spec(value)
        raise ConfigError(f"provider: invalid type: {type(value).__name__}")

    def decode_provider_spec(self, data: Mapping[str, Any]) -> ProviderSpec:
        return ProviderSpec(
            name=_str_field(data, "name", "provider"),
            versions_url=_str_field(data, "versionsUrl", "provider"),
            versions_path=_str_field(data, "versionsJsonPath", "provider"),
            download_url=_str_field(data, "downloadUrl", "provider"),
            auth_token=_str_field(data, "authToken", "provider"),
        )

    def decode_binary(self, data: Any) -> BinarySpec:
        data = _mapping(data, "binary")
        name = _str_field(data, "name", "binary")
        try:
            return BinarySpec(
                name=name,
                bin_name=_str_field(data, "binName", "binary"),
                version=self.decode_version(data.get("version")),
                provider=self.decode_provider(data.get("provider")),
                extract_path=_str_field(data, "extractPath", "binary"),
            )
        except ConfigError as exc:
            raise exc.with_metadata(name=name)

    def decode(self, doc: Any) -> Config:
        doc = _mapping(doc, "config")
        glob = _mapping(doc.get("global"), "global")
        install_dir = _str_field(glob, "installDir", "global") or Constants.DEFAULT_INSTALL_DIR

        binaries = doc.get("binaries") or []
        providers = doc.get("providers") or []
        if not isinstance(binaries, list):
            raise ConfigError("binaries: expected a list")
        if not isinstance(providers, list):
            raise ConfigError("providers: expected a list")

        return Config(
            global_=GlobalConfig(install_dir=install_dir),
            binaries=tuple(self.decode_binary(b) for b in binaries),
            providers=tuple(self.decode_provider_spec(_mapping(p, "provider")) for p in providers),
        )


def load_config(source: Union[str, IO[str], None], decoder: Optional[ConfigDecoder] = None) -> Config:
    """Decode configuration from YAML text or a text stream.

    An empty document yields the default configuration.

    Raises:
        ConfigError: The document is not valid YAML or has invalid settings.
    """
    if source is None:
        return Config()
    decoder = decoder or ConfigDecoder()
    try:
        doc = yaml.safe_load(source)
    except yaml.YAMLError as exc:
        raise ConfigError(f"parse configuration: {exc}") from exc
    if doc is None:
        return Config()
    return decoder.decode(doc)


def load_config_file(path: str, decoder: Optional[ConfigDecoder] = None) -> Config:
    """Read and decode the configuration file at ``path``.

    Raises:
        ConfigError: The file cannot be read or decoded.
    """
    try:
        with open(path, "r", encoding="utf-8") as fh:
            cfg = load_config(fh, decoder)
    except OSError as exc:
        raise ConfigError(f"load configuration: {exc}", path=path) from exc
    except ConfigError as exc:
        raise exc.with_metadata(path=path)
    logger.debug(
        "Loaded configuration from %s: %d binaries, %d providers",
        path,
        len(cfg.binaries),
        len(cfg.providers),
    )
    return cfg


def expand_path(path: str) -> str:
    """Expand a leading ``~`` and ``$VAR``/``${VAR}`` references."""
    if path.startswith("~"):
        path = os.path.join(os.path.expanduser("~"), path[1:].lstrip("/\\"))
    return os.path.expandvars(path)

