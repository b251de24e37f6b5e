"""Provider abstraction: DSN parsing, built-in providers and the registry."""

from .models import Provider, ProviderData, ProviderRef, ProviderSpec
from .registry import ProviderRegistry

__all__ = ["Provider", "ProviderData", "ProviderRef", "ProviderSpec", "ProviderRegistry"]
