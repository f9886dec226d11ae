"""Registry providers for auditing and publishing packages."""

from __future__ import annotations

from pubaudit.providers.base import (
    Artifact,
    AuditResult,
    BaseProvider,
    PublishOptions,
    PublishResult,
)
from pubaudit.providers.ghcr import GhcrProvider
from pubaudit.providers.github import GitHubContextProvider
from pubaudit.providers.npm import NpmProvider
from pubaudit.providers.nuget import NuGetProvider
from pubaudit.providers.pypi import PyPIProvider
from pubaudit.providers.registry import (
    ProviderRegistry,
    context_provider,
    discover_providers,
    get_global_registry,
    match_providers,
)

__all__ = [
    # Base types
    "Artifact",
    "AuditResult",
    "BaseProvider",
    "PublishOptions",
    "PublishResult",
    # Registry
    "ProviderRegistry",
    "context_provider",
    "discover_providers",
    "get_global_registry",
    "match_providers",
    # Providers
    "GhcrProvider",
    "GitHubContextProvider",
    "NpmProvider",
    "NuGetProvider",
    "PyPIProvider",
]
