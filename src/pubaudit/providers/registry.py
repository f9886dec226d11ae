"""Provider registry.

Providers are registered from an explicit list. Registration validates
each class up front so a broken provider fails the run before any
registry is contacted.
"""

from __future__ import annotations

import inspect

from pubaudit.config import ConfigError
from pubaudit.github import GitHubClient
from pubaudit.models import ManifestEntry
from pubaudit.providers.base import BaseProvider

CONTEXT_PROVIDER = "github"

_REQUIRED_METHODS = ("identify", "audit")


class ProviderRegistry:
    """Registry of provider classes keyed by name, in registration order.

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.register(NpmProvider)
        >>> providers = registry.create(enabled=["npm"])
    """

    def __init__(self) -> None:
        self._providers: dict[str, type[BaseProvider]] = {}

    def register(self, provider_class: type[BaseProvider]) -> None:
        """Register a provider class.

        Args:
            provider_class: A BaseProvider subclass.

        Raises:
            ConfigError: If the class is not a concrete BaseProvider with
                its own identify/audit, has no name, or reuses a name.
        """
        label = getattr(provider_class, "__name__", repr(provider_class))
        if not inspect.isclass(provider_class) or not issubclass(provider_class, BaseProvider):
            raise ConfigError(f"{label}: provider must extend BaseProvider")
        if inspect.isabstract(provider_class):
            missing = ", ".join(sorted(provider_class.__abstractmethods__))
            raise ConfigError(f"{label}: must implement {missing}")
        for method in _REQUIRED_METHODS:
            if getattr(provider_class, method) is getattr(BaseProvider, method):
                raise ConfigError(f"{label}: must override {method}()")

        name = provider_class.name
        if not name:
            raise ConfigError(f"{label}: provider has no name defined")
        if name in self._providers:
            raise ConfigError(
                f"Provider '{name}' already registered: {self._providers[name].__name__}"
            )
        self._providers[name] = provider_class

    def has_provider(self, name: str) -> bool:
        return name in self._providers

    def list_names(self) -> list[str]:
        """Registered provider names in registration order."""
        return list(self._providers)

    def create(
        self,
        enabled: list[str] | None = None,
        *,
        github: GitHubClient | None = None,
        timeout: float = 15,
    ) -> list[BaseProvider]:
        """Instantiate providers, optionally filtered by name.

        The GitHub context provider is kept whenever a filter is given,
        since ecosystem classification reads the tags it loads.

        Args:
            enabled: Provider names to keep; None or empty keeps all.
            github: Shared GitHub client handed to every provider.
            timeout: Per-call timeout in seconds.

        Returns:
            Provider instances in registration order.

        Raises:
            ConfigError: If enabled names an unregistered provider.
        """
        if enabled:
            unknown = sorted(set(enabled) - set(self._providers))
            if unknown:
                raise ConfigError(f"Unknown provider(s) in enabled_providers: {', '.join(unknown)}")
            keep = set(enabled) | {CONTEXT_PROVIDER}
        else:
            keep = set(self._providers)

        client = github or GitHubClient(timeout=timeout)
        return [
            cls(github=client, timeout=timeout)
            for name, cls in self._providers.items()
            if name in keep
        ]


def match_providers(providers: list[BaseProvider], entry: ManifestEntry) -> list[BaseProvider]:
    """Return the providers whose identify() claims the entry, in order."""
    return [p for p in providers if p.identify(entry)]


def context_provider(providers: list[BaseProvider]) -> BaseProvider | None:
    """Return the GitHub context provider if it is active."""
    return next((p for p in providers if p.name == CONTEXT_PROVIDER), None)


def discover_providers(
    enabled: list[str] | None = None,
    *,
    github: GitHubClient | None = None,
    timeout: float = 15,
) -> list[BaseProvider]:
    """Instantiate the built-in providers.

    Args:
        enabled: Provider names to keep; None or empty keeps all.
        github: Shared GitHub client.
        timeout: Per-call timeout in seconds.

    Returns:
        Provider instances in registration order.
    """
    return get_global_registry().create(enabled, github=github, timeout=timeout)


# Global registry instance
_global_registry: ProviderRegistry | None = None


def get_global_registry() -> ProviderRegistry:
    """Get the global provider registry, creating it on first use."""
    global _global_registry
    if _global_registry is None:
        _global_registry = _create_default_registry()
    return _global_registry


def _create_default_registry() -> ProviderRegistry:
    """Create and populate the default registry with built-in providers.

    The context provider is registered first so it runs before the
    ecosystem providers.
    """
    # Import here to avoid circular imports
    from pubaudit.providers.ghcr import GhcrProvider
    from pubaudit.providers.github import GitHubContextProvider
    from pubaudit.providers.npm import NpmProvider
    from pubaudit.providers.nuget import NuGetProvider
    from pubaudit.providers.pypi import PyPIProvider

    registry = ProviderRegistry()
    registry.register(GitHubContextProvider)
    registry.register(NpmProvider)
    registry.register(NuGetProvider)
    registry.register(PyPIProvider)
    registry.register(GhcrProvider)
    return registry
