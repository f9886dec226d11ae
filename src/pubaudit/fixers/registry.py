"""Fixer registry for mapping finding codes to fixers.

Fixers are registered from an explicit list; helper modules such as
fixers.utils are never registered.
"""

from __future__ import annotations

import inspect

from pubaudit.config import ConfigError
from pubaudit.fixers.base import DEFAULT_SITE_URL, BaseFixer
from pubaudit.github import GitHubClient
from pubaudit.models import Finding


class FixerRegistry:
    """Registry of fixer classes keyed by fixer code.

    Example:
        >>> registry = FixerRegistry()
        >>> registry.register(NpmHomepageFixer)
        >>> fixers = registry.create(site_url="https://example.com")
        >>> match_fixers(fixers, finding)
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._fixers: dict[str, type[BaseFixer]] = {}

    def register(self, fixer_class: type[BaseFixer]) -> None:
        """Register a fixer class by its code.

        Args:
            fixer_class: A concrete BaseFixer subclass.

        Raises:
            ConfigError: If the fixer is abstract, has no code or target,
                or a fixer with the same code is already registered.
        """
        label = getattr(fixer_class, "__name__", repr(fixer_class))
        if not inspect.isclass(fixer_class) or not issubclass(fixer_class, BaseFixer):
            raise ConfigError(f"{label}: fixer must extend BaseFixer")
        if inspect.isabstract(fixer_class):
            missing = ", ".join(sorted(fixer_class.__abstractmethods__))
            raise ConfigError(f"{label}: must implement {missing}")

        code = fixer_class.code
        if not code:
            raise ConfigError(f"Fixer class {label} has no code defined")
        if not fixer_class.target:
            raise ConfigError(f"Fixer class {label} has no target defined")
        if code in self._fixers:
            raise ConfigError(
                f"Fixer '{code}' already registered: {self._fixers[code].__name__}"
            )
        self._fixers[code] = fixer_class

    def has_fixer(self, code: str) -> bool:
        """Check if a fixer is registered for the given code."""
        return code in self._fixers

    def list_codes(self) -> list[str]:
        """List all registered fixer codes.

        Returns:
            Sorted list of registered fixer codes.
        """
        return sorted(self._fixers)

    def create(
        self,
        *,
        github: GitHubClient | None = None,
        site_url: str = DEFAULT_SITE_URL,
    ) -> list[BaseFixer]:
        """Instantiate every registered fixer in registration order."""
        client = github or GitHubClient()
        return [cls(github=client, site_url=site_url) for cls in self._fixers.values()]


def match_fixers(fixers: list[BaseFixer], finding: Finding) -> list[BaseFixer]:
    """Return the fixers that repair the finding's code, in order."""
    return [f for f in fixers if f.matches_code(finding)]


def discover_fixers(
    *,
    github: GitHubClient | None = None,
    site_url: str = DEFAULT_SITE_URL,
) -> list[BaseFixer]:
    """Instantiate the built-in fixers."""
    return get_global_registry().create(github=github, site_url=site_url)


# Global registry instance
_global_registry: FixerRegistry | None = None


def get_global_registry() -> FixerRegistry:
    """Get the global fixer registry.

    Returns a singleton registry instance that is populated with all
    built-in fixers.

    Returns:
        The global FixerRegistry instance.
    """
    global _global_registry
    if _global_registry is None:
        _global_registry = _create_default_registry()
    return _global_registry


def _create_default_registry() -> FixerRegistry:
    """Create and populate the default registry with built-in fixers.

    Returns:
        A FixerRegistry populated with all built-in fixers.
    """
    # Import here to avoid circular imports
    from pubaudit.fixers.csproj_fixer import NuGetCsprojFixer
    from pubaudit.fixers.github_about_fixer import GitHubAboutFixer
    from pubaudit.fixers.npm_fixer import (
        NpmBugsFixer,
        NpmHomepageFixer,
        NpmKeywordsFixer,
        NpmRepositoryFixer,
    )
    from pubaudit.fixers.readme_fixer import ReadmeHeaderFixer

    registry = FixerRegistry()
    registry.register(GitHubAboutFixer)
    registry.register(NpmBugsFixer)
    registry.register(NpmHomepageFixer)
    registry.register(NpmKeywordsFixer)
    registry.register(NpmRepositoryFixer)
    registry.register(NuGetCsprojFixer)
    registry.register(ReadmeHeaderFixer)
    return registry
