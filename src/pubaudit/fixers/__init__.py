"""Fixer framework for repairing publishing metadata.

Provides fixers that resolve audit findings either in a local checkout
or remotely through the GitHub API.
"""

from __future__ import annotations

from pubaudit.fixers.base import ApplyResult, BaseFixer, Diagnosis, FixOptions
from pubaudit.fixers.csproj_fixer import NuGetCsprojFixer
from pubaudit.fixers.github_about_fixer import GitHubAboutFixer
from pubaudit.fixers.npm_fixer import (
    NpmBugsFixer,
    NpmHomepageFixer,
    NpmKeywordsFixer,
    NpmRepositoryFixer,
)
from pubaudit.fixers.readme_fixer import ReadmeHeaderFixer
from pubaudit.fixers.registry import (
    FixerRegistry,
    discover_fixers,
    get_global_registry,
    match_fixers,
)

__all__ = [
    # Base types
    "ApplyResult",
    "BaseFixer",
    "Diagnosis",
    "FixOptions",
    # Registry
    "FixerRegistry",
    "discover_fixers",
    "get_global_registry",
    "match_fixers",
    # Fixers
    "GitHubAboutFixer",
    "NpmBugsFixer",
    "NpmHomepageFixer",
    "NpmKeywordsFixer",
    "NpmRepositoryFixer",
    "NuGetCsprojFixer",
    "ReadmeHeaderFixer",
]
