"""Base provider classes and result models.

A provider knows one registry (or GitHub itself): whether a manifest entry
belongs to it, how to classify drift for it, and optionally how to publish.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

from pubaudit.context import SharedContext
from pubaudit.github import GitHubClient
from pubaudit.models import UNKNOWN_VERSION, Finding, ManifestEntry


@dataclass
class AuditResult:
    """Outcome of auditing one entry with one provider.

    Attributes:
        version: Published version, or UNKNOWN_VERSION if it couldn't be resolved.
        findings: Classified drift, without pkg/ecosystem annotations.
    """

    version: str = UNKNOWN_VERSION
    findings: list[Finding] = field(default_factory=list)


@dataclass(frozen=True)
class Artifact:
    """A published file with its integrity data."""

    name: str
    sha256: str
    size: int
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "sha256": self.sha256, "size": self.size, "url": self.url}


@dataclass
class PublishResult:
    """Outcome of a publish attempt.

    Attributes:
        success: Whether the package was packed and pushed (or dry-run packed).
        version: Version that was published, empty if unknown.
        artifacts: Packed files with hashes.
        error: Failure description when success is False.
    """

    success: bool
    version: str = ""
    artifacts: list[Artifact] = field(default_factory=list)
    error: str | None = None


@dataclass(frozen=True)
class PublishOptions:
    """Options for a publish run.

    Attributes:
        cwd: Checkout of the package being published.
        dry_run: Pack and hash without pushing or requiring credentials.
    """

    cwd: Path
    dry_run: bool = False


class BaseProvider(ABC):
    """Abstract base class for registry providers.

    Subclasses must set `name` and implement `identify` and `audit`.
    `plan`, `publish` and `build_receipt` are optional.

    Attributes:
        github: Client used for tags, releases and GitHub-hosted registries.
        timeout: Per-call timeout in seconds for registry lookups.
    """

    name: ClassVar[str] = ""
    credential_env: ClassVar[str | None] = None

    def __init__(self, github: GitHubClient | None = None, timeout: float = 15) -> None:
        self.github = github or GitHubClient(timeout=timeout)
        self.timeout = timeout

    @abstractmethod
    def identify(self, entry: ManifestEntry) -> bool:
        """Return True if this provider handles the entry."""

    @abstractmethod
    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        """Classify drift for one entry.

        Args:
            entry: Manifest entry to audit.
            ctx: Shared tags/releases, already populated for entry.repo.

        Returns:
            AuditResult with the resolved version and findings.
        """

    def plan(self, entry: ManifestEntry) -> list[str]:
        """Describe the commands a publish would run."""
        return []

    def publish(self, entry: ManifestEntry, opts: PublishOptions) -> PublishResult:
        return PublishResult(success=False, error=f"{self.name}: publish not supported")

    def build_receipt(
        self,
        entry: ManifestEntry,
        result: PublishResult,
        commit_sha: str,
    ) -> dict[str, Any]:
        """Turn a successful publish into a publish receipt."""
        raise NotImplementedError(f"{self.name} does not build publish receipts")

    @property
    def supports_publish(self) -> bool:
        return type(self).publish is not BaseProvider.publish

    def missing_credential(self) -> str | None:
        """Name of the required environment variable if it is unset."""
        if self.credential_env and not os.environ.get(self.credential_env):
            return self.credential_env
        return None


def tag_findings(
    entry: ManifestEntry,
    version: str,
    ctx: SharedContext,
    subject: str | None = None,
    *,
    check_release: bool = True,
) -> list[Finding]:
    """Classify a published version against git tags and releases.

    A published version without a `v<version>` tag is RED. A tag without a
    GitHub Release is YELLOW, and only reported for front-door packages.

    Args:
        entry: Manifest entry being audited.
        version: Published version.
        ctx: Shared context holding tags and releases for entry.repo.
        subject: Message prefix, defaults to "<name>@<version>".
        check_release: Also report tagged-not-released.

    Returns:
        Zero, one or two findings.
    """
    findings: list[Finding] = []
    tag = f"v{version}"
    tags = ctx.tags_for(entry.repo)
    subject = subject or f"{entry.name}@{version}"

    if tag not in tags:
        findings.append(
            Finding("RED", "published-not-tagged", f"{subject}: no git tag {tag}")
        )
    elif check_release and entry.is_front_door and tag not in ctx.releases_for(entry.repo):
        findings.append(
            Finding("YELLOW", "tagged-not-released", f"{entry.name} tag {tag} has no GitHub Release")
        )
    return findings
