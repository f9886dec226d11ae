"""Base classes for metadata fixers.

A fixer repairs one kind of finding. It first diagnoses (read-only, safe to
repeat) and only then applies the change, either to a local checkout or
remotely through the GitHub API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, ClassVar

from pubaudit.context import SharedContext
from pubaudit.github import GitHubClient
from pubaudit.models import Finding, ManifestEntry

DEFAULT_SITE_URL = "https://mcptoolshop.com"


@dataclass(frozen=True)
class FixOptions:
    """Options for diagnosing and applying a fix.

    Attributes:
        cwd: Local checkout of the repository being fixed.
        remote: Read and write through the GitHub API instead of cwd.
        dry_run: Diagnose only; never write.
    """

    cwd: Path
    remote: bool = False
    dry_run: bool = False


@dataclass
class Diagnosis:
    """Read-only assessment of whether a fix is needed.

    Attributes:
        needed: True if applying would change something.
        before: Current value, when known.
        after: Value the fix would write.
        file: File the fix would touch, relative to the repository root.
    """

    needed: bool
    before: Any = None
    after: Any = None
    file: str | None = None


@dataclass
class ApplyResult:
    """Outcome of applying a fix.

    Attributes:
        changed: Whether anything was written.
        before: Value before the change.
        after: Value after the change.
        file: File that was touched.
        error: Failure description (e.g. a rejected conditional update).
        message: Informational note for the user when nothing was changed.
    """

    changed: bool
    before: Any = None
    after: Any = None
    file: str | None = None
    error: str | None = None
    message: str | None = None


class BaseFixer(ABC):
    """Abstract base class for all fixers.

    Subclasses set `code` (unique), `target` (npm, nuget, readme, github),
    `finding_codes` (the finding codes they repair) and `description`.

    Attributes:
        github: Client used by remote diagnose/apply.
        site_url: Catalog site linked from READMEs and repo homepages.
    """

    code: ClassVar[str] = ""
    target: ClassVar[str] = ""
    finding_codes: ClassVar[tuple[str, ...]] = ()
    description: ClassVar[str] = ""

    def __init__(
        self,
        github: GitHubClient | None = None,
        site_url: str = DEFAULT_SITE_URL,
    ) -> None:
        self.github = github or GitHubClient()
        self.site_url = site_url.rstrip("/")

    def matches_code(self, finding: Finding) -> bool:
        """Return True if this fixer repairs the finding's code."""
        return finding.code in self.finding_codes

    def describe(self) -> str:
        return self.description or self.code

    @abstractmethod
    def diagnose(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> Diagnosis:
        """Inspect current state without changing anything.

        Calling this repeatedly against unchanged state returns the same result.
        """

    @abstractmethod
    def apply_local(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        """Edit files in opts.cwd."""

    @abstractmethod
    def apply_remote(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        """Apply the change through the GitHub API."""
