"""Fixer that points a repository's GitHub "About" homepage at its catalog page.

Repository settings have no on-disk representation, so this fixer only
works remotely.
"""

from __future__ import annotations

from urllib.parse import urlparse

from pubaudit.context import SharedContext
from pubaudit.fixers.base import ApplyResult, BaseFixer, Diagnosis, FixOptions
from pubaudit.github import GitHubError
from pubaudit.models import ManifestEntry

REMOTE_ONLY_MESSAGE = "GitHub About can only be fixed remotely (use --remote)"


class GitHubAboutFixer(BaseFixer):
    code = "github-about"
    target = "github"
    finding_codes = ("missing-homepage",)
    description = "Set GitHub repo homepage"

    def tool_url(self, entry: ManifestEntry) -> str:
        return f"{self.site_url}/tools/{entry.repo_name}/"

    def _needs_homepage(self, homepage: str | None) -> bool:
        host = urlparse(self.site_url).netloc or self.site_url
        return not homepage or host not in homepage

    def diagnose(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> Diagnosis:
        meta = self.github.get_repo(entry.repo)
        if meta is None:
            return Diagnosis(needed=False)
        homepage = meta.get("homepage") or None
        if not self._needs_homepage(homepage):
            return Diagnosis(needed=False)
        return Diagnosis(
            needed=True,
            before=f"homepage: {homepage or '(empty)'}",
            after=f"homepage: {self.tool_url(entry)}",
        )

    def apply_local(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        return ApplyResult(changed=False, message=f"{self.code}: {REMOTE_ONLY_MESSAGE}")

    def apply_remote(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        meta = self.github.get_repo(entry.repo)
        if meta is None:
            return ApplyResult(changed=False, message=f"Cannot read repository {entry.repo}")

        before = meta.get("homepage") or None
        if not self._needs_homepage(before):
            return ApplyResult(changed=False, before=before, after=before)

        after = self.tool_url(entry)
        try:
            self.github.update_repo(entry.repo, {"homepage": after})
        except GitHubError as e:
            return ApplyResult(changed=False, before=before, after=after, error=str(e))
        return ApplyResult(changed=True, before=before, after=after)
