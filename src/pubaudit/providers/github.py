"""GitHub context provider.

Produces no findings of its own. It loads tags and releases for each
repository into the shared context so ecosystem providers can compare
registry state with git state.
"""

from __future__ import annotations

import logging

from pubaudit.context import SharedContext
from pubaudit.models import ManifestEntry
from pubaudit.providers.base import AuditResult, BaseProvider

logger = logging.getLogger(__name__)


class GitHubContextProvider(BaseProvider):
    """Loads tags and releases once per repository."""

    name = "github"

    def identify(self, entry: ManifestEntry) -> bool:
        return bool(entry.repo)

    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        if ctx.ensure(entry.repo, self.github.list_tags, self.github.list_release_tags):
            logger.debug(
                "Loaded %d tags and %d releases for %s",
                len(ctx.tags_for(entry.repo)),
                len(ctx.releases_for(entry.repo)),
                entry.repo,
            )
        return AuditResult()
