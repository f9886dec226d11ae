"""Per-run shared context of repository reference data.

The GitHub context provider populates tags and releases for a repository
once per run; every ecosystem provider reads them afterwards.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class SharedContext:
    """Populate-once, read-many cache of tags and releases per repository.

    Attributes:
        tags: Git tag names keyed by "owner/name".
        releases: Tag names that have a GitHub Release, keyed by "owner/name".
    """

    tags: dict[str, list[str]] = field(default_factory=dict)
    releases: dict[str, list[str]] = field(default_factory=dict)

    def is_loaded(self, repo: str) -> bool:
        return repo in self.tags and repo in self.releases

    def ensure(
        self,
        repo: str,
        load_tags: Callable[[str], list[str]],
        load_releases: Callable[[str], list[str]],
    ) -> bool:
        """Populate the context for a repository if it isn't loaded yet.

        Each loader is called at most once per repository per run.

        Args:
            repo: Repository as "owner/name".
            load_tags: Callable returning the repository's tag names.
            load_releases: Callable returning tag names with a release.

        Returns:
            True if this call performed the fetch, False if already cached.
        """
        fetched = False
        if repo not in self.tags:
            self.tags[repo] = list(load_tags(repo))
            fetched = True
        if repo not in self.releases:
            self.releases[repo] = list(load_releases(repo))
            fetched = True
        return fetched

    def tags_for(self, repo: str) -> list[str]:
        return self.tags.get(repo, [])

    def releases_for(self, repo: str) -> list[str]:
        return self.releases.get(repo, [])
