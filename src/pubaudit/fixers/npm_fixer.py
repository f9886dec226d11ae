"""Fixers that repair fields in package.json.

All four share one read/modify/write cycle: only the owned field changes,
every other key keeps its value and position.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from typing import Any, ClassVar

from pubaudit.context import SharedContext
from pubaudit.fixers.base import ApplyResult, BaseFixer, Diagnosis, FixOptions
from pubaudit.fixers.utils import (
    PACKAGE_JSON,
    dump_package_json,
    github_url,
    parse_package_json,
    read_package_json,
    short_package_name,
    write_package_json,
)
from pubaudit.github import GitHubError
from pubaudit.models import ManifestEntry

logger = logging.getLogger(__name__)


class PackageJsonFixer(BaseFixer):
    """Shared diagnose/apply logic for a single package.json field."""

    target = "npm"
    field: ClassVar[str] = ""
    commit_message: ClassVar[str] = ""

    @abstractmethod
    def is_satisfied(self, data: dict[str, Any], entry: ManifestEntry) -> bool:
        """Return True if the field already holds an acceptable value."""

    @abstractmethod
    def new_value(self, data: dict[str, Any], entry: ManifestEntry) -> Any:
        """Value to write into the field."""

    def _load(self, entry: ManifestEntry, opts: FixOptions) -> dict[str, Any] | None:
        if opts.remote:
            remote = self.github.read_file(entry.repo, PACKAGE_JSON)
            return parse_package_json(remote.content) if remote else None
        local = read_package_json(opts.cwd)
        return local[0] if local else None

    def diagnose(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> Diagnosis:
        data = self._load(entry, opts)
        if data is None or self.is_satisfied(data, entry):
            return Diagnosis(needed=False)
        return Diagnosis(
            needed=True,
            before=data.get(self.field),
            after=self.new_value(data, entry),
            file=PACKAGE_JSON,
        )

    def apply_local(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        local = read_package_json(opts.cwd)
        if local is None:
            return ApplyResult(changed=False, message=f"No readable {PACKAGE_JSON} in {opts.cwd}")
        data, path = local
        before = data.get(self.field)
        if self.is_satisfied(data, entry):
            return ApplyResult(changed=False, before=before, after=before, file=PACKAGE_JSON)

        data[self.field] = self.new_value(data, entry)
        write_package_json(path, data)
        logger.debug("%s: set %s in %s", self.code, self.field, path)
        return ApplyResult(changed=True, before=before, after=data[self.field], file=PACKAGE_JSON)

    def apply_remote(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        remote = self.github.read_file(entry.repo, PACKAGE_JSON)
        data = parse_package_json(remote.content) if remote else None
        if remote is None or data is None:
            return ApplyResult(changed=False, message=f"No readable {PACKAGE_JSON} in {entry.repo}")

        before = data.get(self.field)
        if self.is_satisfied(data, entry):
            return ApplyResult(changed=False, before=before, after=before, file=PACKAGE_JSON)

        data[self.field] = self.new_value(data, entry)
        try:
            self.github.write_file(
                entry.repo, PACKAGE_JSON, dump_package_json(data), remote.sha, self.commit_message
            )
        except GitHubError as e:
            return ApplyResult(
                changed=False, before=before, after=data[self.field], file=PACKAGE_JSON, error=str(e)
            )
        return ApplyResult(changed=True, before=before, after=data[self.field], file=PACKAGE_JSON)


class NpmRepositoryFixer(PackageJsonFixer):
    code = "npm-repository"
    finding_codes = ("wrong-repo-url",)
    description = "Fix npm package repository URL"
    field = "repository"
    commit_message = "chore: fix repository URL in package.json"

    @staticmethod
    def expected_url(entry: ManifestEntry) -> str:
        return f"git+{github_url(entry.repo)}.git"

    def is_satisfied(self, data: dict[str, Any], entry: ManifestEntry) -> bool:
        current = data.get("repository")
        url = current.get("url") if isinstance(current, dict) else current
        return url == self.expected_url(entry)

    def new_value(self, data: dict[str, Any], entry: ManifestEntry) -> Any:
        return {"type": "git", "url": self.expected_url(entry)}


class NpmHomepageFixer(PackageJsonFixer):
    code = "npm-homepage"
    finding_codes = ("missing-homepage",)
    description = "Add homepage URL to package.json"
    field = "homepage"
    commit_message = "chore: add homepage to package.json"

    def is_satisfied(self, data: dict[str, Any], entry: ManifestEntry) -> bool:
        return bool(data.get("homepage"))

    def new_value(self, data: dict[str, Any], entry: ManifestEntry) -> Any:
        return f"{github_url(entry.repo)}#readme"


class NpmBugsFixer(PackageJsonFixer):
    code = "npm-bugs"
    finding_codes = ("missing-bugs-url",)
    description = "Add bugs URL to package.json"
    field = "bugs"
    commit_message = "chore: add bugs URL to package.json"

    def is_satisfied(self, data: dict[str, Any], entry: ManifestEntry) -> bool:
        bugs = data.get("bugs")
        if isinstance(bugs, dict):
            return bool(bugs.get("url"))
        return bool(bugs)

    def new_value(self, data: dict[str, Any], entry: ManifestEntry) -> Any:
        bugs = data.get("bugs")
        # Keep sibling keys such as "email"
        existing = dict(bugs) if isinstance(bugs, dict) else {}
        existing["url"] = f"{github_url(entry.repo)}/issues"
        return existing


class NpmKeywordsFixer(PackageJsonFixer):
    code = "npm-keywords"
    finding_codes = ("missing-keywords",)
    description = "Add starter keywords to package.json"
    field = "keywords"
    commit_message = "chore: add keywords to package.json"

    BASE_KEYWORDS: ClassVar[tuple[str, ...]] = ("mcp", "mcp-tool-shop")

    def is_satisfied(self, data: dict[str, Any], entry: ManifestEntry) -> bool:
        keywords = data.get("keywords")
        return isinstance(keywords, list) and len(keywords) > 0

    def new_value(self, data: dict[str, Any], entry: ManifestEntry) -> Any:
        keywords = list(self.BASE_KEYWORDS)
        short_name = short_package_name(entry.name)
        if short_name and short_name not in keywords:
            keywords.append(short_name)
        return keywords
