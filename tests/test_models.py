"""Tests for core data models and the shared context."""

from __future__ import annotations

from pubaudit.context import SharedContext
from pubaudit.models import (
    Finding,
    ManifestEntry,
    audience_severity,
    count_by_severity,
)


class TestManifestEntry:
    """Tests for ManifestEntry properties."""

    def test_repo_parts(self, npm_entry: ManifestEntry) -> None:
        """Test owner, repo_name and slug are derived from repo."""
        assert npm_entry.owner == "mcp-tool-shop"
        assert npm_entry.repo_name == "file-compass"
        assert npm_entry.repo_slug == "mcp-tool-shop--file-compass"

    def test_defaults(self) -> None:
        """Test audience defaults to internal."""
        entry = ManifestEntry(name="x", repo="o/x")
        assert entry.audience == "internal"
        assert entry.is_front_door is False
        assert entry.deprecated is False

    def test_audience_severity(self, npm_entry: ManifestEntry, nuget_entry: ManifestEntry) -> None:
        """Test cosmetic gaps are YELLOW for front-door and GRAY otherwise."""
        assert audience_severity(npm_entry) == "YELLOW"
        assert audience_severity(nuget_entry) == "GRAY"


class TestFinding:
    """Tests for Finding."""

    def test_with_context_returns_copy(self) -> None:
        """Test annotation does not mutate the original finding."""
        finding = Finding("RED", "published-not-tagged", "no tag")
        annotated = finding.with_context("pkg", "npm")

        assert finding.pkg is None
        assert annotated.pkg == "pkg"
        assert annotated.ecosystem == "npm"

    def test_to_dict_omits_missing_context(self) -> None:
        """Test pkg and ecosystem only appear once set."""
        finding = Finding("GRAY", "missing-keywords", "msg")
        assert finding.to_dict() == {"severity": "GRAY", "code": "missing-keywords", "msg": "msg"}
        assert finding.with_context("p", "npm").to_dict()["pkg"] == "p"


class TestCountBySeverity:
    """Tests for count_by_severity."""

    def test_empty_has_all_keys(self) -> None:
        """Test every severity is present with zero counts."""
        assert count_by_severity([]) == {"RED": 0, "YELLOW": 0, "GRAY": 0, "INFO": 0}

    def test_counts(self) -> None:
        """Test counts per severity."""
        findings = [
            Finding("RED", "a", ""),
            Finding("RED", "b", ""),
            Finding("INFO", "c", ""),
        ]
        assert count_by_severity(findings) == {"RED": 2, "YELLOW": 0, "GRAY": 0, "INFO": 1}


class TestSharedContext:
    """Tests for SharedContext populate-once semantics."""

    def test_ensure_fetches_once(self) -> None:
        """Test loaders are called once per repository."""
        calls: list[str] = []

        def load_tags(repo: str) -> list[str]:
            calls.append(f"tags:{repo}")
            return ["v1.0.0"]

        def load_releases(repo: str) -> list[str]:
            calls.append(f"releases:{repo}")
            return []

        ctx = SharedContext()
        assert ctx.ensure("o/a", load_tags, load_releases) is True
        assert ctx.ensure("o/a", load_tags, load_releases) is False
        assert calls == ["tags:o/a", "releases:o/a"]
        assert ctx.is_loaded("o/a")
        assert ctx.tags_for("o/a") == ["v1.0.0"]

    def test_unknown_repo_reads_empty(self) -> None:
        """Test reads for an unloaded repository return empty lists."""
        ctx = SharedContext()
        assert ctx.tags_for("o/missing") == []
        assert ctx.releases_for("o/missing") == []
        assert not ctx.is_loaded("o/missing")
