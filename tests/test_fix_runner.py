"""Tests for the fix orchestrator."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from pubaudit.audit_runner import AuditReport
from pubaudit.context import SharedContext
from pubaudit.fix_runner import FixRunner, build_fix_plan, resolve_mode
from pubaudit.fixers import (
    ApplyResult,
    BaseFixer,
    Diagnosis,
    FixOptions,
    NpmHomepageFixer,
    discover_fixers,
)
from pubaudit.github import GitHubClient
from pubaudit.manifest import parse_manifest
from pubaudit.models import Finding, ManifestEntry
from pubaudit.shell import CommandResult

MANIFEST = parse_manifest(
    {
        "npm": [
            {"name": "@o/a", "repo": "o/a", "audience": "front-door"},
            {"name": "@o/a-cli", "repo": "o/a", "audience": "front-door"},
        ],
        "pypi": [{"name": "b", "repo": "o/b"}],
        "nuget": [{"name": "Lib", "repo": "o/lib", "audience": "front-door"}],
    }
)


def finding(code: str, pkg: str, ecosystem: str, severity: str = "YELLOW") -> Finding:
    return Finding(severity, code, f"{pkg}: {code}", pkg=pkg, ecosystem=ecosystem)  # type: ignore[arg-type]


def report_of(*findings: Finding) -> AuditReport:
    return AuditReport(generated="2026-01-01T00:00:00.000Z", all_findings=list(findings))


class RecordingFixer(BaseFixer):
    """Fixer whose behaviour is scripted per test."""

    code = "recording"
    target = "npm"
    finding_codes = ("missing-homepage",)
    description = "Set a field"

    def __init__(self, needed: bool = True, changed: bool = True, error: Exception | None = None) -> None:
        super().__init__(github=MagicMock(spec=GitHubClient))
        self.needed = needed
        self.changed = changed
        self.error = error
        self.calls: list[tuple[str, str]] = []

    def diagnose(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> Diagnosis:
        self.calls.append(("diagnose", entry.name))
        if self.error:
            raise self.error
        return Diagnosis(needed=self.needed, before=None, after="value", file="package.json")

    def apply_local(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        self.calls.append(("local", entry.name))
        return ApplyResult(changed=self.changed, before=None, after="value", file="package.json")

    def apply_remote(self, entry: ManifestEntry, ctx: SharedContext, opts: FixOptions) -> ApplyResult:
        self.calls.append(("remote", entry.name))
        return ApplyResult(changed=self.changed, before=None, after="value")


class TestResolveMode:
    """Tests for resolve_mode."""

    def test_precedence(self) -> None:
        """Test dry-run beats remote beats pr."""
        assert resolve_mode() == "local"
        assert resolve_mode(pr=True) == "pr"
        assert resolve_mode(remote=True, pr=True) == "remote"
        assert resolve_mode(dry_run=True, remote=True) == "dry-run"


class TestBuildFixPlan:
    """Tests for build_fix_plan."""

    def test_dedup_by_repo_and_fixer(self) -> None:
        """Test two packages in one repo produce one plan entry per fixer."""
        fixers = discover_fixers(github=MagicMock(spec=GitHubClient))
        plan = build_fix_plan(
            [
                finding("missing-keywords", "@o/a", "npm"),
                finding("missing-keywords", "@o/a-cli", "npm"),
            ],
            MANIFEST,
            fixers,
        )
        assert [(p.entry.repo, p.fixer.code) for p in plan] == [("o/a", "npm-keywords")]
        assert len(plan[0].findings) == 2

    def test_fixer_target_must_match_ecosystem(self) -> None:
        """Test npm fixers are not planned for PyPI findings."""
        fixers = discover_fixers(github=MagicMock(spec=GitHubClient))
        plan = build_fix_plan([finding("missing-homepage", "b", "pypi")], MANIFEST, fixers)
        assert [p.fixer.code for p in plan] == ["github-about"]

    def test_repo_filter(self) -> None:
        """Test --repo limits the plan."""
        fixers = discover_fixers(github=MagicMock(spec=GitHubClient))
        findings = [
            finding("missing-keywords", "@o/a", "npm"),
            finding("missing-project-url", "Lib", "nuget"),
        ]
        plan = build_fix_plan(findings, MANIFEST, fixers, repo_filter="o/lib")
        assert [p.fixer.code for p in plan] == ["nuget-csproj"]

    def test_target_filter(self) -> None:
        """Test --target limits fixers and ecosystems."""
        fixers = discover_fixers(github=MagicMock(spec=GitHubClient))
        findings = [
            finding("missing-homepage", "@o/a", "npm"),
            finding("missing-readme", "@o/a", "npm"),
        ]
        assert [p.fixer.code for p in build_fix_plan(findings, MANIFEST, fixers, target_filter="npm")] == [
            "npm-homepage"
        ]
        assert [p.fixer.code for p in build_fix_plan(findings, MANIFEST, fixers, target_filter="github")] == [
            "github-about"
        ]
        assert [p.fixer.code for p in build_fix_plan(findings, MANIFEST, fixers, target_filter="readme")] == [
            "readme-header"
        ]

    def test_unknown_package_ignored(self) -> None:
        """Test findings for packages outside the manifest are skipped."""
        fixers = discover_fixers(github=MagicMock(spec=GitHubClient))
        assert build_fix_plan([finding("missing-keywords", "ghost", "npm")], MANIFEST, fixers) == []


class TestFixRunner:
    """Tests for FixRunner.run."""

    def test_unknown_mode(self, tmp_path: Path) -> None:
        """Test an invalid mode is rejected."""
        with pytest.raises(ValueError, match="Unknown fix mode"):
            FixRunner([], mode="yolo", cwd=tmp_path)

    def test_dry_run_writes_nothing(self, tmp_path: Path) -> None:
        """Test dry-run records planned changes without applying."""
        fixer = RecordingFixer()
        runner = FixRunner([fixer], mode="dry-run", cwd=tmp_path)
        outcome = runner.run(report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST)

        assert outcome.dry_run
        assert fixer.calls == [("diagnose", "@o/a")]
        assert outcome.changes[0].after == "value"
        assert outcome.to_dict()["applied"] == 0

    def test_not_needed_is_skipped(self, tmp_path: Path) -> None:
        """Test fixers are not applied when diagnose says no."""
        fixer = RecordingFixer(needed=False)
        outcome = FixRunner([fixer], cwd=tmp_path).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )
        assert fixer.calls == [("diagnose", "@o/a")]
        assert outcome.skipped == ["recording on @o/a (already fixed)"]

    def test_remote_mode_uses_api(self, tmp_path: Path) -> None:
        """Test remote mode calls apply_remote."""
        fixer = RecordingFixer()
        outcome = FixRunner([fixer], mode="remote", cwd=tmp_path).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )
        assert ("remote", "@o/a") in fixer.calls
        assert len(outcome.changes) == 1
        assert outcome.file_hashes == {}

    def test_exception_counted_and_loop_continues(self, tmp_path: Path) -> None:
        """Test a raising fixer is a failure and later fixers still run."""
        broken = RecordingFixer(error=RuntimeError("kaboom"))
        healthy = RecordingFixer()
        healthy.code = "healthy"  # type: ignore[misc]
        outcome = FixRunner([broken, healthy], cwd=tmp_path).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )
        assert [f.error for f in outcome.failures] == ["kaboom"]
        assert [c.fixer_code for c in outcome.changes] == ["healthy"]
        assert not outcome.ok

    def test_apply_error_is_failure(self, tmp_path: Path) -> None:
        """Test an ApplyResult error counts as a failure."""
        github = MagicMock(spec=GitHubClient)
        github.read_file.return_value = None
        fixer = NpmHomepageFixer(github=github)
        with patch.object(
            NpmHomepageFixer,
            "apply_remote",
            return_value=ApplyResult(changed=False, error="409 conflict"),
        ), patch.object(NpmHomepageFixer, "diagnose", return_value=Diagnosis(needed=True)):
            outcome = FixRunner([fixer], mode="remote", cwd=tmp_path).run(
                report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
            )
        assert [f.error for f in outcome.failures] == ["409 conflict"]

    def test_local_run_hashes_files(self, tmp_path: Path) -> None:
        """Test local fixes record the SHA-256 of touched files."""
        (tmp_path / "package.json").write_text(json.dumps({"name": "@o/a"}))
        fixer = NpmHomepageFixer(github=MagicMock(spec=GitHubClient))
        outcome = FixRunner([fixer], cwd=tmp_path).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )
        assert [c.field for c in outcome.changes] == ["Add homepage URL to package.json"]
        assert len(outcome.file_hashes["package.json"]) == 64

    @patch("pubaudit.fix_runner.run_command")
    def test_pr_flow(self, mock_run, tmp_path: Path) -> None:
        """Test PR mode branches, commits, pushes and opens a PR."""
        mock_run.return_value = CommandResult("", "", 0)
        github = MagicMock(spec=GitHubClient)
        github.create_pull_request.return_value = "https://github.com/o/a/pull/1"
        fixer = RecordingFixer()

        outcome = FixRunner([fixer], mode="pr", cwd=tmp_path, github=github).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )

        git_cmds = [c.args[0][1] for c in mock_run.call_args_list]
        assert git_cmds == ["checkout", "add", "commit", "push"]
        assert outcome.branch_name is not None and outcome.branch_name.startswith("pubaudit/fix-")
        assert outcome.pr_url == "https://github.com/o/a/pull/1"
        body = github.create_pull_request.call_args.args[1]
        assert "- **recording**: Set a field on @o/a" in body

    @patch("pubaudit.fix_runner.run_command")
    def test_pr_push_failure(self, mock_run, tmp_path: Path) -> None:
        """Test a failed git step is a failure and no PR is opened."""

        def fake_git(args: list[str], **kwargs: Any) -> CommandResult:
            if args[1] == "push":
                return CommandResult("", "rejected", 1)
            return CommandResult("", "", 0)

        mock_run.side_effect = fake_git
        github = MagicMock(spec=GitHubClient)
        outcome = FixRunner([RecordingFixer()], mode="pr", cwd=tmp_path, github=github).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )
        github.create_pull_request.assert_not_called()
        assert outcome.pr_url is None
        assert "rejected" in outcome.failures[0].error

    @patch("pubaudit.fix_runner.run_command")
    def test_pr_skipped_without_changes(self, mock_run, tmp_path: Path) -> None:
        """Test no git commands run when nothing changed."""
        FixRunner([RecordingFixer(needed=False)], mode="pr", cwd=tmp_path).run(
            report_of(finding("missing-homepage", "@o/a", "npm")), MANIFEST
        )
        mock_run.assert_not_called()
