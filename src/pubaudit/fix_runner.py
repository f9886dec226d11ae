"""Fix orchestrator.

Turns audit findings into a deduplicated plan of (repository, fixer) pairs,
then diagnoses and applies each one in the selected mode. In PR mode the
local edits are committed to a fresh branch and a pull request is opened
once every fixer has run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from pubaudit.audit_runner import AuditReport
from pubaudit.context import SharedContext
from pubaudit.fixers.base import BaseFixer, FixOptions
from pubaudit.fixers.registry import match_fixers
from pubaudit.github import GitHubClient, GitHubError
from pubaudit.manifest import Manifest, find_entry
from pubaudit.models import Finding, ManifestEntry
from pubaudit.shell import hash_file, run_command

logger = logging.getLogger(__name__)

FIX_MODES = ("local", "remote", "pr", "dry-run")

# Fixers whose target is not a package ecosystem apply to entries of any section
CROSS_ECOSYSTEM_TARGETS = ("readme", "github")

PR_TITLE = "chore: publishing metadata fixes"
BRANCH_PREFIX = "pubaudit/fix-"


@dataclass
class FixChange:
    """A change that was applied, or would be applied in dry-run mode."""

    fixer_code: str
    target: str
    package_name: str
    repo: str
    field: str
    before: Any = None
    after: Any = None
    file: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "fixerCode": self.fixer_code,
            "target": self.target,
            "packageName": self.package_name,
            "repo": self.repo,
            "field": self.field,
            "before": self.before,
            "after": self.after,
            "file": self.file,
        }


@dataclass
class FixFailure:
    repo: str
    fixer_code: str
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"repo": self.repo, "fixerCode": self.fixer_code, "error": self.error}


@dataclass
class FixPlanEntry:
    """One fixer to run against one manifest entry.

    Attributes:
        entry: Entry whose repository gets fixed.
        fixer: Fixer to run.
        findings: Findings that put this pair on the plan.
    """

    entry: ManifestEntry
    fixer: BaseFixer
    findings: list[Finding] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str]:
        return (self.entry.repo, self.fixer.code)


@dataclass
class FixOutcome:
    """Result of a fix run.

    Attributes:
        mode: One of local, remote, pr, dry-run.
        dry_run: True if nothing was written.
        changes: Applied (or planned) changes.
        skipped: Human-readable skip notes.
        failures: Fixers that raised or reported an error.
        pr_url: URL of the opened pull request (PR mode only).
        branch_name: Branch the PR was opened from.
        file_hashes: SHA-256 of every local file touched, keyed by relative path.
    """

    mode: str
    dry_run: bool = False
    changes: list[FixChange] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[FixFailure] = field(default_factory=list)
    pr_url: str | None = None
    branch_name: str | None = None
    file_hashes: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "dryRun": self.dry_run,
            "changes": [c.to_dict() for c in self.changes],
            "applied": 0 if self.dry_run else len(self.changes),
            "skipped": list(self.skipped),
            "failures": [f.to_dict() for f in self.failures],
            "prUrl": self.pr_url,
            "branchName": self.branch_name,
        }


def resolve_mode(*, dry_run: bool = False, remote: bool = False, pr: bool = False) -> str:
    """Pick the fix mode from CLI flags. Dry-run wins over everything else."""
    if dry_run:
        return "dry-run"
    if remote:
        return "remote"
    if pr:
        return "pr"
    return "local"


def _fixer_applies(fixer: BaseFixer, finding: Finding, target_filter: str | None) -> bool:
    if target_filter and fixer.target != target_filter:
        return False
    if fixer.target in CROSS_ECOSYSTEM_TARGETS:
        return True
    return fixer.target == finding.ecosystem


def build_fix_plan(
    findings: list[Finding],
    manifest: Manifest,
    fixers: list[BaseFixer],
    repo_filter: str | None = None,
    target_filter: str | None = None,
) -> list[FixPlanEntry]:
    """Map findings to fixers.

    Each (repository, fixer code) pair appears at most once, in the order
    its first finding was seen. Findings whose package is not in the
    manifest are ignored.

    Args:
        findings: Annotated findings from an audit run.
        manifest: Manifest the audit ran over.
        fixers: Available fixers.
        repo_filter: Only plan fixes for this "owner/name".
        target_filter: Only run fixers with this target.
    """
    plan: dict[tuple[str, str], FixPlanEntry] = {}

    for finding in findings:
        entry = find_entry(manifest, finding.pkg, finding.ecosystem)
        if entry is None:
            continue
        if repo_filter and entry.repo != repo_filter:
            continue
        if (
            target_filter
            and target_filter not in CROSS_ECOSYSTEM_TARGETS
            and finding.ecosystem != target_filter
        ):
            continue

        for fixer in match_fixers(fixers, finding):
            if not _fixer_applies(fixer, finding, target_filter):
                continue
            key = (entry.repo, fixer.code)
            if key not in plan:
                plan[key] = FixPlanEntry(entry=entry, fixer=fixer)
            plan[key].findings.append(finding)

    return list(plan.values())


class FixRunner:
    """Runs a fix plan in one mode.

    Attributes:
        fixers: Available fixers.
        mode: local, remote, pr or dry-run.
        cwd: Local checkout used by local and PR modes.
        github: Client used for the PR.
        ctx: Shared context handed to fixers.
    """

    def __init__(
        self,
        fixers: list[BaseFixer],
        mode: str = "local",
        cwd: Path | None = None,
        github: GitHubClient | None = None,
        ctx: SharedContext | None = None,
    ) -> None:
        if mode not in FIX_MODES:
            raise ValueError(f"Unknown fix mode: {mode} (expected one of {', '.join(FIX_MODES)})")
        self.fixers = fixers
        self.mode = mode
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.github = github or GitHubClient()
        self.ctx = ctx or SharedContext()

    @property
    def dry_run(self) -> bool:
        return self.mode == "dry-run"

    @property
    def options(self) -> FixOptions:
        return FixOptions(cwd=self.cwd, remote=self.mode == "remote", dry_run=self.dry_run)

    def run(
        self,
        report: AuditReport,
        manifest: Manifest,
        repo_filter: str | None = None,
        target_filter: str | None = None,
    ) -> FixOutcome:
        """Fix what the audit found.

        A fixer that raises is logged and counted as a failure; the
        remaining plan entries still run.
        """
        plan = build_fix_plan(report.all_findings, manifest, self.fixers, repo_filter, target_filter)
        outcome = FixOutcome(mode=self.mode, dry_run=self.dry_run)
        logger.info("Fix plan has %d item(s) in %s mode", len(plan), self.mode)

        for item in plan:
            self._run_item(item, outcome)

        if self.mode in ("local", "pr"):
            self._hash_local_files(outcome)

        if self.mode == "pr" and outcome.changes:
            self._open_pull_request(outcome)

        return outcome

    def _run_item(self, item: FixPlanEntry, outcome: FixOutcome) -> None:
        fixer, entry = item.fixer, item.entry
        opts = self.options
        label = f"{fixer.code} on {entry.name}"

        try:
            diagnosis = fixer.diagnose(entry, self.ctx, opts)
            if not diagnosis.needed:
                outcome.skipped.append(f"{label} (already fixed)")
                return

            if self.dry_run:
                outcome.changes.append(
                    self._change(item, diagnosis.before, diagnosis.after, diagnosis.file)
                )
                return

            if opts.remote:
                result = fixer.apply_remote(entry, self.ctx, opts)
            else:
                result = fixer.apply_local(entry, self.ctx, opts)
        except Exception as e:
            logger.error("%s failed: %s", label, e)
            outcome.failures.append(FixFailure(entry.repo, fixer.code, str(e)))
            return

        if result.error:
            logger.error("%s failed: %s", label, result.error)
            outcome.failures.append(FixFailure(entry.repo, fixer.code, result.error))
        elif result.changed:
            outcome.changes.append(self._change(item, result.before, result.after, result.file))
        else:
            outcome.skipped.append(f"{label} ({result.message or 'no change needed'})")

    def _change(self, item: FixPlanEntry, before: Any, after: Any, file: str | None) -> FixChange:
        return FixChange(
            fixer_code=item.fixer.code,
            target=item.fixer.target,
            package_name=item.entry.name,
            repo=item.entry.repo,
            field=item.fixer.describe(),
            before=before,
            after=after,
            file=file,
        )

    def _hash_local_files(self, outcome: FixOutcome) -> None:
        for change in outcome.changes:
            if not change.file or change.file in outcome.file_hashes:
                continue
            path = self.cwd / change.file
            if path.is_file():
                outcome.file_hashes[change.file] = hash_file(path)[0]

    def _git(self, *args: str) -> None:
        result = run_command(["git", *args], cwd=self.cwd, timeout=60)
        if not result.ok:
            raise GitHubError(f"git {args[0]} failed: {result.stderr.strip()}")

    def _open_pull_request(self, outcome: FixOutcome) -> None:
        branch = f"{BRANCH_PREFIX}{date.today().isoformat()}"
        body_lines = ["Automated publishing metadata fixes:", ""]
        body_lines += [f"- **{c.fixer_code}**: {c.field} on {c.package_name}" for c in outcome.changes]

        try:
            self._git("checkout", "-b", branch)
            self._git("add", "-A")
            self._git("commit", "-m", f"{PR_TITLE} (automated)")
            self._git("push", "-u", "origin", branch)
            outcome.pr_url = self.github.create_pull_request(PR_TITLE, "\n".join(body_lines), self.cwd)
        except GitHubError as e:
            logger.error("PR creation failed: %s", e)
            outcome.failures.append(FixFailure("*", "pr", str(e)))
            return
        outcome.branch_name = branch
