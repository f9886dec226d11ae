"""Builders that turn run results into receipt documents."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pubaudit.receipts.schema import SCHEMA_VERSION

if TYPE_CHECKING:
    from pubaudit.audit_runner import AuditReport
    from pubaudit.fix_runner import FixOutcome
    from pubaudit.models import ManifestEntry
    from pubaudit.providers.base import PublishResult


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO 8601 UTC timestamp with millisecond precision and a Z suffix."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_publish_receipt(
    target: str,
    entry: ManifestEntry,
    result: PublishResult,
    commit_sha: str,
    timestamp: str | None = None,
) -> dict[str, Any]:
    """Build the canonical publish receipt for a successful publish."""
    return {
        "schemaVersion": SCHEMA_VERSION,
        "repo": {"owner": entry.owner, "name": entry.repo_name},
        "target": target,
        "version": result.version,
        "packageName": entry.name,
        "commitSha": commit_sha,
        "timestamp": timestamp or utc_timestamp(),
        "artifacts": [a.to_dict() for a in result.artifacts],
    }


def build_audit_receipt(
    report: AuditReport,
    timestamp: str | None = None,
    reports_dir: str = "reports",
) -> dict[str, Any]:
    """Summarize an audit report as an audit receipt."""
    return {
        "schemaVersion": SCHEMA_VERSION,
        "type": "audit",
        "timestamp": timestamp or utc_timestamp(),
        "counts": dict(report.counts),
        "ecosystems": {name: len(results) for name, results in report.sections.items()},
        "totalPackages": report.total_packages,
        "reportFiles": {
            "json": f"{reports_dir}/latest.json",
            "markdown": f"{reports_dir}/latest.md",
        },
    }


def build_fix_receipt(
    outcome: FixOutcome,
    repo: str | None = None,
    audit_before: dict[str, int] | None = None,
    audit_after: dict[str, int] | None = None,
    commit_sha: str | None = None,
    timestamp: str | None = None,
) -> dict[str, Any]:
    """Record a fix run.

    Args:
        outcome: Result of the fix run.
        repo: Repository the run was limited to; None means the whole fleet.
        audit_before: Severity counts from the audit that drove the run.
        audit_after: Severity counts from a re-audit, if one was run.
        commit_sha: HEAD of the local checkout after the run.
        timestamp: Override for the receipt timestamp.
    """
    return {
        "schemaVersion": SCHEMA_VERSION,
        "type": "fix",
        "timestamp": timestamp or utc_timestamp(),
        "repo": repo or "*",
        "mode": outcome.mode,
        "dryRun": outcome.dry_run,
        "prUrl": outcome.pr_url,
        "branchName": outcome.branch_name,
        "changes": [c.to_dict() for c in outcome.changes],
        "failures": [f.to_dict() for f in outcome.failures],
        "auditBefore": audit_before,
        "auditAfter": audit_after,
        "commitSha": commit_sha,
        "fileHashes": dict(outcome.file_hashes),
    }
