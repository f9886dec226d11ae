"""Markdown and JSON audit reports."""

from __future__ import annotations

from pathlib import Path

from pubaudit.audit_runner import AuditReport
from pubaudit.models import Finding
from pubaudit.receipts.index import dump_json

ECOSYSTEM_LABELS = {
    "npm": "npm",
    "nuget": "NuGet",
    "pypi": "PyPI",
    "ghcr": "GHCR",
}

TOP_ACTIONS = 10


def _by_severity(findings: list[Finding], severity: str) -> list[Finding]:
    return [f for f in findings if f.severity == severity]


def render_markdown(report: AuditReport) -> str:
    """Render the human-readable health report.

    Sections: severity summary, top actions (RED, then YELLOW, then INFO),
    findings grouped by package, and a table per ecosystem.
    """
    counts = report.counts
    lines = ["# Publishing Health Report", "", f"> Generated: {report.generated}", ""]

    info_label = f" | **INFO: {counts['INFO']}** (indexing)" if counts.get("INFO") else ""
    lines.append(
        f"**RED: {counts.get('RED', 0)}** | **YELLOW: {counts.get('YELLOW', 0)}** "
        f"| **GRAY: {counts.get('GRAY', 0)}**{info_label}"
    )
    lines.append("")

    actions = (
        _by_severity(report.all_findings, "RED")
        + _by_severity(report.all_findings, "YELLOW")
        + _by_severity(report.all_findings, "INFO")
    )
    if actions:
        lines += ["## Top Actions", ""]
        lines += [f"- **{f.severity}** {f.msg}" for f in actions[:TOP_ACTIONS]]
        lines.append("")

    by_package: dict[str, list[Finding]] = {}
    for finding in report.all_findings:
        by_package.setdefault(finding.pkg or "?", []).append(finding)
    if by_package:
        lines += ["## Findings by Package", ""]
        for pkg, findings in by_package.items():
            lines.append(f"### {pkg}")
            lines += [f"- **{f.severity}** [{f.code}] {f.msg}" for f in findings]
            lines.append("")

    for ecosystem, results in report.sections.items():
        if not results:
            continue
        lines += [
            f"## {ECOSYSTEM_LABELS.get(ecosystem, ecosystem)} Packages",
            "",
            "| Package | Version | Audience | Issues |",
            "|---------|---------|----------|--------|",
        ]
        for r in results:
            issues = ", ".join(f.severity for f in r.findings) or "clean"
            lines.append(f"| {r.entry.name} | {r.version} | {r.entry.audience} | {issues} |")
        lines.append("")

    return "\n".join(lines)


def write_reports(report: AuditReport, reports_dir: Path) -> tuple[Path, Path]:
    """Write latest.md and latest.json.

    Returns:
        Tuple of (markdown_path, json_path).
    """
    reports_dir.mkdir(parents=True, exist_ok=True)
    md_path = reports_dir / "latest.md"
    json_path = reports_dir / "latest.json"
    md_path.write_text(render_markdown(report), encoding="utf-8")
    json_path.write_text(dump_json(report.to_dict()), encoding="utf-8")
    return md_path, json_path
