"""pubaudit CLI - Publishing health audits, fixes and receipts for a package fleet."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from pubaudit import __version__
from pubaudit.audit_runner import AuditReport, AuditRunner
from pubaudit.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_DRIFT_FOUND,
    EXIT_FIX_FAILURE,
    EXIT_MISSING_CREDENTIALS,
    EXIT_PUBLISH_FAILURE,
    EXIT_SUCCESS,
    CliState,
    cwd_option,
    dry_run_option,
    error,
    format_error_details,
    get_state,
    info,
    json_option,
    repo_option,
    resolve_project_root,
    success,
    target_option,
    validate_target,
    warning,
    wire_config,
)
from pubaudit.config import CONFIG_FILENAME, ConfigError, PubauditConfig
from pubaudit.fix_runner import FixOutcome, FixRunner, build_fix_plan, resolve_mode
from pubaudit.fixers.registry import discover_fixers
from pubaudit.github import GitHubClient
from pubaudit.logging_config import configure_logging, get_logger
from pubaudit.manifest import Manifest, iter_entries, load_manifest
from pubaudit.models import ManifestEntry
from pubaudit.providers.base import BaseProvider
from pubaudit.providers.registry import discover_providers, get_global_registry
from pubaudit.publish_runner import MissingCredentialsError, PublishOutcome, PublishRunner
from pubaudit.receipts.builders import build_audit_receipt, build_fix_receipt
from pubaudit.receipts.index import dump_json
from pubaudit.receipts.schema import ReceiptValidationError
from pubaudit.receipts.store import ReceiptStore
from pubaudit.receipts.verify import verify_receipt_file
from pubaudit.report import write_reports
from pubaudit.shell import get_commit_sha

app = typer.Typer(
    name="pubaudit",
    help="pubaudit - Publishing health audits, fixes and receipts for a package fleet.",
    add_completion=False,
)

# Rich consoles for output
console = Console()
err_console = Console(stderr=True)

logger = get_logger("cli")

SEVERITY_STYLES = {"RED": "red", "YELLOW": "yellow", "GRAY": "dim", "INFO": "cyan"}

DEFAULT_RC = """\
# pubaudit configuration
profiles_dir = "profiles"
receipts_dir = "receipts"
reports_dir = "reports"
manifest_name = "manifest.json"
site_url = "https://mcptoolshop.com"
attach_receipts = false
timeout = 15
"""

EMPTY_MANIFEST: dict[str, Any] = {
    "$comment": "Fleet manifest. Each section lists {name, repo, audience} entries.",
    "npm": [],
    "nuget": [],
    "pypi": [],
    "ghcr": [],
}


@dataclass
class Workspace:
    """Everything a command needs once config and manifest are loaded."""

    root: Path
    config: PubauditConfig
    manifest: Manifest
    github: GitHubClient
    providers: list[BaseProvider]

    @property
    def store(self) -> ReceiptStore:
        return ReceiptStore(self.config.get_receipts_path(self.root))


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, ensure_ascii=False))


def _load_workspace(ctx: typer.Context) -> Workspace:
    """Load config, manifest and providers, exiting with EXIT_CONFIG_ERROR on failure."""
    root = resolve_project_root(ctx)
    config = wire_config(start_dir=root)
    try:
        manifest = load_manifest(config.get_manifest_path(root))
        github = GitHubClient(timeout=config.timeout)
        providers = discover_providers(config.enabled_providers, github=github, timeout=config.timeout)
    except ConfigError as e:
        error(str(e))
    return Workspace(root, config, manifest, github, providers)


def _filter_entries(
    manifest: Manifest, repo: str | None = None, target: str | None = None
) -> list[ManifestEntry]:
    return [
        e
        for e in iter_entries(manifest)
        if (repo is None or e.repo == repo) and (target is None or e.ecosystem == target)
    ]


# -----------------------------------------------------------------------------
# Version and Main Callbacks
# -----------------------------------------------------------------------------


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"pubaudit version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    config_dir: Path | None = typer.Option(
        None,
        "--config-dir",
        help="Directory to search for .pubauditrc (default: current directory).",
        envvar="PUBAUDIT_CONFIG_DIR",
        file_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """pubaudit - Publishing health audits, fixes and receipts for a package fleet."""
    configure_logging(verbose=verbose)
    ctx.obj = CliState(config_dir=config_dir, verbose=verbose)


# -----------------------------------------------------------------------------
# Init Command
# -----------------------------------------------------------------------------


@app.command()
def init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config file."),
    dry_run: bool = dry_run_option(),
    json_output: bool = json_option(),
) -> None:
    """Create .pubauditrc, an empty manifest and the receipts/reports directories."""
    root = get_state(ctx).config_dir or Path.cwd()
    rc_path = root / CONFIG_FILENAME

    if rc_path.exists() and not force:
        error(f"{rc_path} already exists (use --force to overwrite)")

    defaults = PubauditConfig()
    manifest_path = defaults.get_manifest_path(root)
    created: list[str] = [str(rc_path)]
    if not manifest_path.exists():
        created.append(str(manifest_path))
    for directory in (defaults.get_receipts_path(root), defaults.get_reports_path(root)):
        if not directory.exists():
            created.append(str(directory))

    if not dry_run:
        root.mkdir(parents=True, exist_ok=True)
        rc_path.write_text(DEFAULT_RC, encoding="utf-8")
        if not manifest_path.exists():
            manifest_path.parent.mkdir(parents=True, exist_ok=True)
            manifest_path.write_text(dump_json(EMPTY_MANIFEST), encoding="utf-8")
        defaults.get_receipts_path(root).mkdir(parents=True, exist_ok=True)
        defaults.get_reports_path(root).mkdir(parents=True, exist_ok=True)

    if json_output:
        _print_json({"created": created, "path": str(rc_path), "dryRun": dry_run})
        return

    prefix = "Would create" if dry_run else "Created"
    for path in created:
        info(f"  {prefix} {path}")
    if not dry_run:
        success(f"Initialized pubaudit in {root}")


# -----------------------------------------------------------------------------
# Audit Command
# -----------------------------------------------------------------------------


def _print_audit_summary(report: AuditReport) -> None:
    for finding in report.all_findings:
        if finding.severity == "GRAY":
            continue
        style = SEVERITY_STYLES[finding.severity]
        console.print(f"  [{style}]{finding.severity}[/{style}] [{finding.code}] {finding.msg}", markup=True, highlight=False)

    counts = report.counts
    line = f"Done. RED={counts['RED']} YELLOW={counts['YELLOW']} GRAY={counts['GRAY']}"
    if counts.get("INFO"):
        line += f" INFO={counts['INFO']} (indexing - retry later)"
    console.print(line)


def _persist_audit(ws: Workspace, report: AuditReport) -> None:
    """Write latest.md/latest.json and the audit receipt."""
    write_reports(report, ws.config.get_reports_path(ws.root))
    try:
        ws.store.write_audit(build_audit_receipt(report, reports_dir=ws.config.reports_dir))
    except (ReceiptValidationError, OSError) as e:
        warning(f"Could not write audit receipt: {e}")


def _run_audit(
    ws: Workspace,
    *,
    json_output: bool = False,
    quiet: bool = False,
    persist: bool = True,
) -> tuple[AuditReport, int]:
    """Audit the fleet. With persist, also write reports and the audit receipt."""
    report = AuditRunner(ws.providers).run(ws.manifest)
    if persist:
        _persist_audit(ws, report)

    if json_output:
        _print_json(report.to_dict())
    elif not quiet:
        _print_audit_summary(report)

    return report, EXIT_DRIFT_FOUND if report.has_drift else EXIT_SUCCESS


@app.command()
def audit(
    ctx: typer.Context,
    json_output: bool = json_option(),
) -> None:
    """Audit every manifest entry for publishing drift.

    Writes reports/latest.md, reports/latest.json and an audit receipt.
    Exits with code 2 if any RED finding is present.
    """
    ws = _load_workspace(ctx)
    _, code = _run_audit(ws, json_output=json_output)
    raise typer.Exit(code=code)


# -----------------------------------------------------------------------------
# Fix Command
# -----------------------------------------------------------------------------


def _print_fix_outcome(outcome: FixOutcome) -> None:
    verb = "Would change" if outcome.dry_run else "Changed"
    for change in outcome.changes:
        console.print(
            f"  [green]{verb}[/green] {change.fixer_code} on {change.package_name}: "
            f"{change.before!r} -> {change.after!r}"
        )
    for note in outcome.skipped:
        console.print(f"  [dim]SKIP[/dim] {note}")
    for failure in outcome.failures:
        err_console.print(f"  [red]FAIL[/red] {failure.fixer_code} on {failure.repo}: {failure.error}")
    if outcome.pr_url:
        console.print(f"PR: {outcome.pr_url}")

    summary = f"{len(outcome.changes)} change(s), {len(outcome.failures)} failure(s) [{outcome.mode}]"
    if outcome.failures:
        warning(summary)
    else:
        success(summary)


def _run_fix(
    ws: Workspace,
    *,
    repo: str | None = None,
    target: str | None = None,
    cwd: Path | None = None,
    remote: bool = False,
    pr: bool = False,
    dry_run: bool = False,
    json_output: bool = False,
    quiet: bool = False,
) -> int:
    """Audit, then fix what the audit found."""
    report, _ = _run_audit(ws, quiet=True, persist=not dry_run)
    fixers = discover_fixers(github=ws.github, site_url=ws.config.site_url)

    if not build_fix_plan(report.all_findings, ws.manifest, fixers, repo, target):
        if json_output:
            _print_json({"changes": [], "fixable": 0, "message": "No fixable findings"})
        elif not quiet:
            info("No fixable findings")
        return EXIT_SUCCESS

    mode = resolve_mode(dry_run=dry_run, remote=remote, pr=pr)
    work_dir = cwd or Path.cwd()
    runner = FixRunner(fixers, mode=mode, cwd=work_dir, github=ws.github)
    outcome = runner.run(report, ws.manifest, repo_filter=repo, target_filter=target)

    if not outcome.dry_run:
        commit_sha = None
        if mode in ("local", "pr"):
            try:
                commit_sha = get_commit_sha(work_dir)
            except RuntimeError:
                logger.debug("No commit SHA for %s", work_dir)
        receipt = build_fix_receipt(outcome, repo=repo, audit_before=report.counts, commit_sha=commit_sha)
        try:
            ws.store.write_fix(receipt)
        except (ReceiptValidationError, OSError) as e:
            warning(f"Could not write fix receipt: {e}")

    if json_output:
        _print_json(outcome.to_dict())
    elif not quiet:
        _print_fix_outcome(outcome)

    return EXIT_FIX_FAILURE if outcome.failures else EXIT_SUCCESS


@app.command()
def fix(
    ctx: typer.Context,
    repo: str | None = repo_option(),
    target: str | None = target_option(),
    cwd: Path | None = cwd_option(),
    remote: bool = typer.Option(False, "--remote", help="Fix through the GitHub API instead of a checkout."),
    pr: bool = typer.Option(False, "--pr", help="Commit local fixes to a branch and open a PR."),
    dry_run: bool = dry_run_option("Diagnose and show planned changes without writing."),
    json_output: bool = json_option(),
) -> None:
    """Run an audit and apply fixers to the findings.

    Exits with code 6 if any fixer failed.
    """
    validate_target(target)
    ws = _load_workspace(ctx)
    code = _run_fix(
        ws,
        repo=repo,
        target=target,
        cwd=cwd,
        remote=remote,
        pr=pr,
        dry_run=dry_run,
        json_output=json_output,
    )
    raise typer.Exit(code=code)


# -----------------------------------------------------------------------------
# Publish Command
# -----------------------------------------------------------------------------


def _print_publish_outcome(outcome: PublishOutcome) -> None:
    table = Table(title="Publish Results" + (" (dry run)" if outcome.dry_run else ""))
    table.add_column("Package", style="cyan")
    table.add_column("Target")
    table.add_column("Version")
    table.add_column("Status")
    for entry, target, result in outcome.results:
        status = "[green]ok[/green]" if result.success else f"[red]{result.error}[/red]"
        table.add_row(entry.name, target, result.version or "-", status)
    console.print(table)
    for key, steps in outcome.planned.items():
        console.print(f"  Plan {key}: {'; '.join(steps) or '-'}")
    for path in outcome.receipts:
        console.print(f"  Receipt: {path}")
    if outcome.failures:
        err_console.print("[red]Failures:[/red]")
        err_console.print(format_error_details([f"{f.package_name} ({f.target}): {f.error}" for f in outcome.failures]))


def _run_publish(
    ws: Workspace,
    *,
    repo: str | None = None,
    target: str | None = None,
    cwd: Path | None = None,
    dry_run: bool = False,
    json_output: bool = False,
    quiet: bool = False,
) -> int:
    entries = _filter_entries(ws.manifest, repo, target)
    if not entries:
        if not quiet:
            warning("No manifest entries match the given filters")
        return EXIT_SUCCESS

    runner = PublishRunner(
        ws.providers,
        ws.store,
        github=ws.github,
        attach_receipts=ws.config.attach_receipts,
    )
    try:
        outcome = runner.run(entries, dry_run=dry_run, cwd=cwd)
    except MissingCredentialsError as e:
        if json_output:
            _print_json({"error": str(e), "missing": e.missing})
        elif not quiet:
            err_console.print(f"[red]Error:[/red] {e}")
        return EXIT_MISSING_CREDENTIALS

    if json_output:
        _print_json(outcome.to_dict())
    elif not quiet:
        _print_publish_outcome(outcome)

    return EXIT_PUBLISH_FAILURE if outcome.failures else EXIT_SUCCESS


@app.command()
def publish(
    ctx: typer.Context,
    repo: str | None = repo_option(),
    target: str | None = target_option(),
    cwd: Path | None = cwd_option(),
    dry_run: bool = dry_run_option("Pack and hash without pushing or writing receipts."),
    json_output: bool = json_option(),
) -> None:
    """Publish manifest entries and write immutable publish receipts.

    Exits with code 4 if credentials are missing, 5 if any publish failed.
    """
    validate_target(target)
    ws = _load_workspace(ctx)
    code = _run_publish(ws, repo=repo, target=target, cwd=cwd, dry_run=dry_run, json_output=json_output)
    raise typer.Exit(code=code)


# -----------------------------------------------------------------------------
# Providers Command
# -----------------------------------------------------------------------------


@app.command()
def providers(
    ctx: typer.Context,
    json_output: bool = json_option(),
) -> None:
    """List registered providers and whether they are enabled."""
    root = resolve_project_root(ctx)
    config = wire_config(start_dir=root)
    registry = get_global_registry()
    try:
        active = {p.name: p for p in registry.create(config.enabled_providers, timeout=config.timeout)}
    except ConfigError as e:
        error(str(e))

    rows = [
        {
            "name": name,
            "enabled": name in active,
            "publish": bool(name in active and active[name].supports_publish),
            "credential": active[name].credential_env if name in active else None,
        }
        for name in registry.list_names()
    ]

    if json_output:
        _print_json({"providers": rows})
        return

    table = Table(title="Providers")
    table.add_column("Name", style="cyan")
    table.add_column("Enabled")
    table.add_column("Publish")
    table.add_column("Credential")
    for row in rows:
        table.add_row(
            row["name"],
            "yes" if row["enabled"] else "no",
            "yes" if row["publish"] else "-",
            row["credential"] or "-",
        )
    console.print(table)


# -----------------------------------------------------------------------------
# Verify-Receipt Command
# -----------------------------------------------------------------------------


@app.command("verify-receipt")
def verify_receipt(
    path: Path = typer.Argument(..., help="Receipt file to verify."),
    json_output: bool = json_option(),
) -> None:
    """Check a receipt file exists, parses, matches its schema and report its SHA-256.

    Exits with code 3 if any check fails.
    """
    result = verify_receipt_file(path)

    if json_output:
        _print_json(result.to_dict())
    else:
        for check in result.checks:
            status = "[green]PASS[/green]" if check.passed else "[red]FAIL[/red]"
            console.print(f"  {status} {check.check}: {check.msg or ''}")
        if result.valid:
            success(f"Receipt is valid: {path}")
        else:
            err_console.print(f"[red]Error:[/red] Receipt is invalid: {path}")

    raise typer.Exit(code=EXIT_SUCCESS if result.valid else EXIT_CONFIG_ERROR)


# -----------------------------------------------------------------------------
# Weekly Command
# -----------------------------------------------------------------------------


@app.command()
def weekly(
    ctx: typer.Context,
    dry_run: bool = dry_run_option(),
    pr: bool = typer.Option(False, "--pr", help="Open a PR with local fixes."),
    remote: bool = typer.Option(False, "--remote", help="Fix through the GitHub API."),
    publish_: bool = typer.Option(False, "--publish", help="Publish after a successful fix."),
    repo: str | None = repo_option(),
    target: str | None = target_option(),
    json_output: bool = json_option(),
) -> None:
    """Run audit, then fix, then (with --publish) publish.

    Stops with code 6 if the fix step fails and returns the publish code if
    publishing fails. Drift found by the audit step does not stop the run.
    """
    validate_target(target)
    ws = _load_workspace(ctx)
    results: dict[str, Any] = {}
    quiet = json_output

    def finish(code: int) -> None:
        if json_output:
            _print_json({"results": results})
        raise typer.Exit(code=code)

    if not quiet:
        console.rule("audit")
    _, audit_code = _run_audit(ws, quiet=quiet, persist=not dry_run)
    results["audit"] = {"exitCode": audit_code}

    if not quiet:
        console.rule("fix")
    fix_code = _run_fix(ws, repo=repo, target=target, remote=remote, pr=pr, dry_run=dry_run, quiet=quiet)
    results["fix"] = {"exitCode": fix_code}
    if fix_code != EXIT_SUCCESS:
        if not quiet:
            err_console.print("[red]Error:[/red] fix step failed; skipping publish")
        finish(EXIT_FIX_FAILURE)

    if publish_:
        if not quiet:
            console.rule("publish")
        publish_code = _run_publish(ws, repo=repo, target=target, dry_run=dry_run, quiet=quiet)
        results["publish"] = {"exitCode": publish_code}
        if publish_code != EXIT_SUCCESS:
            finish(publish_code)
    else:
        results["publish"] = {"skipped": True}

    if not quiet:
        steps = ", ".join(
            f"{name}={'skipped' if r.get('skipped') else r['exitCode']}" for name, r in results.items()
        )
        success(f"Weekly run complete ({steps})")
    finish(EXIT_SUCCESS)


if __name__ == "__main__":
    app()
