"""NuGet provider: audit via the search index and flat container, publish via dotnet."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Any

from pubaudit.context import SharedContext
from pubaudit.models import UNKNOWN_VERSION, Finding, ManifestEntry, audience_severity
from pubaudit.providers.base import (
    Artifact,
    AuditResult,
    BaseProvider,
    PublishOptions,
    PublishResult,
    tag_findings,
)
from pubaudit.receipts.builders import build_publish_receipt
from pubaudit.registries import nuget_flat_versions, nuget_search
from pubaudit.shell import hash_file, run_command

logger = logging.getLogger(__name__)

NUGET_SOURCE = "https://api.nuget.org/v3/index.json"
PACK_OUTPUT_DIR = "nupkg-output"


class NuGetProvider(BaseProvider):
    """Audits and publishes NuGet packages.

    The flat container lists a new version minutes after a push while the
    search index can lag behind by hours. During that window the search
    metadata describes the previous version, so metadata findings are
    suppressed and a single INFO finding is reported instead.
    """

    name = "nuget"
    credential_env = "NUGET_API_KEY"

    def identify(self, entry: ManifestEntry) -> bool:
        return entry.ecosystem == "nuget"

    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        meta = nuget_search(entry.name, timeout=self.timeout)
        flat_versions = nuget_flat_versions(entry.name, timeout=self.timeout)

        if flat_versions:
            version = flat_versions[-1]
        elif meta is not None and meta.get("version"):
            version = str(meta["version"])
        else:
            version = UNKNOWN_VERSION

        return AuditResult(version, self.classify(entry, meta, flat_versions, ctx))

    def classify(
        self,
        entry: ManifestEntry,
        meta: dict[str, Any] | None,
        flat_versions: list[str],
        ctx: SharedContext,
    ) -> list[Finding]:
        if meta is None:
            return [Finding("RED", "nuget-unreachable", f"Cannot reach {entry.name} on NuGet")]

        search_version = meta.get("version")
        latest_flat = flat_versions[-1] if flat_versions else None
        indexing_lag = bool(latest_flat) and latest_flat != search_version
        version = latest_flat or search_version or UNKNOWN_VERSION

        findings = tag_findings(entry, version, ctx, check_release=False)

        if entry.is_front_door and not indexing_lag:
            if not meta.get("projectUrl"):
                findings.append(
                    Finding("YELLOW", "missing-project-url", f"{entry.name} has no projectUrl on NuGet")
                )
            if not meta.get("iconUrl"):
                findings.append(
                    Finding("YELLOW", "missing-icon", f"{entry.name} (front-door) has no icon")
                )

        if indexing_lag:
            findings.append(
                Finding(
                    "INFO",
                    "pending-index",
                    f"{entry.name} v{latest_flat} published but search API still shows "
                    f"v{search_version}; retry in 60-120 min",
                )
            )

        if not meta.get("description"):
            findings.append(
                Finding(audience_severity(entry), "missing-description", f"{entry.name} has no description")
            )

        return findings

    def plan(self, entry: ManifestEntry) -> list[str]:
        return [
            f"dotnet pack -c Release -o {PACK_OUTPUT_DIR}",
            f"dotnet nuget push {entry.name}.<version>.nupkg --source {NUGET_SOURCE} --skip-duplicate",
        ]

    def publish(self, entry: ManifestEntry, opts: PublishOptions) -> PublishResult:
        """Pack, hash and push the package checked out in opts.cwd.

        The pack output directory is removed on every exit path.
        """
        api_key = None
        if not opts.dry_run:
            if self.missing_credential():
                return PublishResult(False, error="NUGET_API_KEY environment variable is not set")
            api_key = os.environ.get(self.credential_env or "")

        output_dir = Path(opts.cwd) / PACK_OUTPUT_DIR
        try:
            return self._pack_and_push(entry, opts, output_dir, api_key)
        finally:
            shutil.rmtree(output_dir, ignore_errors=True)

    def _pack_and_push(
        self,
        entry: ManifestEntry,
        opts: PublishOptions,
        output_dir: Path,
        api_key: str | None,
    ) -> PublishResult:
        pack = run_command(["dotnet", "pack", "-c", "Release", "-o", PACK_OUTPUT_DIR], cwd=opts.cwd)
        if not pack.ok:
            return PublishResult(False, error=f"dotnet pack failed: {pack.stderr.strip()}")

        if not output_dir.is_dir():
            return PublishResult(False, error=f"{PACK_OUTPUT_DIR} directory not created by dotnet pack")

        packages = sorted(
            p.name
            for p in output_dir.iterdir()
            if p.name.endswith(".nupkg") and not p.name.endswith(".symbols.nupkg")
        )
        prefix = entry.name.lower() + "."
        target = next((p for p in packages if p.lower().startswith(prefix)), None)
        if target is None:
            found = ", ".join(packages) or "none"
            return PublishResult(
                False,
                error=f'No .nupkg found matching "{entry.name}" in {PACK_OUTPUT_DIR}/ (found: {found})',
            )

        # PackageName.1.2.3.nupkg
        version = target[: -len(".nupkg")][len(prefix) :]
        if not version:
            return PublishResult(False, error=f"Could not parse version from {target}")

        package_path = output_dir / target
        try:
            sha256, size = hash_file(package_path)
        except OSError as e:
            return PublishResult(False, version, error=f"Could not hash {target}: {e}")

        if not opts.dry_run:
            push = run_command(
                [
                    "dotnet", "nuget", "push", str(package_path),
                    "--api-key", api_key or "",
                    "--source", NUGET_SOURCE,
                    "--skip-duplicate",
                ],
                cwd=opts.cwd,
            )
            if not push.ok:
                return PublishResult(False, version, error=f"dotnet nuget push failed: {push.stderr.strip()}")

        artifact = Artifact(
            name=target,
            sha256=sha256,
            size=size,
            url=f"https://www.nuget.org/packages/{entry.name}/{version}",
        )
        return PublishResult(True, version, [artifact])

    def build_receipt(
        self,
        entry: ManifestEntry,
        result: PublishResult,
        commit_sha: str,
    ) -> dict[str, Any]:
        return build_publish_receipt("nuget", entry, result, commit_sha)
