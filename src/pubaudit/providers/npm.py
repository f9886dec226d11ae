"""npm provider: audit via `npm view` and publish via `npm pack` + `npm publish`."""

from __future__ import annotations

import json
import logging
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
from pubaudit.registries import npm_view
from pubaudit.shell import hash_file, run_command

logger = logging.getLogger(__name__)

# Text the registry returns in place of a README that was never published
NO_README = "ERROR: No README data found!"


class NpmProvider(BaseProvider):
    """Audits and publishes npm packages."""

    name = "npm"
    credential_env = "NPM_TOKEN"

    def identify(self, entry: ManifestEntry) -> bool:
        return entry.ecosystem == "npm"

    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        meta = npm_view(entry.name, timeout=self.timeout)
        if meta is None:
            return AuditResult(
                UNKNOWN_VERSION,
                [Finding("RED", "npm-unreachable", f"Cannot reach {entry.name} on npm")],
            )

        version = (meta.get("dist-tags") or {}).get("latest") or meta.get("version") or UNKNOWN_VERSION
        return AuditResult(version, self.classify(entry, meta, version, ctx))

    def classify(
        self,
        entry: ManifestEntry,
        meta: dict[str, Any],
        version: str,
        ctx: SharedContext,
    ) -> list[Finding]:
        """Classify npm metadata against git state and metadata hygiene rules."""
        findings = tag_findings(entry, version, ctx)

        repo_url = _repository_url(meta.get("repository"))
        if entry.owner not in repo_url:
            findings.append(
                Finding(
                    "RED",
                    "wrong-repo-url",
                    f'{entry.name} repo URL "{repo_url}" doesn\'t match expected {entry.repo}',
                )
            )

        desc = meta.get("description") or ""
        if not desc or desc.startswith("<") or "<img" in desc:
            findings.append(
                Finding("RED", "bad-description", f"{entry.name} has missing/HTML description")
            )

        severity = audience_severity(entry)
        qualifier = "" if entry.is_front_door else " (internal)"

        if meta.get("readme") in (NO_README, ""):
            findings.append(
                Finding(severity, "missing-readme", f"{entry.name}{qualifier} has no README on npm")
            )

        if not meta.get("homepage"):
            findings.append(Finding(severity, "missing-homepage", f"{entry.name} has no homepage"))

        bugs = meta.get("bugs")
        bugs_url = bugs.get("url") if isinstance(bugs, dict) else bugs
        if not bugs_url:
            findings.append(Finding(severity, "missing-bugs-url", f"{entry.name} has no bugs URL"))

        if not meta.get("keywords"):
            findings.append(Finding(severity, "missing-keywords", f"{entry.name} has no keywords"))

        return findings

    def plan(self, entry: ManifestEntry) -> list[str]:
        return ["npm pack --json", "npm publish --access public"]

    def publish(self, entry: ManifestEntry, opts: PublishOptions) -> PublishResult:
        """Pack, hash and publish the package checked out in opts.cwd.

        The tarball is removed afterwards whether or not the push succeeded.
        """
        if not opts.dry_run and self.missing_credential():
            return PublishResult(False, error="NPM_TOKEN environment variable is not set")

        pkg_json_path = Path(opts.cwd) / "package.json"
        if not pkg_json_path.is_file():
            return PublishResult(False, error=f"No package.json found in {opts.cwd}")
        try:
            pkg_json = json.loads(pkg_json_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return PublishResult(False, error=f"Cannot read package.json: {e}")

        version = pkg_json.get("version") if isinstance(pkg_json, dict) else None
        if not version:
            return PublishResult(False, error="No version field in package.json")

        pack = run_command(["npm", "pack", "--json"], cwd=opts.cwd)
        if not pack.ok:
            return PublishResult(False, version, error=f"npm pack failed: {pack.stderr.strip()}")

        try:
            parsed = json.loads(pack.stdout)
            info = parsed[0] if isinstance(parsed, list) else parsed
            tarball = info["filename"]
        except (json.JSONDecodeError, LookupError, TypeError):
            return PublishResult(False, version, error="Failed to parse npm pack output")

        tarball_path = Path(opts.cwd) / tarball
        try:
            sha256, size = hash_file(tarball_path)

            cmd = ["npm", "publish", "--access", "public"]
            if opts.dry_run:
                cmd.insert(2, "--dry-run")
            pub = run_command(cmd, cwd=opts.cwd)
            if not pub.ok:
                return PublishResult(False, version, error=f"npm publish failed: {pub.stderr.strip()}")
        except OSError as e:
            return PublishResult(False, version, error=f"Cannot hash {tarball}: {e}")
        finally:
            tarball_path.unlink(missing_ok=True)

        artifact = Artifact(
            name=tarball,
            sha256=sha256,
            size=size,
            url=f"https://www.npmjs.com/package/{entry.name}/v/{version}",
        )
        return PublishResult(True, version, [artifact])

    def build_receipt(
        self,
        entry: ManifestEntry,
        result: PublishResult,
        commit_sha: str,
    ) -> dict[str, Any]:
        return build_publish_receipt("npm", entry, result, commit_sha)


def _repository_url(repository: Any) -> str:
    if isinstance(repository, dict):
        return str(repository.get("url") or "")
    if isinstance(repository, str):
        return repository
    return ""
