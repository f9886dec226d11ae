"""Audit runner for classifying publishing drift across the fleet.

Runs the GitHub context provider and the matching ecosystem providers for
every manifest entry and aggregates their findings into a report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pubaudit.context import SharedContext
from pubaudit.manifest import Manifest
from pubaudit.models import (
    UNKNOWN_VERSION,
    Finding,
    ManifestEntry,
    count_by_severity,
)
from pubaudit.providers.base import AuditResult, BaseProvider
from pubaudit.providers.registry import CONTEXT_PROVIDER, context_provider, match_providers
from pubaudit.receipts.builders import utc_timestamp

logger = logging.getLogger(__name__)


@dataclass
class PackageResult:
    """Audit outcome for one manifest entry.

    Attributes:
        entry: The audited manifest entry.
        version: First resolved version, or UNKNOWN_VERSION.
        findings: Findings annotated with pkg and ecosystem.
    """

    entry: ManifestEntry
    version: str
    findings: list[Finding]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.entry.name,
            "version": self.version,
            "repo": self.entry.repo,
            "audience": self.entry.audience,
            "findings": [
                {"severity": f.severity, "code": f.code, "msg": f.msg} for f in self.findings
            ],
        }


@dataclass
class AuditReport:
    """Aggregated result of an audit run.

    Attributes:
        generated: ISO timestamp of the run.
        sections: Package results per ecosystem, in manifest order.
        all_findings: Flattened findings across every package.
        counts: Findings per severity, with all four keys present.
    """

    generated: str
    sections: dict[str, list[PackageResult]] = field(default_factory=dict)
    all_findings: list[Finding] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    @property
    def total_packages(self) -> int:
        return sum(len(results) for results in self.sections.values())

    @property
    def has_drift(self) -> bool:
        """True if any finding is RED."""
        return self.counts.get("RED", 0) > 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            name: [r.to_dict() for r in results] for name, results in self.sections.items()
        }
        data["generated"] = self.generated
        data["counts"] = dict(self.counts)
        data["totalPackages"] = self.total_packages
        return data


def _unreachable(provider: BaseProvider, entry: ManifestEntry, error: Exception) -> AuditResult:
    return AuditResult(
        UNKNOWN_VERSION,
        [Finding("RED", "registry-unreachable", f"{provider.name}: {entry.name} audit failed: {error}")],
    )


class AuditRunner:
    """Runs providers over a manifest.

    A provider that raises never aborts the run: its exception becomes a
    single RED `registry-unreachable` finding for that entry.

    Attributes:
        providers: Active providers in registration order.
        ctx: Shared tags/releases cache, reused across runs if passed in.
    """

    def __init__(self, providers: list[BaseProvider], ctx: SharedContext | None = None) -> None:
        self.providers = providers
        self.ctx = ctx or SharedContext()
        self._context = context_provider(providers)
        self._ecosystem = [p for p in providers if p.name != CONTEXT_PROVIDER]

    def _safe_audit(self, provider: BaseProvider, entry: ManifestEntry) -> AuditResult:
        try:
            return provider.audit(entry, self.ctx)
        except Exception as e:
            logger.warning("%s provider failed on %s: %s", provider.name, entry.name, e)
            return _unreachable(provider, entry, e)

    def audit_entry(self, entry: ManifestEntry) -> PackageResult:
        """Audit one entry with the context provider and its ecosystem providers."""
        findings: list[Finding] = []

        if self._context is not None and self._context.identify(entry):
            findings.extend(self._safe_audit(self._context, entry).findings)

        version = UNKNOWN_VERSION
        for provider in match_providers(self._ecosystem, entry):
            result = self._safe_audit(provider, entry)
            if version == UNKNOWN_VERSION and result.version and result.version != UNKNOWN_VERSION:
                version = result.version
            findings.extend(result.findings)

        annotated = [f.with_context(entry.name, entry.ecosystem) for f in findings]
        return PackageResult(entry=entry, version=version, findings=annotated)

    def run(self, manifest: Manifest) -> AuditReport:
        """Audit every entry of the manifest.

        Args:
            manifest: Ecosystem sections from load_manifest().

        Returns:
            AuditReport with per-section results and severity counts.
        """
        report = AuditReport(generated=utc_timestamp())

        for ecosystem, entries in manifest.items():
            logger.info("Auditing %d %s packages...", len(entries), ecosystem)
            results = report.sections.setdefault(ecosystem, [])
            for entry in entries:
                result = self.audit_entry(entry)
                results.append(result)
                report.all_findings.extend(result.findings)

        report.counts = count_by_severity(report.all_findings)
        return report
