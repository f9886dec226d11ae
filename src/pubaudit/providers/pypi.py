"""PyPI provider: audits projects through the PyPI JSON API."""

from __future__ import annotations

from typing import Any

from pubaudit.context import SharedContext
from pubaudit.models import UNKNOWN_VERSION, Finding, ManifestEntry, audience_severity
from pubaudit.providers.base import AuditResult, BaseProvider, tag_findings
from pubaudit.registries import pypi_metadata


class PyPIProvider(BaseProvider):
    """Audits Python packages on pypi.org. Publishing is not supported."""

    name = "pypi"

    def identify(self, entry: ManifestEntry) -> bool:
        return entry.ecosystem == "pypi"

    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        meta = pypi_metadata(entry.name, timeout=self.timeout)
        if meta is None:
            return AuditResult(
                UNKNOWN_VERSION,
                [Finding("RED", "pypi-unreachable", f"Cannot reach {entry.name} on PyPI")],
            )

        info: dict[str, Any] = meta.get("info") or {}
        version = info.get("version") or UNKNOWN_VERSION

        findings = tag_findings(entry, version, ctx)

        if not info.get("summary"):
            findings.append(
                Finding(audience_severity(entry), "missing-description", f"{entry.name} has no summary on PyPI")
            )

        project_urls = info.get("project_urls") or {}
        if not (info.get("home_page") or project_urls.get("Homepage")):
            findings.append(
                Finding(audience_severity(entry), "missing-homepage", f"{entry.name} has no homepage on PyPI")
            )

        return AuditResult(version, findings)
