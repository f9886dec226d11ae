"""Core data models shared by providers, fixers and the orchestrators.

Provides the manifest entry and finding types that flow through every
audit, fix and publish run.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Literal

Severity = Literal["RED", "YELLOW", "GRAY", "INFO"]
Audience = Literal["front-door", "internal"]

SEVERITIES: tuple[Severity, ...] = ("RED", "YELLOW", "GRAY", "INFO")
AUDIENCES: tuple[Audience, ...] = ("front-door", "internal")

# Sentinel version reported when a registry could not resolve one
UNKNOWN_VERSION = "?"


@dataclass(frozen=True)
class ManifestEntry:
    """A single package from the fleet manifest.

    Attributes:
        name: Package identifier on its registry (e.g. "@scope/tool").
        repo: Source repository as "owner/name".
        audience: "front-door" for public-facing packages, "internal" otherwise.
        ecosystem: Manifest section the entry came from (e.g. "npm").
        deprecated: Whether the package is marked deprecated in the manifest.
    """

    name: str
    repo: str
    audience: Audience = "internal"
    ecosystem: str = ""
    deprecated: bool = False

    @property
    def owner(self) -> str:
        """Repository owner (the part before the slash)."""
        return self.repo.split("/", 1)[0]

    @property
    def repo_name(self) -> str:
        """Repository name (the part after the slash)."""
        parts = self.repo.split("/", 1)
        return parts[1] if len(parts) == 2 else parts[0]

    @property
    def repo_slug(self) -> str:
        """Filesystem-safe slug used in receipt paths ("owner--name")."""
        return self.repo.replace("/", "--")

    @property
    def is_front_door(self) -> bool:
        return self.audience == "front-door"


@dataclass(frozen=True)
class Finding:
    """A classified drift observation.

    Attributes:
        severity: RED, YELLOW, GRAY or INFO.
        code: Machine-readable finding code (e.g. "published-not-tagged").
        msg: Human-readable description.
        pkg: Package name, added by the audit orchestrator.
        ecosystem: Manifest section, added by the audit orchestrator.
    """

    severity: Severity
    code: str
    msg: str
    pkg: str | None = None
    ecosystem: str | None = None

    def with_context(self, pkg: str, ecosystem: str) -> Finding:
        """Return a copy annotated with package and ecosystem."""
        return replace(self, pkg=pkg, ecosystem=ecosystem)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "severity": self.severity,
            "code": self.code,
            "msg": self.msg,
        }
        if self.pkg is not None:
            data["pkg"] = self.pkg
        if self.ecosystem is not None:
            data["ecosystem"] = self.ecosystem
        return data


def audience_severity(entry: ManifestEntry) -> Severity:
    """Severity for a cosmetic metadata gap, escalated for front-door packages."""
    return "YELLOW" if entry.is_front_door else "GRAY"


def count_by_severity(findings: list[Finding]) -> dict[str, int]:
    """Count findings per severity in a single pass.

    Args:
        findings: Flattened list of findings.

    Returns:
        Mapping with a key for every severity, including zero counts.
    """
    counts = {severity: 0 for severity in SEVERITIES}
    for finding in findings:
        counts[finding.severity] = counts.get(finding.severity, 0) + 1
    return counts
