"""GHCR provider: audits container images through the GitHub Packages API."""

from __future__ import annotations

import re
from typing import Any

from pubaudit.context import SharedContext
from pubaudit.models import UNKNOWN_VERSION, Finding, ManifestEntry
from pubaudit.providers.base import AuditResult, BaseProvider, tag_findings

_NUMERIC_TAG = re.compile(r"^\d")


def latest_image_version(versions: list[dict[str, Any]]) -> str:
    """Pick the version tag of the newest image.

    The API returns versions newest first. A tag starting with a digit is
    preferred over labels such as "latest".
    """
    if not versions:
        return UNKNOWN_VERSION
    metadata = versions[0].get("metadata") or {}
    tags = (metadata.get("container") or {}).get("tags") or []
    for tag in tags:
        if _NUMERIC_TAG.match(tag):
            return str(tag)
    return str(tags[0]) if tags else UNKNOWN_VERSION


class GhcrProvider(BaseProvider):
    """Audits images on ghcr.io. Publishing is not supported."""

    name = "ghcr"

    def identify(self, entry: ManifestEntry) -> bool:
        return entry.ecosystem == "ghcr"

    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        versions = self.github.list_container_versions(entry.owner, entry.name)
        if versions is None:
            return AuditResult(
                UNKNOWN_VERSION,
                [Finding("RED", "ghcr-unreachable", f"Cannot reach {entry.name} on ghcr.io")],
            )
        if not versions:
            return AuditResult(
                UNKNOWN_VERSION,
                [Finding("RED", "ghcr-no-versions", f"{entry.name} has no versions on ghcr.io")],
            )

        version = latest_image_version(versions)
        if version == UNKNOWN_VERSION:
            return AuditResult(version, [])

        subject = f"{entry.name} image tagged {version}"
        return AuditResult(version, tag_findings(entry, version, ctx, subject))
