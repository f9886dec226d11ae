"""Fleet manifest loading and validation.

A manifest maps ecosystem names to lists of package entries::

    {
      "npm":   [{"name": "@org/tool", "repo": "org/tool", "audience": "front-door"}],
      "nuget": [{"name": "Org.Lib", "repo": "org/lib", "audience": "internal"}]
    }

Top-level keys whose value isn't a list (e.g. "$comment") are ignored.
JSON and YAML files are both accepted.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from pubaudit.config import ConfigError
from pubaudit.models import AUDIENCES, ManifestEntry

Manifest = dict[str, list[ManifestEntry]]

_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class ManifestError(ConfigError):
    """Raised when the manifest is missing or malformed."""


def _parse_entry(raw: Any, ecosystem: str, index: int) -> ManifestEntry:
    where = f"{ecosystem}[{index}]"
    if not isinstance(raw, dict):
        raise ManifestError(f"Manifest entry {where} must be an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"Manifest entry {where} is missing a name")

    repo = raw.get("repo")
    if not isinstance(repo, str) or not _REPO_PATTERN.match(repo):
        raise ManifestError(f"Manifest entry {where} ({name}) must have repo as 'owner/name'")

    audience = raw.get("audience", "internal")
    if audience not in AUDIENCES:
        raise ManifestError(
            f"Manifest entry {where} ({name}) has invalid audience {audience!r} "
            f"(expected one of: {', '.join(AUDIENCES)})"
        )

    deprecated = raw.get("deprecated", False)
    if not isinstance(deprecated, bool):
        raise ManifestError(f"Manifest entry {where} ({name}): deprecated must be a boolean")

    return ManifestEntry(
        name=name,
        repo=repo,
        audience=audience,
        ecosystem=ecosystem,
        deprecated=deprecated,
    )


def parse_manifest(data: Any) -> Manifest:
    """Validate decoded manifest data and build entries.

    Args:
        data: Decoded JSON/YAML document.

    Returns:
        Mapping of ecosystem to entries, in document order.

    Raises:
        ManifestError: If the document or any entry is malformed.
    """
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be an object mapping ecosystems to package lists")

    manifest: Manifest = {}
    for ecosystem, packages in data.items():
        if not isinstance(packages, list):
            continue
        manifest[str(ecosystem)] = [
            _parse_entry(raw, str(ecosystem), i) for i, raw in enumerate(packages)
        ]
    return manifest


def load_manifest(path: Path) -> Manifest:
    """Read and validate a manifest file.

    Raises:
        ManifestError: If the file is missing, unparsable or invalid.
    """
    if not path.is_file():
        raise ManifestError(f"Manifest not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ManifestError(f"Invalid manifest {path}: {e}") from e

    return parse_manifest(data)


def iter_entries(manifest: Manifest) -> Iterator[ManifestEntry]:
    """Yield every entry in manifest order."""
    for entries in manifest.values():
        yield from entries


def find_entry(manifest: Manifest, pkg: str | None, ecosystem: str | None) -> ManifestEntry | None:
    """Resolve a finding's package and ecosystem back to its manifest entry."""
    if pkg is None:
        return None
    for entry in manifest.get(ecosystem or "", []):
        if entry.name == pkg:
            return entry
    return None
