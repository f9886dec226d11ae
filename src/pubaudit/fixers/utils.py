"""Utility functions for fixers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

PACKAGE_JSON = "package.json"


def dump_package_json(data: dict[str, Any]) -> str:
    """Serialize package.json the way npm writes it (2-space indent, trailing newline)."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def parse_package_json(text: str) -> dict[str, Any] | None:
    """Parse package.json text, returning None if it isn't a JSON object."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def read_package_json(cwd: Path) -> tuple[dict[str, Any], Path] | None:
    """Read package.json from a local checkout.

    Args:
        cwd: Directory containing package.json.

    Returns:
        Tuple of (data, path), or None if the file is missing or invalid.
    """
    path = Path(cwd) / PACKAGE_JSON
    if not path.is_file():
        return None
    data = parse_package_json(path.read_text(encoding="utf-8"))
    if data is None:
        return None
    return data, path


def write_package_json(path: Path, data: dict[str, Any]) -> None:
    path.write_text(dump_package_json(data), encoding="utf-8")


def short_package_name(name: str) -> str:
    """Strip an npm scope: "@org/tool" -> "tool"."""
    if name.startswith("@") and "/" in name:
        return name.split("/", 1)[1]
    return name


def github_url(repo: str) -> str:
    return f"https://github.com/{repo}"
