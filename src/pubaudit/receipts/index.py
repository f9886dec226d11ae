"""Maintenance of receipts/index.json.

The index is a single-file summary of the store: the latest audit, the
latest publish per target/package and the latest fix per repository.
Every update is a read-merge-write and the write replaces the file
atomically, so a failed write leaves the previous index intact.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pubaudit.receipts.schema import ReceiptValidationError

INDEX_FILENAME = "index.json"


def dump_json(data: Any) -> str:
    """Serialize receipt data: 2-space indent and a trailing newline."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to path through a temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(dump_json(data))
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def load_index(root: Path) -> dict[str, Any]:
    """Read the index, or return an empty one if it doesn't exist.

    Raises:
        ReceiptValidationError: If an existing index is not a JSON object.
    """
    path = root / INDEX_FILENAME
    if not path.is_file():
        return {"latestAudit": None, "publish": {}}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ReceiptValidationError(f"{path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ReceiptValidationError(f"{path} must contain a JSON object")
    return data


def save_index(root: Path, index: dict[str, Any]) -> None:
    write_json_atomic(root / INDEX_FILENAME, index)


def update_latest_audit(root: Path, receipt: dict[str, Any]) -> None:
    index = load_index(root)
    index["latestAudit"] = {
        "date": receipt["timestamp"],
        "counts": receipt["counts"],
        "totalPackages": receipt["totalPackages"],
    }
    save_index(root, index)


def update_publish_entry(root: Path, receipt: dict[str, Any]) -> None:
    index = load_index(root)
    publish = index.setdefault("publish", {})
    publish[f"{receipt['target']}/{receipt['packageName']}"] = {
        "version": receipt["version"],
        "timestamp": receipt["timestamp"],
        "commitSha": receipt["commitSha"],
    }
    save_index(root, index)


def update_fix_entry(root: Path, receipt: dict[str, Any]) -> None:
    index = load_index(root)
    fixes = index.setdefault("fix", {})
    fixes[receipt.get("repo") or "fleet"] = {
        "timestamp": receipt["timestamp"],
        "mode": receipt["mode"],
        "changesCount": len(receipt.get("changes") or []),
        "dryRun": bool(receipt.get("dryRun", False)),
    }
    save_index(root, index)
