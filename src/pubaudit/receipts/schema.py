"""Receipt validation.

Three receipt kinds share the store: immutable publish receipts, daily
audit receipts and per-repo fix receipts. Each validator raises
ReceiptValidationError with the first problem it finds.
"""

from __future__ import annotations

import re
from typing import Any

SCHEMA_VERSION = "1.0.0"

VALID_TARGETS = ("npm", "nuget", "pypi", "ghcr")
FIX_MODES = ("local", "remote", "pr", "dry-run")
COUNT_KEYS = ("RED", "YELLOW", "GRAY", "INFO")

PUBLISH_REQUIRED = (
    "schemaVersion", "repo", "target", "version",
    "packageName", "commitSha", "timestamp", "artifacts",
)
AUDIT_REQUIRED = ("schemaVersion", "type", "timestamp", "counts", "totalPackages")
FIX_REQUIRED = ("schemaVersion", "type", "timestamp", "repo", "mode", "dryRun", "changes")

_COMMIT_SHA = re.compile(r"^[0-9a-f]{40}$")
_SHA256 = re.compile(r"^[0-9a-f]{64}$")


class ReceiptValidationError(ValueError):
    """Raised when a receipt doesn't match its schema."""


def _require(receipt: Any, required: tuple[str, ...], kind: str) -> None:
    if not isinstance(receipt, dict):
        raise ReceiptValidationError("Receipt must be an object")
    missing = [f for f in required if f not in receipt]
    if missing:
        raise ReceiptValidationError(f"{kind} receipt missing required field(s): {', '.join(missing)}")
    if receipt["schemaVersion"] != SCHEMA_VERSION:
        raise ReceiptValidationError(f"Unknown schemaVersion: {receipt['schemaVersion']}")


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_path_segment(value: str) -> bool:
    # Used verbatim as a directory or file name under the receipts root
    return value != "." and ".." not in value and "/" not in value and "\\" not in value


def _validate_artifact(artifact: Any) -> None:
    if not isinstance(artifact, dict):
        raise ReceiptValidationError("artifact must be an object")
    name = artifact.get("name")
    if not _non_empty_str(name):
        raise ReceiptValidationError("artifact.name required")
    sha256 = artifact.get("sha256")
    if not isinstance(sha256, str) or not _SHA256.match(sha256):
        raise ReceiptValidationError(f"Invalid artifact sha256 for {name}: {sha256}")
    size = artifact.get("size")
    if not _is_int(size) or size < 0:
        raise ReceiptValidationError(f"Invalid artifact size for {name}: {size}")
    if not _non_empty_str(artifact.get("url")):
        raise ReceiptValidationError(f"artifact {name} missing url")


def validate_publish_receipt(receipt: Any) -> None:
    """Validate a publish receipt.

    Raises:
        ReceiptValidationError: On the first schema violation.
    """
    _require(receipt, PUBLISH_REQUIRED, "Publish")

    repo = receipt["repo"]
    if not isinstance(repo, dict) or not repo.get("owner") or not repo.get("name"):
        raise ReceiptValidationError("repo must have owner and name")
    for field in ("owner", "name"):
        if not isinstance(repo[field], str) or not _is_path_segment(repo[field]):
            raise ReceiptValidationError(f"repo.{field} must not contain path separators or '..'")

    if receipt["target"] not in VALID_TARGETS:
        raise ReceiptValidationError(
            f"Invalid target: {receipt['target']} (expected one of {', '.join(VALID_TARGETS)})"
        )

    for field in ("version", "packageName", "timestamp"):
        if not _non_empty_str(receipt[field]):
            raise ReceiptValidationError(f"{field} must be a non-empty string")
    if not _is_path_segment(receipt["version"]):
        raise ReceiptValidationError(
            f"Invalid version: {receipt['version']!r} (path separators and '..' not allowed)"
        )

    sha = receipt["commitSha"]
    if not isinstance(sha, str) or not _COMMIT_SHA.match(sha):
        raise ReceiptValidationError("commitSha must be a 40-character lowercase hex string")

    if not isinstance(receipt["artifacts"], list):
        raise ReceiptValidationError("artifacts must be an array")
    for artifact in receipt["artifacts"]:
        _validate_artifact(artifact)


def validate_audit_receipt(receipt: Any) -> None:
    """Validate an audit receipt.

    Raises:
        ReceiptValidationError: On the first schema violation.
    """
    _require(receipt, AUDIT_REQUIRED, "Audit")
    if receipt["type"] != "audit":
        raise ReceiptValidationError(f"Audit receipt type must be 'audit', got {receipt['type']!r}")
    if not _non_empty_str(receipt["timestamp"]):
        raise ReceiptValidationError("timestamp must be a non-empty string")

    counts = receipt["counts"]
    if not isinstance(counts, dict):
        raise ReceiptValidationError("counts must be an object")
    for key in COUNT_KEYS:
        if not _is_int(counts.get(key)) or counts[key] < 0:
            raise ReceiptValidationError(f"counts.{key} must be a non-negative integer")

    total = receipt["totalPackages"]
    if not _is_int(total) or total < 0:
        raise ReceiptValidationError("totalPackages must be a non-negative integer")


def validate_fix_receipt(receipt: Any) -> None:
    """Validate a fix receipt.

    Raises:
        ReceiptValidationError: On the first schema violation.
    """
    _require(receipt, FIX_REQUIRED, "Fix")
    if receipt["type"] != "fix":
        raise ReceiptValidationError(f"Fix receipt type must be 'fix', got {receipt['type']!r}")
    if not _non_empty_str(receipt["timestamp"]):
        raise ReceiptValidationError("timestamp must be a non-empty string")
    if not _non_empty_str(receipt["repo"]):
        raise ReceiptValidationError("repo must be a non-empty string")
    if receipt["mode"] not in FIX_MODES:
        raise ReceiptValidationError(
            f"Invalid mode: {receipt['mode']} (expected one of {', '.join(FIX_MODES)})"
        )
    if not isinstance(receipt["dryRun"], bool):
        raise ReceiptValidationError("dryRun must be a boolean")

    changes = receipt["changes"]
    if not isinstance(changes, list):
        raise ReceiptValidationError("changes must be an array")
    for change in changes:
        if not isinstance(change, dict) or not _non_empty_str(change.get("fixerCode")):
            raise ReceiptValidationError("each change must be an object with a fixerCode")


def receipt_kind(receipt: Any) -> str | None:
    """Detect the receipt kind: "audit", "fix", "publish" or None."""
    if not isinstance(receipt, dict):
        return None
    if receipt.get("type") in ("audit", "fix"):
        return str(receipt["type"])
    if "target" in receipt or "packageName" in receipt:
        return "publish"
    return None


def validate_receipt(receipt: Any) -> str:
    """Validate a receipt of any kind.

    Returns:
        The detected kind.

    Raises:
        ReceiptValidationError: If the kind is unknown or validation fails.
    """
    kind = receipt_kind(receipt)
    if kind == "audit":
        validate_audit_receipt(receipt)
    elif kind == "fix":
        validate_fix_receipt(receipt)
    elif kind == "publish":
        validate_publish_receipt(receipt)
    else:
        raise ReceiptValidationError("Unknown receipt type (no 'type' or 'target' field)")
    return kind
