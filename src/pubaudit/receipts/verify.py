"""Standalone verification of a receipt file."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pubaudit.receipts.schema import ReceiptValidationError, receipt_kind, validate_receipt


@dataclass
class Check:
    """One verification step."""

    check: str
    passed: bool
    msg: str | None = None
    kind: str | None = None
    sha256: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"check": self.check, "pass": self.passed}
        if self.kind:
            data["type"] = self.kind
        if self.msg:
            data["msg"] = self.msg
        if self.sha256:
            data["sha256"] = self.sha256
        return data


@dataclass
class VerificationResult:
    checks: list[Check] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return bool(self.checks) and all(c.passed for c in self.checks)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "checks": [c.to_dict() for c in self.checks]}


def verify_receipt_file(path: Path) -> VerificationResult:
    """Verify a receipt file.

    Runs, in order: existence, JSON parse, schema validation for the
    detected receipt kind, and the SHA-256 of the file bytes. Stops at the
    first failing read step.

    Args:
        path: Receipt file to check.

    Returns:
        VerificationResult; valid only if every check passed.
    """
    result = VerificationResult()

    if not path.is_file():
        result.checks.append(Check("exists", False, f"File not found: {path}"))
        return result
    result.checks.append(Check("exists", True))

    content = path.read_bytes()
    try:
        receipt = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        result.checks.append(Check("json", False, f"Invalid JSON: {e}"))
        return result
    result.checks.append(Check("json", True))

    kind = receipt_kind(receipt)
    try:
        validate_receipt(receipt)
        result.checks.append(Check("schema", True, kind=kind))
    except ReceiptValidationError as e:
        result.checks.append(Check("schema", False, str(e), kind=kind))

    result.checks.append(Check("integrity", True, sha256=hashlib.sha256(content).hexdigest()))
    return result
