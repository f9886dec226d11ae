"""Filesystem receipt store.

Layout under the store root::

    publish/<owner>--<name>/<target>/<version>.json   immutable
    audit/<YYYY-MM-DD>.json                           latest run of the day
    fix/<YYYY-MM-DD>-<owner>--<name>.json             latest run of the day per repo
    index.json                                        merged summary
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pubaudit.receipts import index as receipt_index
from pubaudit.receipts.index import dump_json, write_json_atomic
from pubaudit.receipts.schema import (
    validate_audit_receipt,
    validate_fix_receipt,
    validate_publish_receipt,
)

logger = logging.getLogger(__name__)

FLEET_SLUG = "fleet"


class ImmutabilityError(RuntimeError):
    """Raised when a publish receipt already exists at the target path."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Receipt already exists (immutable): {path}")


def repo_slug(repo: str) -> str:
    """Filesystem slug for a repository ("owner/name" -> "owner--name")."""
    if not repo or repo == "*":
        return FLEET_SLUG
    return repo.replace("/", "--")


class ReceiptStore:
    """Reads and writes receipts under a root directory.

    Attributes:
        root: Store root (usually <project>/receipts).
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    # ---- Publish ----

    def publish_path(self, owner: str, name: str, target: str, version: str) -> Path:
        return self.root / "publish" / f"{owner}--{name}" / target / f"{version}.json"

    def write_publish(self, receipt: dict[str, Any]) -> Path:
        """Validate and persist a publish receipt, then update the index.

        Returns:
            Path of the written receipt.

        Raises:
            ReceiptValidationError: If the receipt is invalid.
            ImmutabilityError: If a receipt already exists for this version.
                The existing file is left untouched.
        """
        validate_publish_receipt(receipt)
        repo = receipt["repo"]
        path = self.publish_path(repo["owner"], repo["name"], receipt["target"], receipt["version"])
        path.parent.mkdir(parents=True, exist_ok=True)

        # Exclusive create: an existing receipt is never overwritten
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(dump_json(receipt))
        except FileExistsError:
            raise ImmutabilityError(path) from None

        receipt_index.update_publish_entry(self.root, receipt)
        logger.debug("Wrote publish receipt %s", path)
        return path

    def read_publish(self, slug: str, target: str, version: str) -> dict[str, Any] | None:
        """Read a publish receipt by "owner--name" slug, target and version."""
        path = self.root / "publish" / slug / target / f"{version}.json"
        if not path.is_file():
            return None
        data = json.loads(path.read_text(encoding="utf-8"))
        return data if isinstance(data, dict) else None

    # ---- Audit ----

    def audit_path(self, timestamp: str) -> Path:
        return self.root / "audit" / f"{timestamp[:10]}.json"

    def write_audit(self, receipt: dict[str, Any]) -> Path:
        """Persist an audit receipt, replacing an earlier one from the same day."""
        validate_audit_receipt(receipt)
        path = self.audit_path(receipt["timestamp"])
        write_json_atomic(path, receipt)
        receipt_index.update_latest_audit(self.root, receipt)
        logger.debug("Wrote audit receipt %s", path)
        return path

    # ---- Fix ----

    def fix_path(self, timestamp: str, repo: str) -> Path:
        return self.root / "fix" / f"{timestamp[:10]}-{repo_slug(repo)}.json"

    def write_fix(self, receipt: dict[str, Any]) -> Path:
        """Persist a fix receipt, replacing an earlier one for the same day and repo."""
        validate_fix_receipt(receipt)
        path = self.fix_path(receipt["timestamp"], receipt["repo"])
        write_json_atomic(path, receipt)
        receipt_index.update_fix_entry(self.root, receipt)
        logger.debug("Wrote fix receipt %s", path)
        return path

    def load_index(self) -> dict[str, Any]:
        return receipt_index.load_index(self.root)
