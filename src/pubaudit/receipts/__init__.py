"""Receipt schemas, builders, store and verification."""

from __future__ import annotations

from pubaudit.receipts.builders import (
    build_audit_receipt,
    build_fix_receipt,
    build_publish_receipt,
    utc_timestamp,
)
from pubaudit.receipts.schema import (
    ReceiptValidationError,
    validate_audit_receipt,
    validate_fix_receipt,
    validate_publish_receipt,
    validate_receipt,
)
from pubaudit.receipts.store import ImmutabilityError, ReceiptStore
from pubaudit.receipts.verify import VerificationResult, verify_receipt_file

__all__ = [
    "ImmutabilityError",
    "ReceiptStore",
    "ReceiptValidationError",
    "VerificationResult",
    "build_audit_receipt",
    "build_fix_receipt",
    "build_publish_receipt",
    "utc_timestamp",
    "validate_audit_receipt",
    "validate_fix_receipt",
    "validate_publish_receipt",
    "validate_receipt",
    "verify_receipt_file",
]
