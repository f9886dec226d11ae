"""pubaudit - publishing-metadata audit, repair and receipts for a package fleet."""

__version__ = "0.1.0"
