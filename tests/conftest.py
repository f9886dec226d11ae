"""Pytest configuration and fixtures for pubaudit tests."""

import os

# Set a fixed terminal width to prevent line wrapping issues in CI
# This must be set before any Rich imports
os.environ.setdefault("COLUMNS", "200")
os.environ.setdefault("LINES", "50")
# Disable Rich's terminal detection to ensure consistent output
os.environ.setdefault("TERM", "dumb")

import pytest  # noqa: E402

from pubaudit.models import ManifestEntry  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the caller's PUBAUDIT_* and registry credentials out of tests."""
    for key in list(os.environ):
        if key.startswith("PUBAUDIT_"):
            monkeypatch.delenv(key, raising=False)
    for key in ("NPM_TOKEN", "NUGET_API_KEY"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def npm_entry() -> ManifestEntry:
    return ManifestEntry(
        name="@mcptoolshop/file-compass",
        repo="mcp-tool-shop/file-compass",
        audience="front-door",
        ecosystem="npm",
    )


@pytest.fixture
def nuget_entry() -> ManifestEntry:
    return ManifestEntry(
        name="ToolShop.Core",
        repo="mcp-tool-shop/toolshop-core",
        audience="internal",
        ecosystem="nuget",
    )
