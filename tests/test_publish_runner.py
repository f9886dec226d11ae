"""Tests for the publish orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from pubaudit.context import SharedContext
from pubaudit.github import GitHubClient, GitHubError
from pubaudit.models import ManifestEntry
from pubaudit.providers import Artifact, AuditResult, BaseProvider, PublishOptions, PublishResult
from pubaudit.publish_runner import MissingCredentialsError, PublishRunner, preflight
from pubaudit.receipts import ReceiptStore, build_publish_receipt

SHA = "0123456789abcdef0123456789abcdef01234567"


class FakePublisher(BaseProvider):
    name = "npm"
    credential_env = "FAKE_REGISTRY_TOKEN"

    def __init__(self, results: dict[str, PublishResult] | None = None) -> None:
        super().__init__(github=MagicMock(spec=GitHubClient))
        self.results = results or {}
        self.published: list[str] = []

    def identify(self, entry: ManifestEntry) -> bool:
        return entry.ecosystem == "npm"

    def audit(self, entry: ManifestEntry, ctx: SharedContext) -> AuditResult:
        return AuditResult()

    def plan(self, entry: ManifestEntry) -> list[str]:
        return [f"pack {entry.name}", f"push {entry.name}"]

    def publish(self, entry: ManifestEntry, opts: PublishOptions) -> PublishResult:
        self.published.append(entry.name)
        return self.results.get(entry.name) or ok_result("1.0.0")

    def build_receipt(self, entry: ManifestEntry, result: PublishResult, commit_sha: str) -> dict[str, Any]:
        return build_publish_receipt("npm", entry, result, commit_sha)


def ok_result(version: str) -> PublishResult:
    artifact = Artifact(name=f"pkg-{version}.tgz", sha256="a" * 64, size=10, url="https://npm/x")
    return PublishResult(True, version, [artifact])


ENTRIES = [
    ManifestEntry("a", "o/a", ecosystem="npm"),
    ManifestEntry("b", "o/b", ecosystem="npm"),
]


@pytest.fixture
def token(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FAKE_REGISTRY_TOKEN", "secret")


class TestPreflight:
    """Tests for preflight."""

    def test_missing_credentials_raise(self) -> None:
        """Test a missing token stops the run before any publish."""
        provider = FakePublisher()
        with pytest.raises(MissingCredentialsError) as exc:
            PublishRunner([provider], ReceiptStore(Path("/unused"))).run(ENTRIES)
        assert exc.value.missing == ["FAKE_REGISTRY_TOKEN"]
        assert provider.published == []

    def test_dry_run_reports_only(self) -> None:
        """Test dry-run lists missing credentials without raising."""
        assert preflight(ENTRIES, [FakePublisher()], dry_run=True) == ["FAKE_REGISTRY_TOKEN"]

    def test_present(self, token: None) -> None:
        """Test nothing is missing when the token is set."""
        assert preflight(ENTRIES, [FakePublisher()]) == []


@patch("pubaudit.publish_runner.get_commit_sha", return_value=SHA)
class TestPublishRunner:
    """Tests for PublishRunner.run."""

    def test_writes_receipts(self, _sha, token: None, tmp_path: Path) -> None:
        """Test each success becomes a receipt and an index entry."""
        store = ReceiptStore(tmp_path / "receipts")
        outcome = PublishRunner([FakePublisher()], store).run(ENTRIES, cwd=tmp_path)

        assert outcome.ok
        assert outcome.receipts == [
            store.publish_path("o", "a", "npm", "1.0.0"),
            store.publish_path("o", "b", "npm", "1.0.0"),
        ]
        assert set(store.load_index()["publish"]) == {"npm/a", "npm/b"}

    def test_dry_run_writes_nothing(self, _sha, tmp_path: Path) -> None:
        """Test dry-run publishes without receipts."""
        store = ReceiptStore(tmp_path / "receipts")
        outcome = PublishRunner([FakePublisher()], store).run(ENTRIES, dry_run=True)
        assert outcome.receipts == []
        assert not (tmp_path / "receipts").exists()
        assert len(outcome.results) == 2
        assert outcome.planned == {"npm/a": ["pack a", "push a"], "npm/b": ["pack b", "push b"]}

    def test_immutability_isolated(self, _sha, token: None, tmp_path: Path) -> None:
        """Test an existing receipt fails one entry without touching others."""
        store = ReceiptStore(tmp_path / "receipts")
        existing = store.publish_path("o", "a", "npm", "1.0.0")
        existing.parent.mkdir(parents=True)
        existing.write_text("original")

        outcome = PublishRunner([FakePublisher()], store).run(ENTRIES, cwd=tmp_path)

        assert existing.read_text() == "original"
        assert [f.package_name for f in outcome.failures] == ["a"]
        assert "immutable" in outcome.failures[0].error
        assert outcome.receipts == [store.publish_path("o", "b", "npm", "1.0.0")]
        assert set(store.load_index()["publish"]) == {"npm/b"}

    def test_publish_failure_continues(self, _sha, token: None, tmp_path: Path) -> None:
        """Test a failed publish is recorded and siblings still run."""
        provider = FakePublisher({"a": PublishResult(False, error="E403")})
        outcome = PublishRunner([provider], ReceiptStore(tmp_path)).run(ENTRIES, cwd=tmp_path)
        assert provider.published == ["a", "b"]
        assert [(f.package_name, f.error) for f in outcome.failures] == [("a", "E403")]

    def test_attach_receipts(self, _sha, token: None, tmp_path: Path) -> None:
        """Test receipts are uploaded to the v<version> release when enabled."""
        github = MagicMock(spec=GitHubClient)
        github.attach_release_asset.side_effect = ["https://github.com/o/a/releases/tag/v1.0.0", GitHubError("no release")]
        runner = PublishRunner([FakePublisher()], ReceiptStore(tmp_path), github=github, attach_receipts=True)
        outcome = runner.run(ENTRIES, cwd=tmp_path)

        assert github.attach_release_asset.call_args_list[0].args[:2] == ("o/a", "v1.0.0")
        assert outcome.attachments == ["https://github.com/o/a/releases/tag/v1.0.0"]
        assert outcome.ok

    def test_commit_sha_unavailable(self, mock_sha, token: None, tmp_path: Path) -> None:
        """Test a missing commit SHA fails the receipt, not the run."""
        mock_sha.side_effect = RuntimeError("Not in a git repo or git not available")
        outcome = PublishRunner([FakePublisher()], ReceiptStore(tmp_path)).run(ENTRIES[:1], cwd=tmp_path)
        assert outcome.receipts == []
        assert "Not in a git repo" in outcome.failures[0].error

    def test_provider_exception_isolated(self, _sha, token: None, tmp_path: Path) -> None:
        """Test a provider that raises fails its entry and the next entry still publishes."""

        class RaisingPublisher(FakePublisher):
            def publish(self, entry: ManifestEntry, opts: PublishOptions) -> PublishResult:
                if entry.name == "a":
                    raise OSError("disk went away")
                return super().publish(entry, opts)

        provider = RaisingPublisher()
        store = ReceiptStore(tmp_path / "receipts")
        outcome = PublishRunner([provider], store).run(ENTRIES, cwd=tmp_path)

        assert provider.published == ["b"]
        assert [f.package_name for f in outcome.failures] == ["a"]
        assert "disk went away" in outcome.failures[0].error
        assert not outcome.results[0][2].success
        assert outcome.receipts == [store.publish_path("o", "b", "npm", "1.0.0")]
