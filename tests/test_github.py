"""Tests for the gh-backed GitHub client."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from pubaudit.github import GitHubClient, GitHubError
from pubaudit.shell import CommandResult


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(stdout, "", 0)


def fail(stderr: str = "HTTP 404") -> CommandResult:
    return CommandResult("", stderr, 1)


class TestReads:
    """Tests for read helpers."""

    @patch("pubaudit.github.run_command")
    def test_list_tags(self, mock_run) -> None:
        """Test tag names are read line by line with pagination."""
        mock_run.return_value = ok("v1.0.0\nv1.1.0\n\n")
        assert GitHubClient().list_tags("o/a") == ["v1.0.0", "v1.1.0"]
        cmd = mock_run.call_args.args[0]
        assert cmd[:3] == ["gh", "api", "repos/o/a/tags"]
        assert "--paginate" in cmd

    @patch("pubaudit.github.run_command")
    def test_list_release_tags_failure(self, mock_run) -> None:
        """Test a failed call reads as no releases."""
        mock_run.return_value = fail()
        assert GitHubClient().list_release_tags("o/a") == []

    @patch("pubaudit.github.run_command")
    def test_read_file(self, mock_run) -> None:
        """Test contents are base64-decoded with their sha."""
        encoded = base64.b64encode(b'{"name": "a"}').decode()
        mock_run.return_value = ok(json.dumps({"content": encoded, "sha": "abc"}))
        remote = GitHubClient().read_file("o/a", "package.json")
        assert remote is not None
        assert remote.content == '{"name": "a"}'
        assert remote.sha == "abc"

    @patch("pubaudit.github.run_command")
    def test_read_missing_file(self, mock_run) -> None:
        """Test a missing file is None."""
        mock_run.return_value = fail()
        assert GitHubClient().read_file("o/a", "README.md") is None

    @patch("pubaudit.github.run_command")
    def test_find_files(self, mock_run) -> None:
        """Test tree paths are filtered by suffix."""
        tree = {"tree": [{"path": "src/Lib/Lib.csproj"}, {"path": "README.md"}]}
        mock_run.return_value = ok(json.dumps(tree))
        assert GitHubClient().find_files("o/a", ".csproj") == ["src/Lib/Lib.csproj"]

    @patch("pubaudit.github.run_command")
    def test_container_versions_fall_back_to_user(self, mock_run) -> None:
        """Test the user endpoint is tried after the org endpoint."""
        mock_run.side_effect = [fail(), ok(json.dumps([{"id": 1}]))]
        assert GitHubClient().list_container_versions("me", "img") == [{"id": 1}]
        assert "/users/me/" in mock_run.call_args.args[0][2]

    @patch("pubaudit.github.run_command")
    def test_container_versions_unreachable(self, mock_run) -> None:
        """Test None when neither endpoint answers."""
        mock_run.return_value = fail()
        assert GitHubClient().list_container_versions("me", "img") is None


class TestWrites:
    """Tests for write helpers."""

    @patch("pubaudit.github.run_command")
    def test_write_file_sends_sha(self, mock_run) -> None:
        """Test the update is conditional on the blob sha."""
        mock_run.return_value = ok()
        GitHubClient().write_file("o/a", "package.json", "{}", "sha1", "chore: fix")
        payload = json.loads(mock_run.call_args.kwargs["input"])
        assert payload["sha"] == "sha1"
        assert base64.b64decode(payload["content"]) == b"{}"

    @patch("pubaudit.github.run_command")
    def test_write_file_conflict(self, mock_run) -> None:
        """Test a rejected update raises GitHubError."""
        mock_run.return_value = fail("HTTP 409: sha mismatch")
        with pytest.raises(GitHubError, match="409"):
            GitHubClient().write_file("o/a", "package.json", "{}", "old", "msg")

    @patch("pubaudit.github.run_command")
    def test_update_repo(self, mock_run) -> None:
        """Test settings are PATCHed."""
        mock_run.return_value = ok()
        GitHubClient().update_repo("o/a", {"homepage": "https://x"})
        cmd = mock_run.call_args.args[0]
        assert "PATCH" in cmd

    @patch("pubaudit.github.run_command")
    def test_attach_release_asset(self, mock_run, tmp_path: Path) -> None:
        """Test upload runs after the release is found."""
        mock_run.side_effect = [ok("123"), ok()]
        receipt = tmp_path / "1.0.0.json"
        receipt.write_text("{}")
        url = GitHubClient().attach_release_asset("o/a", "v1.0.0", receipt)
        assert url == "https://github.com/o/a/releases/tag/v1.0.0"
        assert mock_run.call_args.args[0][:3] == ["gh", "release", "upload"]

    @patch("pubaudit.github.run_command")
    def test_attach_without_release(self, mock_run, tmp_path: Path) -> None:
        """Test a missing release raises before uploading."""
        mock_run.return_value = fail()
        with pytest.raises(GitHubError, match="No release"):
            GitHubClient().attach_release_asset("o/a", "v9.9.9", tmp_path / "r.json")
        assert mock_run.call_count == 1

    @patch("pubaudit.github.run_command")
    def test_create_pull_request(self, mock_run, tmp_path: Path) -> None:
        """Test the PR URL printed by gh is returned."""
        mock_run.return_value = ok("https://github.com/o/a/pull/7\n")
        assert GitHubClient().create_pull_request("t", "b", tmp_path) == "https://github.com/o/a/pull/7"
