"""Tests for subprocess and hashing helpers."""

from __future__ import annotations

import hashlib
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from pubaudit.shell import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    CommandResult,
    get_commit_sha,
    hash_file,
    run_command,
)


class TestRunCommand:
    """Tests for run_command."""

    def test_captures_output(self) -> None:
        """Test stdout and exit code are captured."""
        result = run_command([sys.executable, "-c", "print('hello')"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_nonzero_exit(self) -> None:
        """Test a failing command does not raise."""
        result = run_command([sys.executable, "-c", "import sys; sys.exit(3)"])
        assert result.exit_code == 3
        assert not result.ok

    def test_stdin(self) -> None:
        """Test input is passed on stdin."""
        result = run_command(
            [sys.executable, "-c", "import sys; print(sys.stdin.read().upper())"],
            input="abc",
        )
        assert result.stdout.strip() == "ABC"

    def test_missing_program(self) -> None:
        """Test a missing executable yields 127."""
        result = run_command(["pubaudit-definitely-not-installed"])
        assert result.exit_code == EXIT_NOT_FOUND

    def test_timeout(self) -> None:
        """Test a timeout yields 124."""
        result = run_command([sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2)
        assert result.exit_code == EXIT_TIMEOUT
        assert "timed out" in result.stderr

    def test_env_merged(self) -> None:
        """Test extra env vars are visible to the child."""
        result = run_command(
            [sys.executable, "-c", "import os; print(os.environ['PUBAUDIT_TEST_VAR'])"],
            env={"PUBAUDIT_TEST_VAR": "set"},
        )
        assert result.stdout.strip() == "set"


class TestHashFile:
    """Tests for hash_file."""

    def test_digest_and_size(self, tmp_path: Path) -> None:
        """Test SHA-256 and size match the file bytes."""
        path = tmp_path / "pkg.tgz"
        data = b"x" * 100_000
        path.write_bytes(data)
        digest, size = hash_file(path)
        assert digest == hashlib.sha256(data).hexdigest()
        assert size == 100_000


class TestGetCommitSha:
    """Tests for get_commit_sha."""

    @patch("pubaudit.shell.run_command")
    def test_returns_sha(self, mock_run) -> None:
        """Test the trimmed HEAD sha is returned."""
        mock_run.return_value = CommandResult("a" * 40 + "\n", "", 0)
        assert get_commit_sha() == "a" * 40

    @patch("pubaudit.shell.run_command")
    def test_not_a_repo(self, mock_run) -> None:
        """Test outside a git checkout raises RuntimeError."""
        mock_run.return_value = CommandResult("", "fatal: not a git repository", 128)
        with pytest.raises(RuntimeError, match="Not in a git repo"):
            get_commit_sha()
