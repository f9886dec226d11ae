"""Subprocess helpers shared by providers, the GitHub client and fixers.

Commands never raise on failure; callers inspect the exit code.
"""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120

# Conventional shell exit codes for the two failures subprocess reports as exceptions
EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    """Captured outcome of an external command."""

    stdout: str
    stderr: str
    exit_code: int

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def run_command(
    args: list[str],
    *,
    cwd: Path | str | None = None,
    timeout: float | None = DEFAULT_TIMEOUT,
    env: dict[str, str] | None = None,
    input: str | None = None,
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        args: Program and arguments (no shell interpolation).
        cwd: Working directory.
        timeout: Seconds before the command is killed.
        env: Extra environment variables merged over the current environment.
        input: Text passed on stdin.

    Returns:
        CommandResult. A timeout yields exit code 124, a missing program 127.
    """
    full_env = {**os.environ, **env} if env else None
    logger.debug("run: %s (cwd=%s)", " ".join(args), cwd)
    try:
        result = subprocess.run(
            args,
            cwd=str(cwd) if cwd is not None else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=full_env,
            input=input,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return CommandResult(stdout, f"timed out after {timeout}s", EXIT_TIMEOUT)
    except FileNotFoundError as e:
        return CommandResult("", str(e), EXIT_NOT_FOUND)
    except OSError as e:
        return CommandResult("", str(e), 1)

    return CommandResult(result.stdout or "", result.stderr or "", result.returncode)


def hash_file(path: Path) -> tuple[str, int]:
    """Compute the SHA-256 hex digest and byte size of a file.

    Raises:
        OSError: If the file cannot be read.
    """
    digest = hashlib.sha256()
    size = 0
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
            size += len(chunk)
    return digest.hexdigest(), size


def get_commit_sha(cwd: Path | str | None = None) -> str:
    """Return the HEAD commit SHA of the repository at cwd.

    Raises:
        RuntimeError: If cwd is not a git checkout or git is unavailable.
    """
    result = run_command(["git", "rev-parse", "HEAD"], cwd=cwd, timeout=30)
    if not result.ok:
        raise RuntimeError("Not in a git repo or git not available")
    return result.stdout.strip()
