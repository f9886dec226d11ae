"""CLI utility functions for pubaudit.

Provides helper functions for:
- Exit codes shared by every command
- Error formatting: Consistent user-friendly messages on stderr
- Config wiring: Loading PubauditConfig from the directory the CLI was pointed at
- Typer option factories reused across commands
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import typer

from pubaudit.config import ConfigError, PubauditConfig, get_project_root, load_config

# Exit code conventions
EXIT_SUCCESS = 0
EXIT_DRIFT_FOUND = 2  # Audit found RED findings
EXIT_CONFIG_ERROR = 3  # Bad config, manifest or receipt
EXIT_MISSING_CREDENTIALS = 4
EXIT_PUBLISH_FAILURE = 5
EXIT_FIX_FAILURE = 6

TARGET_CHOICES = ("npm", "nuget", "pypi", "ghcr", "readme", "github")


@dataclass
class CliState:
    """Global options stored on the Typer context by the app callback.

    Attributes:
        config_dir: Directory to look for .pubauditrc from (defaults to cwd).
        verbose: Debug logging enabled.
    """

    config_dir: Path | None = None
    verbose: bool = False


# -----------------------------------------------------------------------------
# Error Formatting Helpers
# -----------------------------------------------------------------------------


def error(msg: str, *, exit_code: int = EXIT_CONFIG_ERROR) -> NoReturn:
    """Print an error message and exit with the given exit code.

    Raises:
        typer.Exit: Always raises to exit the program.
    """
    styled_prefix = typer.style("Error:", fg=typer.colors.RED, bold=True)
    typer.echo(f"{styled_prefix} {msg}", err=True)
    raise typer.Exit(code=exit_code)


def warning(msg: str) -> None:
    """Print a warning message to stderr."""
    styled_prefix = typer.style("Warning:", fg=typer.colors.YELLOW, bold=True)
    typer.echo(f"{styled_prefix} {msg}", err=True)


def success(msg: str) -> None:
    """Print a success message to stdout."""
    styled_prefix = typer.style("Success:", fg=typer.colors.GREEN, bold=True)
    typer.echo(f"{styled_prefix} {msg}")


def info(msg: str) -> None:
    typer.echo(msg)


def format_error_details(errors: list[str]) -> str:
    """Format a list of error messages as an indented bullet list."""
    if not errors:
        return ""
    return "\n".join(f"  - {e}" for e in errors)


# -----------------------------------------------------------------------------
# Config Wiring Helper
# -----------------------------------------------------------------------------


def get_state(ctx: typer.Context) -> CliState:
    """Get the global options stored by the app callback."""
    state = ctx.obj
    return state if isinstance(state, CliState) else CliState()


def resolve_project_root(ctx: typer.Context) -> Path:
    """Directory holding .pubauditrc, or the --config-dir/cwd if there is none."""
    return get_project_root(get_state(ctx).config_dir)


def wire_config(
    start_dir: Path | None = None,
    **overrides: Any,
) -> PubauditConfig:
    """Load configuration, passing non-None keyword overrides as CLI overrides.

    Raises:
        typer.Exit: With EXIT_CONFIG_ERROR if configuration is invalid.
    """
    cli_overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        return load_config(cli_overrides=cli_overrides, start_dir=start_dir)
    except ConfigError as e:
        error(f"Invalid configuration: {e}")


# -----------------------------------------------------------------------------
# Typer Option Factory Functions
# -----------------------------------------------------------------------------
# Typer consumes Option objects when decorating commands, so each command
# needs a fresh instance.


def json_option() -> Any:
    return typer.Option(False, "--json", help="Output as JSON.")


def dry_run_option(help: str = "Show what would happen without writing anything.") -> Any:
    return typer.Option(False, "--dry-run", help=help)


def repo_option() -> Any:
    """Create a Typer Option for --repo."""
    return typer.Option(
        None,
        "--repo",
        help="Limit to one repository (owner/name).",
    )


def target_option() -> Any:
    """Create a Typer Option for --target."""
    return typer.Option(
        None,
        "--target",
        help=f"Limit to one target ({', '.join(TARGET_CHOICES)}).",
    )


def cwd_option() -> Any:
    """Create a Typer Option for --cwd."""
    return typer.Option(
        None,
        "--cwd",
        help="Local checkout to fix or publish from (default: current directory).",
        file_okay=False,
        dir_okay=True,
    )


def validate_target(target: str | None) -> str | None:
    """Reject unknown --target values with EXIT_CONFIG_ERROR."""
    if target is not None and target not in TARGET_CHOICES:
        error(f"Unknown target: {target} (expected one of {', '.join(TARGET_CHOICES)})")
    return target
