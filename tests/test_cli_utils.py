"""Tests for pubaudit CLI utility functions."""

from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from pubaudit.cli_utils import (
    EXIT_CONFIG_ERROR,
    EXIT_DRIFT_FOUND,
    EXIT_FIX_FAILURE,
    EXIT_MISSING_CREDENTIALS,
    EXIT_PUBLISH_FAILURE,
    EXIT_SUCCESS,
    CliState,
    error,
    format_error_details,
    get_state,
    info,
    resolve_project_root,
    success,
    validate_target,
    warning,
    wire_config,
)

runner = CliRunner()


class TestErrorFormatting:
    """Tests for error formatting helpers."""

    def test_error_exits_with_config_error_code_by_default(self) -> None:
        """Test that error() exits with EXIT_CONFIG_ERROR by default."""
        app = typer.Typer()

        @app.command()
        def cmd() -> None:
            error("Test error message")

        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Error:" in result.output
        assert "Test error message" in result.output

    def test_error_exits_with_custom_exit_code(self) -> None:
        """Test that error() can use a custom exit code."""
        app = typer.Typer()

        @app.command()
        def cmd() -> None:
            error("No token", exit_code=EXIT_MISSING_CREDENTIALS)

        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_MISSING_CREDENTIALS

    def test_warning_success_info_do_not_exit(self) -> None:
        """Test the non-fatal helpers keep running."""
        app = typer.Typer()

        @app.command()
        def cmd() -> None:
            warning("careful")
            success("done")
            info("fyi")
            typer.echo("Continued execution")

        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_SUCCESS
        assert "Warning: careful" in result.output
        assert "Success: done" in result.output
        assert "fyi" in result.output
        assert "Continued execution" in result.output

    def test_format_error_details(self) -> None:
        """Test bullet formatting of error lists."""
        assert format_error_details([]) == ""
        assert format_error_details(["a", "b"]) == "  - a\n  - b"

    def test_exit_code_constants(self) -> None:
        """Test exit codes are distinct and stable."""
        codes = [
            EXIT_SUCCESS,
            EXIT_DRIFT_FOUND,
            EXIT_CONFIG_ERROR,
            EXIT_MISSING_CREDENTIALS,
            EXIT_PUBLISH_FAILURE,
            EXIT_FIX_FAILURE,
        ]
        assert codes == [0, 2, 3, 4, 5, 6]


class TestState:
    """Tests for reading global options off the Typer context."""

    def test_default_state(self) -> None:
        """Test a context without obj yields defaults."""
        app = typer.Typer()
        seen: list[CliState] = []

        @app.command()
        def cmd(ctx: typer.Context) -> None:
            seen.append(get_state(ctx))

        runner.invoke(app, [])
        assert seen == [CliState()]

    def test_project_root_from_rc_in_parent(self, tmp_path: Path) -> None:
        """Test the root is the directory holding .pubauditrc."""
        (tmp_path / ".pubauditrc").write_text('receipts_dir = "r"\n')
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        app = typer.Typer()
        roots: list[Path] = []

        @app.command()
        def cmd(ctx: typer.Context) -> None:
            roots.append(resolve_project_root(ctx))

        runner.invoke(app, [], obj=CliState(config_dir=nested))
        assert roots == [tmp_path.resolve()]


class TestWireConfig:
    """Tests for wire_config."""

    def test_loads_rc_file(self, tmp_path: Path) -> None:
        """Test values come from .pubauditrc in start_dir."""
        (tmp_path / ".pubauditrc").write_text('reports_dir = "out"\ntimeout = 5\n')
        config = wire_config(start_dir=tmp_path)
        assert config.reports_dir == "out"
        assert config.timeout == 5

    def test_overrides_skip_none(self, tmp_path: Path) -> None:
        """Test None overrides leave file values alone."""
        (tmp_path / ".pubauditrc").write_text('reports_dir = "out"\n')
        config = wire_config(start_dir=tmp_path, reports_dir=None, receipts_dir="rcpt")
        assert config.reports_dir == "out"
        assert config.receipts_dir == "rcpt"

    def test_invalid_config_exits(self, tmp_path: Path) -> None:
        """Test a bad config file exits with EXIT_CONFIG_ERROR."""
        (tmp_path / ".pubauditrc").write_text('bogus_key = 1\n')
        app = typer.Typer()

        @app.command()
        def cmd() -> None:
            wire_config(start_dir=tmp_path)

        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "Invalid configuration" in result.output


class TestValidateTarget:
    """Tests for validate_target."""

    @pytest.mark.parametrize("target", [None, "npm", "readme", "github"])
    def test_accepts_known(self, target: str | None) -> None:
        """Test known targets and None pass through."""
        assert validate_target(target) == target

    def test_rejects_unknown(self) -> None:
        """Test an unknown target exits with EXIT_CONFIG_ERROR."""
        with pytest.raises(typer.Exit) as exc:
            validate_target("cargo")
        assert exc.value.exit_code == EXIT_CONFIG_ERROR
