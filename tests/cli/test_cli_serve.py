"""Tests for ``paperserve serve`` CLI command."""

from __future__ import annotations

from unittest.mock import patch

from click.testing import CliRunner
from fastapi import FastAPI

from paperserve.cli import main


class TestServe:
    def test_runs_uvicorn_with_overrides(self) -> None:
        with patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(main, ["serve", "--host", "0.0.0.0", "--port", "9000"])

        assert result.exit_code == 0
        app = mock_run.call_args.args[0]
        assert isinstance(app, FastAPI)
        assert mock_run.call_args.kwargs["host"] == "0.0.0.0"
        assert mock_run.call_args.kwargs["port"] == 9000

    def test_settings_file(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        config = tmp_path / "settings.yaml"
        config.write_text("http:\n  port: 8123\nlogging:\n  level: WARNING\n")
        with patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(main, ["serve", "--config", str(config)])

        assert result.exit_code == 0
        assert mock_run.call_args.kwargs["port"] == 8123
        assert mock_run.call_args.kwargs["log_level"] == "warning"

    def test_telemetry_flag(self) -> None:
        with (
            patch("uvicorn.run"),
            patch("paperserve.utils.telemetry.configure_telemetry") as mock_configure,
        ):
            result = CliRunner().invoke(main, ["serve", "--telemetry"])

        assert result.exit_code == 0
        mock_configure.assert_called_once_with(
            service_name="paperserve",
            export_to_console=True,
            otlp_endpoint=None,
        )

    def test_invalid_config(self, tmp_path) -> None:  # type: ignore[no-untyped-def]
        config = tmp_path / "settings.yaml"
        config.write_text("- not\n- a mapping\n")
        with patch("uvicorn.run") as mock_run:
            result = CliRunner().invoke(main, ["serve", "--config", str(config)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        mock_run.assert_not_called()
