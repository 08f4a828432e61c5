"""Tests for the top-level jbs app."""

import logging

from jbs_cli import __version__
from jbs_cli.cli.exit_codes import ExitCode
from jbs_cli.main import app, is_json, is_quiet


class TestMainCallback:
    """Tests for global options."""

    def test_version(self, runner, jbs_env):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == ExitCode.SUCCESS
        assert f"jbs v{__version__}" in result.output

    def test_no_args_shows_help(self, runner, jbs_env):
        result = runner.invoke(app, [])
        assert "run-job" in result.output

    def test_quiet_and_verbose_conflict(self, runner, jbs_env):
        result = runner.invoke(app, ["--quiet", "--verbose", "config", "path"])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT

    def test_quiet_and_debug_conflict(self, runner, jbs_env):
        result = runner.invoke(app, ["--quiet", "--debug", "config", "path"])
        assert result.exit_code == ExitCode.INVALID_ARGUMENT

    def test_global_flags_recorded(self, runner, jbs_env):
        runner.invoke(app, ["--json", "config", "path"])
        assert is_json()
        assert not is_quiet()

    def test_log_file(self, runner, jbs_env, tasks_file, db_path):
        """Test that --log-file captures debug records of a pass."""
        log_file = jbs_env / "logs" / "jbs.log"

        result = runner.invoke(
            app,
            ["--log-file", str(log_file), "run", str(tasks_file), "--db", str(db_path)],
        )
        logging.shutdown()

        assert result.exit_code == ExitCode.SUCCESS
        assert "Dispatch pass finished" in log_file.read_text()

    def test_log_level_from_environment(self, runner, jbs_env, monkeypatch):
        monkeypatch.setenv("JBS_LOG_LEVEL", "INFO")
        from jbs_cli.config import clear_config_cache

        clear_config_cache()
        runner.invoke(app, ["config", "path"])

        handlers = logging.getLogger().handlers
        assert any(h.level == logging.INFO for h in handlers)
