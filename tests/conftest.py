"""Shared fixtures for JBS tests."""

from pathlib import Path
from textwrap import dedent

import pytest
from typer.testing import CliRunner

from jbs_cli.config import clear_config_cache


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def jbs_env(tmp_path, monkeypatch) -> Path:
    """Point configuration and data directories at a temporary directory."""
    for name in ("JBS_DATABASE_URL", "JBS_DB", "JBS_RETENTION", "JBS_MAX_ATTEMPTS",
                 "JBS_RETRY_DELAY", "JBS_RETRY_BACKOFF", "JBS_ATTEMPT_TIMEOUT",
                 "JBS_STALE_AFTER", "JBS_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("JBS_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("JBS_DATA_DIR", str(tmp_path / "data"))
    clear_config_cache()
    yield tmp_path
    clear_config_cache()


@pytest.fixture
def tasks_file(tmp_path) -> Path:
    """Write a task file with a periodic, a manual and a failing job."""
    path = tmp_path / "tasks.py"
    path.write_text(dedent("""
        from pathlib import Path

        FAILURES = Path(__file__).with_name("failures.log")


        def fetch_news():
            print("fetched 3 items")


        def rebuild_index():
            return "rebuilt"


        def flaky():
            raise RuntimeError("boom")


        def report_failure(job_id, output):
            with FAILURES.open("a") as f:
                f.write(f"{job_id}: {output!r}\\n")


        def register(registry):
            registry.schedule("30s", "fetch-news", fetch_news)
            registry.schedule("manual", "rebuild-index", rebuild_index)
            registry.schedule("manual", "flaky", flaky)
            registry.on_failure(report_failure)
    """))
    return path


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Location of a throwaway run store file."""
    return tmp_path / "jobs.sqlite"
