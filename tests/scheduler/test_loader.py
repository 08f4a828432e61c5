"""Tests for task file loading."""

from pathlib import Path
from textwrap import dedent

import pytest

from jbs_cli.exceptions import TaskFileError
from jbs_cli.scheduler.interval import MANUAL
from jbs_cli.scheduler.loader import load_tasks
from jbs_cli.scheduler.registry import JobRegistry


def write_tasks(tmp_path: Path, source: str, name: str = "tasks.py") -> Path:
    path = tmp_path / name
    path.write_text(dedent(source))
    return path


class TestLoadTasks:
    """Tests for load_tasks."""

    def test_register_function(self, tmp_path):
        """Test a task file exposing register(registry)."""
        path = write_tasks(tmp_path, """
            def fetch():
                return "ok"

            def register(registry):
                registry.schedule("30s", "news", fetch)
                registry.schedule("manual", "rebuild", fetch)
        """)

        registry = load_tasks(path)

        assert [job.job_id for job in registry.jobs] == ["news", "rebuild"]
        assert registry.get("news").interval == 30
        assert registry.get("rebuild").interval is MANUAL

    def test_register_into_existing_registry(self, tmp_path):
        """Test that register() fills the registry passed in."""
        path = write_tasks(tmp_path, """
            def register(registry):
                registry.schedule(60, "tick", lambda: None)
        """)
        registry = JobRegistry()

        assert load_tasks(path, registry) is registry
        assert "tick" in registry

    def test_module_level_registry(self, tmp_path):
        """Test a task file exposing a registry object."""
        path = write_tasks(tmp_path, """
            from jbs_cli.scheduler import JobRegistry

            registry = JobRegistry()
            registry.schedule("1h", "hourly", lambda: None)
            registry.on_failure(lambda job_id, output: None)
        """)

        registry = load_tasks(path)

        assert "hourly" in registry
        assert registry.failure_callback is not None

    def test_module_level_scheduler(self, tmp_path):
        """Test a task file exposing a scheduler object."""
        path = write_tasks(tmp_path, """
            from jbs_cli.scheduler import Scheduler

            scheduler = Scheduler(store=":memory:")
            scheduler.schedule("1d", "daily", lambda: None)
        """)

        registry = load_tasks(path)

        assert [job.job_id for job in registry.jobs] == ["daily"]

    def test_merge_into_existing_registry(self, tmp_path):
        """Test that module-level jobs are copied into a given registry."""
        path = write_tasks(tmp_path, """
            from jbs_cli.scheduler import JobRegistry

            registry = JobRegistry()
            registry.schedule("5m", "poll", lambda: None)
        """)
        target = JobRegistry()
        target.schedule("1m", "existing", lambda: None)

        result = load_tasks(path, target)

        assert result is target
        assert [job.job_id for job in target.jobs] == ["existing", "poll"]

    def test_sibling_imports(self, tmp_path):
        """Test that a task file can import modules next to it."""
        write_tasks(tmp_path, """
            def work():
                return 42
        """, name="jbs_helpers_for_test.py")
        path = write_tasks(tmp_path, """
            from jbs_helpers_for_test import work

            def register(registry):
                registry.schedule(10, "helper", work)
        """)

        registry = load_tasks(path)

        assert registry.get("helper").work() == 42

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises TaskFileError."""
        with pytest.raises(TaskFileError) as exc_info:
            load_tasks(tmp_path / "nope.py")
        assert exc_info.value.path == str(tmp_path / "nope.py")

    def test_file_raises(self, tmp_path):
        """Test that import-time errors are wrapped."""
        path = write_tasks(tmp_path, """
            raise RuntimeError("broken import")
        """)

        with pytest.raises(TaskFileError, match="broken import"):
            load_tasks(path)

    def test_register_raises(self, tmp_path):
        """Test that errors from register() are wrapped."""
        path = write_tasks(tmp_path, """
            def register(registry):
                registry.schedule("often", "bad", lambda: None)
        """)

        with pytest.raises(TaskFileError, match="register"):
            load_tasks(path)

    def test_nothing_defined(self, tmp_path):
        """Test that a file registering no jobs is rejected."""
        path = write_tasks(tmp_path, """
            x = 1
        """)

        with pytest.raises(TaskFileError, match="defines no"):
            load_tasks(path)
