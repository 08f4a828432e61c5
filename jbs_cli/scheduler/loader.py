"""Task file loading.

A task file is a plain Python file that registers jobs. It may expose
any of the following, checked in this order:

- ``register(registry)``: a function that schedules jobs on the registry
- ``scheduler``: a ``Scheduler`` instance (its registry is used)
- ``registry``: a ``JobRegistry`` instance
"""

import importlib.util
import logging
import sys
from pathlib import Path
from typing import Optional

from jbs_cli.exceptions import TaskFileError
from jbs_cli.scheduler.job_scheduler import Scheduler
from jbs_cli.scheduler.registry import JobRegistry

logger = logging.getLogger(__name__)

MODULE_PREFIX = "jbs_tasks_"


def load_tasks(path: Path, registry: Optional[JobRegistry] = None) -> JobRegistry:
    """Load jobs from a task file.

    Args:
        path: Path to the Python task file
        registry: Registry to fill (a new one if omitted)

    Returns:
        Registry holding the task file's jobs

    Raises:
        TaskFileError: If the file cannot be imported or registers nothing
    """
    path = Path(path)
    if not path.is_file():
        raise TaskFileError("Task file not found", str(path))

    module_name = f"{MODULE_PREFIX}{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if not spec or not spec.loader:
        raise TaskFileError("Task file is not an importable Python file", str(path))

    module = importlib.util.module_from_spec(spec)
    # Allow the task file to import siblings
    parent = str(path.resolve().parent)
    added_path = parent not in sys.path
    if added_path:
        sys.path.insert(0, parent)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise TaskFileError(f"Task file raised while loading: {e}", str(path)) from e
    finally:
        if added_path:
            sys.path.remove(parent)

    register = getattr(module, "register", None)
    if callable(register):
        target = registry if registry is not None else JobRegistry()
        try:
            register(target)
        except Exception as e:
            raise TaskFileError(f"register() raised: {e}", str(path)) from e
        logger.debug(f"Loaded {len(target)} jobs from {path} via register()")
        return target

    found = getattr(module, "scheduler", None)
    if isinstance(found, Scheduler):
        return _merge(found.registry, registry, path)

    found = getattr(module, "registry", None)
    if isinstance(found, JobRegistry):
        return _merge(found, registry, path)

    raise TaskFileError(
        "Task file defines no register(registry) function, scheduler or registry",
        str(path),
    )


def _merge(source: JobRegistry, target: Optional[JobRegistry], path: Path) -> JobRegistry:
    if target is None:
        logger.debug(f"Loaded {len(source)} jobs from {path}")
        return source

    for job in source.jobs:
        target.schedule(job.interval, job.job_id, job.work)
    if source.failure_callback is not None:
        target.on_failure(source.failure_callback)
    logger.debug(f"Loaded {len(source)} jobs from {path}")
    return target
