"""Human-readable interval parsing.

Intervals are written either as plain seconds (``"90"``, ``90``) or as a
count followed by a unit (``"30s"``, ``"5m"``, ``"1h"``, ``"2d"``, ``"1w"``).
Jobs that should never run from the dispatch pass use the ``MANUAL``
sentinel, which is deliberately distinct from ``0`` seconds.
"""

from __future__ import annotations

import re
from typing import Any, Union

from jbs_cli.exceptions import InvalidIntervalFormat


class ManualOnly:
    """Sentinel type for jobs that only run through ``run_job()``."""

    _instance: "ManualOnly | None" = None

    def __new__(cls) -> "ManualOnly":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MANUAL"


MANUAL = ManualOnly()

Interval = Union[int, ManualOnly]

UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
    "w": 604800,
}

INTERVAL_RE = re.compile(r"^(\d+)([smhdw])$", re.IGNORECASE)
NUMERIC_RE = re.compile(r"^\d+(\.\d+)?$")
MANUAL_WORDS = {"manual", "never"}


def parse_interval(spec: Any) -> Interval:
    """Convert an interval spec to seconds.

    Fractional values, whether numbers or numeric strings such as ``"1.9"``,
    are truncated to whole seconds (``1``). Unit suffixes only accept whole
    numbers, so ``"1.5h"`` is rejected.

    Args:
        spec: Interval string, non-negative number, or a manual sentinel
            (``MANUAL``, ``False``, ``None`` or ``"manual"``)

    Returns:
        Number of seconds, or ``MANUAL``

    Raises:
        InvalidIntervalFormat: If the spec cannot be parsed
    """
    if spec is None or spec is False or isinstance(spec, ManualOnly):
        return MANUAL

    # bool is an int subclass; True is not a duration
    if isinstance(spec, bool):
        raise InvalidIntervalFormat(spec)

    if isinstance(spec, (int, float)):
        if spec < 0:
            raise InvalidIntervalFormat(spec)
        return int(spec)

    if not isinstance(spec, str):
        raise InvalidIntervalFormat(spec)

    text = spec.strip()
    if text.lower() in MANUAL_WORDS:
        return MANUAL

    if NUMERIC_RE.match(text):
        return int(float(text))

    match = INTERVAL_RE.match(text)
    if match:
        value = int(match.group(1))
        unit = match.group(2).lower()
        return value * UNIT_SECONDS[unit]

    raise InvalidIntervalFormat(spec)


def format_interval(interval: Interval) -> str:
    """Render an interval using the largest unit that divides it exactly."""
    if isinstance(interval, ManualOnly):
        return "manual"
    if interval == 0:
        return "0s"
    for unit in ("w", "d", "h", "m"):
        size = UNIT_SECONDS[unit]
        if interval % size == 0:
            return f"{interval // size}{unit}"
    return f"{interval}s"


def is_manual(interval: Interval) -> bool:
    """Check whether an interval is the manual-only sentinel."""
    return isinstance(interval, ManualOnly)
