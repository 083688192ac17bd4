"""
Timespec parser - Converts compact duration strings into seconds.

A timespec is a run of ``<digits><unit>`` groups such as ``"1d6h30m"``.
Units are ``w``, ``d``, ``h``, ``m`` and ``s`` (case-insensitive); a trailing
run of digits without a unit counts as raw seconds.

Parsing never fails hard: on a stray unit or an unknown character the scan
stops, the total accumulated so far is kept, and a warning is recorded.
"""

import logging
import string
from dataclasses import dataclass, field
from typing import List, Optional

logger = logging.getLogger(__name__)


UNIT_SECONDS = {
    "w": 604800,
    "d": 86400,
    "h": 3600,
    "m": 60,
    "s": 1,
}


@dataclass
class TimespecResult:
    """Outcome of parsing a timespec: total seconds plus any warnings."""

    seconds: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


def parse_timespec(spec: str) -> TimespecResult:
    """
    Parse a timespec string into a number of seconds.

    Args:
        spec: Duration string, e.g. "90", "2h", "1d6h"

    Returns:
        TimespecResult with the accumulated seconds and warnings
    """
    result = TimespecResult()
    pending = ""

    for position, char in enumerate(spec.strip()):
        if char in string.digits:
            pending += char
            continue

        unit = char.lower()
        if unit in UNIT_SECONDS:
            if not pending:
                result.warnings.append(
                    f"unit '{char}' at position {position} has no preceding number"
                )
                return result
            result.seconds += int(pending) * UNIT_SECONDS[unit]
            pending = ""
            continue

        result.warnings.append(
            f"unexpected character '{char}' at position {position}"
        )
        return result

    if pending:
        result.seconds += int(pending)

    return result


def expiration_threshold(spec: Optional[str]) -> Optional[int]:
    """
    Resolve an expiration timespec into a threshold for the result store.

    Args:
        spec: Timespec string, or None/empty to disable expiration

    Returns:
        Threshold in seconds, or None when expiration is disabled
    """
    if spec is None or not spec.strip():
        return None

    result = parse_timespec(spec)
    for warning in result.warnings:
        logger.warning("Invalid expiration timespec %r: %s", spec, warning)

    if not result.ok:
        logger.warning(
            "Using partial expiration of %d seconds from %r", result.seconds, spec
        )

    return result.seconds
