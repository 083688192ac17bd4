"""
Change detector - Classifies a run by comparing fresh and saved output.

Only output content matters here. The wrapped program's exit status is
never consulted, so a program that keeps failing with identical output is
reported once and then stays silent.
"""

import hashlib
from enum import Enum
from typing import Optional


class Verdict(Enum):
    """Classification of one wrapper cycle."""

    UNCHANGED = "unchanged"
    NEW_BASELINE_EMPTY = "new_baseline_empty"
    NEW_BASELINE = "new_baseline"
    CHANGED = "changed"
    CLEARED_ERROR = "cleared_error"

    @property
    def reportable(self) -> bool:
        """Whether this verdict should produce a notification."""
        return self in (Verdict.NEW_BASELINE, Verdict.CHANGED, Verdict.CLEARED_ERROR)

    @property
    def keeps_fresh(self) -> bool:
        """Whether the fresh output becomes the new saved output."""
        return self is not Verdict.UNCHANGED


def checksum_sha256(content: bytes) -> str:
    """
    Calculate SHA-256 checksum of content.

    Args:
        content: Content bytes

    Returns:
        Hexadecimal SHA-256 checksum string
    """
    return hashlib.sha256(content).hexdigest()


def classify(fresh: bytes, saved: Optional[bytes]) -> Verdict:
    """
    Decide what a run means given its fresh output and the saved baseline.

    Args:
        fresh: Output of the run that just finished
        saved: Saved output from the last reported run, or None when there
               is no baseline (first run, or the baseline expired)

    Returns:
        Verdict for this run
    """
    if saved is None:
        return Verdict.NEW_BASELINE if fresh else Verdict.NEW_BASELINE_EMPTY

    if not fresh and not saved:
        return Verdict.UNCHANGED

    if len(fresh) == len(saved) and checksum_sha256(fresh) == checksum_sha256(saved):
        return Verdict.UNCHANGED

    if not fresh:
        return Verdict.CLEARED_ERROR

    return Verdict.CHANGED
