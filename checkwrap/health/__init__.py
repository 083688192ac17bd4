"""
Health module - Change-suppressing wrapper for health-check programs.

This module runs an external check, keeps its last reported output, and
only notifies when the output changes or the saved result expires.
"""

from checkwrap.health.config import build_config
from checkwrap.health.runner import Outcome, run_wrapper

__all__ = ["build_config", "Outcome", "run_wrapper"]
