"""
Wrapper runner - Orchestrates one execute/compare/report cycle.

This module coordinates the result store, executor and notifier for a
single wrapper invocation.
"""

import logging
from enum import IntEnum
from typing import Optional

from checkwrap.health import executor, notify
from checkwrap.health.config import WrapperConfig
from checkwrap.health.errors import StorageError
from checkwrap.health.store import Resolution, ResultStore

logger = logging.getLogger(__name__)


class Outcome(IntEnum):
    """Wrapper-level results and the exit status each maps to."""

    OK = 0
    STORAGE_FAILURE = 74
    ARGUMENT_ERROR = 99
    HANGUP = 129
    INTERRUPTED = 130
    TERMINATED = 143

    @classmethod
    def for_signal(cls, signum: int) -> "Outcome":
        return cls(128 + signum)


def run_cycle(config: WrapperConfig) -> Optional[Resolution]:
    """
    Run the wrapped program once and resolve its output.

    Expiration is applied before the program runs, so a stale baseline
    is already gone when the fresh output is compared.

    Args:
        config: Wrapper configuration

    Returns:
        Resolution for this run (None only if the fresh output vanished)

    Raises:
        StorageError: If the state directory cannot be used
    """
    store = ResultStore(config.identity, config.state_dir)

    with store.locked():
        store.expire_if_stale(config.expire_seconds)

        leftover = store.pending_fresh()
        if leftover is not None:
            logger.warning(
                "Discarding unresolved output of an interrupted run: %s",
                leftover.path,
            )

        fresh = executor.execute(config.argv, store.fresh_path)
        logger.info(
            "%s exited with status %s", config.identity, fresh.exit_status
        )

        return store.resolve(fresh)


def run_wrapper(config: WrapperConfig) -> Outcome:
    """
    Run one cycle and report the result if it changed.

    Args:
        config: Wrapper configuration

    Returns:
        Outcome of the invocation
    """
    try:
        resolution = run_cycle(config)
    except StorageError as e:
        logger.error("Storage failure for %s: %s", config.identity, e)
        return Outcome.STORAGE_FAILURE

    if resolution is None:
        logger.warning("No output to resolve for %s", config.identity)
        return Outcome.OK

    logger.info("Verdict for %s: %s", config.identity, resolution.verdict.value)

    if resolution.verdict.reportable:
        channel = notify.notify(resolution, config)
        logger.debug("Reported %s via %s", config.identity, channel)

    return Outcome.OK
