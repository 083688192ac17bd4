"""
Errors raised by the wrapper.
"""

import signal


class CheckwrapError(Exception):
    """Base class for wrapper-level failures."""


class ConfigError(CheckwrapError):
    """Invalid command line or configuration file."""


class StorageError(CheckwrapError):
    """The state directory or one of its artifacts could not be used."""


class WrapperTerminated(CheckwrapError):
    """Raised from a signal handler when the wrapper is asked to stop."""

    def __init__(self, signum: int):
        self.signum = signum
        super().__init__(f"terminated by {signal.Signals(signum).name}")
