"""
Executor - Runs the wrapped program and captures its combined output.
"""

import errno
import logging
import subprocess
from pathlib import Path
from typing import List

from checkwrap.health.errors import StorageError
from checkwrap.health.store import FreshOutput

logger = logging.getLogger(__name__)


# Exit statuses a shell reports when a command cannot be run
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127


def execute(argv: List[str], output_path: Path) -> FreshOutput:
    """
    Run a program with stdout and stderr redirected into one file.

    The exit status is recorded on the returned handle for logging only.
    A program that cannot be launched leaves its error message in the
    output file, so the failure is reported like any other output.

    Args:
        argv: Program path followed by its arguments
        output_path: File receiving the combined output (truncated first)

    Returns:
        FreshOutput handle on output_path

    Raises:
        StorageError: If the output file cannot be written
    """
    logger.debug("Running %s", argv)

    try:
        with open(output_path, "wb") as output:
            try:
                completed = subprocess.run(
                    argv,
                    stdin=subprocess.DEVNULL,
                    stdout=output,
                    stderr=subprocess.STDOUT,
                    check=False,
                )
                exit_status = completed.returncode
            except OSError as e:
                exit_status = (
                    EXIT_NOT_FOUND if e.errno == errno.ENOENT else EXIT_NOT_EXECUTABLE
                )
                output.write(f"{argv[0]}: {e.strerror}\n".encode())
                logger.debug("Could not launch %s: %s", argv[0], e)
    except OSError as e:
        raise StorageError(f"Cannot write output file {output_path}: {e}") from e

    return FreshOutput(path=output_path, exit_status=exit_status)
