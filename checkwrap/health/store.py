"""
Result store - Persistence of fresh and saved output for one wrapped program.

Each identity owns two flat artifacts inside the state directory:

    <state_dir>/<identity>.out   fresh output of the run in progress
    <state_dir>/<identity>.save  output of the last reported (or first) run

A third file, ``<identity>.lock``, carries the advisory lock that serialises
concurrent wrappers of the same identity.
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Union

from checkwrap.health.detector import Verdict, classify
from checkwrap.health.errors import StorageError

logger = logging.getLogger(__name__)


STATE_DIR_MODE = 0o700


@dataclass
class FreshOutput:
    """
    Handle on the output of the run that just finished.

    The handle is consumed by ResultStore.resolve; afterwards its file has
    either been deleted or renamed into the saved output.
    """

    path: Path
    exit_status: Optional[int] = None
    consumed: bool = False


@dataclass
class Resolution:
    """Result of resolving a fresh output against the saved output."""

    verdict: Verdict
    contents: bytes
    previous: Optional[bytes] = None


class ResultStore:
    """
    Fresh/saved output artifacts for one identity in one state directory.
    """

    def __init__(self, identity: str, state_dir: Union[str, Path]):
        """
        Initialize the store.

        Args:
            identity: Name of the wrapped program, used to name artifacts
            state_dir: Directory holding the artifacts (created on demand)
        """
        self.identity = identity
        self.state_dir = Path(state_dir)

    @property
    def fresh_path(self) -> Path:
        return self.state_dir / f"{self.identity}.out"

    @property
    def saved_path(self) -> Path:
        return self.state_dir / f"{self.identity}.save"

    @property
    def lock_path(self) -> Path:
        return self.state_dir / f"{self.identity}.lock"

    def ensure_directory(self) -> None:
        """Create the state directory with owner-only permissions."""
        if self.state_dir.is_dir():
            return
        try:
            self.state_dir.mkdir(mode=STATE_DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(
                f"Cannot create state directory {self.state_dir}: {e}"
            ) from e
        logger.debug("Created state directory %s", self.state_dir)

    @contextmanager
    def locked(self) -> Iterator[None]:
        """
        Hold an exclusive advisory lock on this identity.

        Blocks until any other wrapper of the same identity releases it.
        """
        self.ensure_directory()
        try:
            handle = open(self.lock_path, "a")
        except OSError as e:
            raise StorageError(f"Cannot open lock file {self.lock_path}: {e}") from e

        with handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            logger.debug("Acquired lock %s", self.lock_path)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def has_saved(self) -> bool:
        return self.saved_path.is_file()

    def saved_is_empty(self) -> bool:
        try:
            return self.saved_path.stat().st_size == 0
        except FileNotFoundError:
            return True
        except OSError as e:
            raise StorageError(f"Cannot stat {self.saved_path}: {e}") from e

    def saved_contents(self) -> bytes:
        """
        Read the saved output.

        Returns:
            Saved bytes, or b"" when there is no saved output
        """
        try:
            return self.saved_path.read_bytes()
        except FileNotFoundError:
            return b""
        except OSError as e:
            raise StorageError(f"Cannot read {self.saved_path}: {e}") from e

    def expire_if_stale(
        self, threshold: Optional[int], now: Optional[float] = None
    ) -> bool:
        """
        Drop the saved output when it is at least ``threshold`` seconds old.

        Args:
            threshold: Maximum age in seconds; None or 0 disables expiration
            now: Current time as a UNIX timestamp (defaults to time.time())

        Returns:
            True if the saved output was deleted
        """
        if threshold is None or threshold <= 0:
            return False

        try:
            mtime = self.saved_path.stat().st_mtime
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Cannot stat {self.saved_path}: {e}") from e

        if now is None:
            now = time.time()
        age = now - mtime
        if age < threshold:
            return False

        self._unlink(self.saved_path)
        logger.info(
            "Expired saved output for %s (age %ds >= %ds)",
            self.identity,
            int(age),
            threshold,
        )
        return True

    def pending_fresh(self) -> Optional[FreshOutput]:
        """Return a handle on an unresolved fresh output, if one exists."""
        if self.fresh_path.is_file():
            return FreshOutput(path=self.fresh_path)
        return None

    def resolve(self, fresh: FreshOutput) -> Optional[Resolution]:
        """
        Compare fresh output with the saved output and update the store.

        The fresh artifact is consumed: it is deleted when nothing changed,
        otherwise it is atomically renamed over the saved output.

        Args:
            fresh: Handle returned by the executor

        Returns:
            Resolution describing the run, or None when the handle was
            already consumed or its file no longer exists
        """
        if fresh.consumed:
            logger.debug("Fresh output %s already resolved", fresh.path)
            return None

        try:
            fresh_bytes = fresh.path.read_bytes()
        except FileNotFoundError:
            logger.debug("No fresh output to resolve at %s", fresh.path)
            fresh.consumed = True
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {fresh.path}: {e}") from e

        previous = self.saved_contents() if self.has_saved() else None
        verdict = classify(fresh_bytes, previous)

        if verdict.keeps_fresh:
            self._replace(fresh.path, self.saved_path)
        else:
            self._unlink(fresh.path)
        fresh.consumed = True

        logger.debug(
            "Resolved %s: %s (fresh %d bytes, saved %s bytes)",
            self.identity,
            verdict.value,
            len(fresh_bytes),
            "-" if previous is None else len(previous),
        )

        # fresh_bytes now matches the saved output for every verdict
        return Resolution(verdict=verdict, contents=fresh_bytes, previous=previous)

    def _replace(self, source: Path, target: Path) -> None:
        try:
            os.replace(source, target)
        except OSError as e:
            raise StorageError(f"Cannot move {source} to {target}: {e}") from e

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Cannot delete {path}: {e}") from e
