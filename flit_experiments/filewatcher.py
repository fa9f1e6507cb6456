"""
Live reloading manifest sources

FileWatcher loads and parses a file, then keeps polling it in a daemon
thread and swaps in a freshly parsed snapshot whenever the file changes.
Readers call get() and work against the returned object; a reload never
mutates a snapshot that is already handed out.

InMemoryManifest offers the same get() interface for tests and for
applications that fetch the manifest themselves.
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import IO, Callable, Generic, Optional, Tuple, TypeVar, Union

from .errors import ManifestError, ManifestTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 1.0


class FileWatcher(Generic[T]):
    """
    Parse a file and keep the parsed result up to date

    Args:
        path: File to watch
        parser: Called with the opened file (binary mode), returns the snapshot
        poll_interval: Seconds between two checks of the file
        timeout: Seconds to wait for the file to show up on the initial load;
            None waits forever

    Raises:
        ManifestTimeoutError: If the file is not available before the timeout
        ManifestError: If the initial parse fails
    """

    def __init__(
        self,
        path: Union[str, Path],
        parser: Callable[[IO[bytes]], T],
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
    ):
        self.path = Path(path)
        self.parser = parser
        self.poll_interval = poll_interval

        self._fingerprint: Optional[Tuple[int, int]] = None
        self._data: T = self._initial_load(timeout)
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._watch,
            name=f"filewatcher-{self.path.name}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Watching {self.path} every {poll_interval}s")

    def get(self) -> T:
        """Latest successfully parsed snapshot"""
        return self._data

    def stop(self) -> None:
        self._stopped.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.stop()

    def _stat(self) -> Tuple[int, int]:
        stat = os.stat(self.path)
        return stat.st_mtime_ns, stat.st_size

    def _parse(self) -> T:
        with open(self.path, "rb") as f:
            return self.parser(f)

    def _initial_load(self, timeout: Optional[float]) -> T:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            try:
                fingerprint = self._stat()
                break
            except FileNotFoundError:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    raise ManifestTimeoutError(f"timed out waiting for {self.path} to become available")
                logger.debug(f"Waiting for {self.path} to become available")
                time.sleep(self.poll_interval if remaining is None else min(self.poll_interval, remaining))

        try:
            data = self._parse()
        except ManifestError:
            raise
        except Exception as e:
            raise ManifestError(f"Could not parse {self.path}: {e}") from e
        self._fingerprint = fingerprint
        logger.info(f"Loaded {self.path}")
        return data

    def _watch(self) -> None:
        while not self._stopped.wait(self.poll_interval):
            try:
                fingerprint = self._stat()
            except OSError as e:
                logger.warning(f"Could not stat {self.path}, keeping the previous snapshot: {e}")
                continue
            if fingerprint == self._fingerprint:
                continue

            # Only retried once the file changes again
            self._fingerprint = fingerprint
            try:
                data = self._parse()
            except Exception as e:
                logger.error(f"Failed to reload {self.path}, keeping the previous snapshot: {e}")
                continue
            self._data = data
            logger.info(f"Reloaded {self.path}")


class InMemoryManifest(Generic[T]):
    """Manifest source holding a snapshot set by the application"""

    def __init__(self, data: T):
        self._data = data

    def get(self) -> T:
        return self._data

    def update(self, data: T) -> None:
        self._data = data

    def stop(self) -> None:
        pass
