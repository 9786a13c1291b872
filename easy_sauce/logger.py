"""Log stream handed back by the test engine.

The engine's worker thread writes progress lines into a LogStream while the
CLI iterates it on the main thread. A stream finishes with exactly one
terminal event: end() for success or fail() for a fatal error.
"""

import logging
import queue
import threading
from collections.abc import Iterator
from dataclasses import dataclass

from easy_sauce.exceptions import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class _Failure:
    error: ExecutionError


_END = object()


class LogStream:
    """Thread-safe stream of text chunks with a single terminal outcome.

    Usage:
        stream = LogStream(verbose=True)
        stream.log("Starting tests")
        stream.end()

        for chunk in stream:
            print(chunk, end="")
    """

    def __init__(self, verbose: bool = False, quiet: bool = False) -> None:
        self.verbose = verbose
        self.quiet = quiet
        self._queue: queue.Queue[object] = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once end() or fail() has been called."""
        return self._closed

    def write(self, text: str) -> None:
        """Write a raw chunk. Ignored after the stream has closed."""
        with self._lock:
            if self._closed:
                logger.debug("Dropping write to closed log stream: %r", text)
                return
            self._queue.put(text)

    def log(self, message: str) -> None:
        """Write a progress line, hidden in quiet mode."""
        if not self.quiet:
            self.write(message + "\n")

    def debug(self, message: str) -> None:
        """Write a detail line, shown only in verbose mode."""
        if self.verbose and not self.quiet:
            self.write(message + "\n")

    def result(self, message: str) -> None:
        """Write a result line, always shown."""
        self.write(message + "\n")

    def end(self) -> None:
        """Finish the stream successfully."""
        self._close(_END)

    def fail(self, error: BaseException) -> None:
        """Finish the stream with a fatal error.

        Errors that are not ExecutionErrors are wrapped in one carrying the
        same message.
        """
        if not isinstance(error, ExecutionError):
            error = ExecutionError(str(error) or error.__class__.__name__)
        self._close(_Failure(error))

    def _close(self, terminal: object) -> None:
        with self._lock:
            if self._closed:
                logger.debug("Ignoring second terminal event on log stream")
                return
            self._closed = True
            self._queue.put(terminal)

    def __iter__(self) -> Iterator[str]:
        """Yield chunks until the terminal event.

        Raises:
            ExecutionError: If the stream was failed.
        """
        while True:
            item = self._queue.get()
            if item is _END:
                return
            if isinstance(item, _Failure):
                raise item.error
            yield str(item)

    def read(self) -> str:
        """Block until the stream finishes and return everything written."""
        return "".join(self)
