"""Sauce Connect tunnel management.

Starts the Sauce Connect binary as a subprocess so the remote browsers can
reach the local test server, and tears it down after the run.
"""

import logging
import subprocess
import tempfile
import threading
import time
from pathlib import Path

from easy_sauce.config import SAUCE_CONNECT_BIN, TUNNEL_TIMEOUT
from easy_sauce.exceptions import TunnelError

logger = logging.getLogger(__name__)


class SauceConnectTunnel:
    """A Sauce Connect process bound to one tunnel identifier.

    Sauce Connect touches its --readyfile once the tunnel is usable; start()
    waits for that file.
    """

    def __init__(
        self,
        username: str,
        key: str,
        tunnel_identifier: str,
        binary: str = SAUCE_CONNECT_BIN,
        timeout: float = TUNNEL_TIMEOUT,
        cancel: threading.Event | None = None,
    ) -> None:
        self.username = username
        self.key = key
        self.tunnel_identifier = tunnel_identifier
        self.binary = binary
        self.timeout = timeout
        self.cancel = cancel
        self.process: subprocess.Popen[bytes] | None = None
        self._workdir: tempfile.TemporaryDirectory[str] | None = None

    def _build_command(self, ready_file: Path, log_file: Path) -> list[str]:
        return [
            self.binary,
            "--user",
            self.username,
            "--api-key",
            self.key,
            "--tunnel-identifier",
            self.tunnel_identifier,
            "--readyfile",
            str(ready_file),
            "--logfile",
            str(log_file),
        ]

    def start(self) -> None:
        """Start Sauce Connect and wait until the tunnel is ready.

        Raises:
            TunnelError: If the binary is missing, exits early, times out, or the
                cancel event is set.
        """
        self._workdir = tempfile.TemporaryDirectory(prefix="easy-sauce-")
        workdir = Path(self._workdir.name)
        ready_file = workdir / "sc.ready"
        log_file = workdir / "sc.log"

        cmd = self._build_command(ready_file, log_file)
        logger.info("Starting Sauce Connect (tunnel=%s)", self.tunnel_identifier)
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            self._cleanup()
            raise TunnelError(f"Could not start Sauce Connect ({self.binary}): {e}") from e

        deadline = time.monotonic() + self.timeout
        while not ready_file.exists():
            returncode = self.process.poll()
            if returncode is not None:
                detail = _read_tail(log_file)
                self._cleanup()
                raise TunnelError(
                    f"Sauce Connect exited with code {returncode} before the tunnel was ready",
                    detail=detail,
                )
            if self.cancel is not None and self.cancel.is_set():
                self.stop()
                raise TunnelError("Sauce Connect start cancelled")
            if time.monotonic() >= deadline:
                self.stop()
                raise TunnelError(f"Sauce Connect was not ready after {self.timeout:.0f}s")
            time.sleep(0.5)

        logger.info("Sauce Connect ready (PID %d)", self.process.pid)

    def stop(self, grace: float = 10.0) -> None:
        """Terminate Sauce Connect, killing it if it does not exit in time."""
        if self.process is not None and self.process.poll() is None:
            self.process.terminate()
            try:
                self.process.wait(timeout=grace)
            except subprocess.TimeoutExpired:
                logger.warning("Sauce Connect did not exit after %.0fs, killing", grace)
                self.process.kill()
                self.process.wait()
        self._cleanup()

    def _cleanup(self) -> None:
        self.process = None
        if self._workdir is not None:
            self._workdir.cleanup()
            self._workdir = None

    def __enter__(self) -> "SauceConnectTunnel":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def _read_tail(log_file: Path, lines: int = 20) -> str | None:
    """Return the last lines of a log file, if it can be read."""
    try:
        return "\n".join(log_file.read_text(errors="replace").splitlines()[-lines:])
    except OSError:
        return None
