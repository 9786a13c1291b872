"""easy-sauce engine - run a test page on Sauce Labs and log the results.

A run:
1. Serves the working directory locally on the configured port
2. Opens a Sauce Connect tunnel so remote browsers can reach it
3. Starts a js-tests job on every platform
4. Polls until all jobs complete
5. Reports each platform's result and fails if any platform failed

Everything a run prints goes through the LogStream returned by
run_tests_and_log_results(); the caller decides what to do with it.
"""

import logging
import threading
import time
import uuid
from pathlib import Path

from easy_sauce.config import POLL_INTERVAL, RUN_TIMEOUT, STOP_TIMEOUT
from easy_sauce.exceptions import ExecutionError, TestsFailedError
from easy_sauce.logger import LogStream
from easy_sauce.options import Options
from easy_sauce.reporter import platform_label, report
from easy_sauce.sauce import JsTestsStatus, SauceClient
from easy_sauce.server import TestServer
from easy_sauce.tunnel import SauceConnectTunnel

logger = logging.getLogger(__name__)


class EasySauce:
    """Runs a project's browser tests on Sauce Labs."""

    def __init__(
        self,
        options: Options,
        client: SauceClient | None = None,
        root: Path | None = None,
        poll_interval: float = POLL_INTERVAL,
        run_timeout: float = RUN_TIMEOUT,
    ) -> None:
        self.opts = options
        self.client = client
        self.root = root or Path.cwd()
        self.poll_interval = poll_interval
        self.run_timeout = run_timeout
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def run_tests_and_log_results(self) -> LogStream:
        """Start a run in the background and return its log stream."""
        stream = LogStream(verbose=self.opts.verbose, quiet=self.opts.quiet)
        self._thread = threading.Thread(
            target=self.run, args=(stream,), name="easy-sauce-run", daemon=True
        )
        self._thread.start()
        return stream

    def stop(self, timeout: float = STOP_TIMEOUT) -> None:
        """Cancel a background run and wait for it to release its resources.

        The tunnel and server are shut down by the worker as it unwinds, so
        this blocks until the worker exits or timeout elapses.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Run did not stop within %.0fs", timeout)

    def run(self, stream: LogStream) -> None:
        """Run the tests, finishing stream with end() or fail()."""
        try:
            self._execute(stream)
        except ExecutionError as e:
            logger.info("Run failed: %s", e.message)
            stream.fail(e)
        except Exception as e:
            logger.exception("Unexpected error during run: %s", e)
            stream.fail(e)
        else:
            stream.end()

    def _check_stopped(self) -> None:
        if self._stop_event.is_set():
            raise ExecutionError("Run cancelled")

    def _execute(self, stream: LogStream) -> None:
        opts = self.opts
        if not opts.username or not opts.key:
            raise ExecutionError(
                "Sauce Labs username and access key are required. Pass --username "
                "and --key or set SAUCE_USERNAME and SAUCE_ACCESS_KEY."
            )

        client = self.client or SauceClient(opts.username, opts.key)
        tunnel_identifier = f"easy-sauce-{uuid.uuid4().hex[:12]}"

        with TestServer(self.root, opts.port) as server:
            test_url = server.url + "/" + opts.tests.lstrip("/")
            stream.log(f"Serving tests at {test_url}")

            stream.log("Opening Sauce Connect tunnel...")
            with SauceConnectTunnel(
                opts.username, opts.key, tunnel_identifier, cancel=self._stop_event
            ):
                stream.debug(f"Tunnel {tunnel_identifier} is ready")
                self._check_stopped()

                ids = client.start_js_tests(
                    test_url,
                    opts.platforms,
                    opts.framework,
                    name=opts.name,
                    build=opts.build,
                    tunnel_identifier=tunnel_identifier,
                )
                stream.log(f"Running tests on {len(opts.platforms)} platform(s):")
                for platform in opts.platforms:
                    stream.log(f"  - {platform_label(platform)}")

                status = self._wait_for_completion(client, ids, stream)

        # Jobs come back in platform order
        started = [
            (job_id, opts.platforms[i] if i < len(opts.platforms) else [])
            for i, job_id in enumerate(ids)
        ]
        stream.log("")
        failed = report(status, stream, started)
        if failed:
            raise TestsFailedError(failed, max(len(ids), len(status.js_tests)))

    def _wait_for_completion(
        self, client: SauceClient, ids: list[str], stream: LogStream
    ) -> JsTestsStatus:
        """Poll js-tests status until every job completes or the run is stopped."""
        deadline = time.monotonic() + self.run_timeout
        while True:
            self._check_stopped()
            status = client.get_js_tests_status(ids)
            if status.completed:
                return status

            pending = sum(1 for test in status.js_tests if test.result is None)
            stream.debug(f"Waiting on {pending} of {len(ids)} platform(s)...")

            if time.monotonic() >= deadline:
                raise ExecutionError(
                    f"Tests did not complete within {self.run_timeout:.0f} seconds"
                )
            self._stop_event.wait(self.poll_interval)
