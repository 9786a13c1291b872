"""Local test server.

Serves the project directory over HTTP so the Sauce Labs browsers can load
the test page through the tunnel. The server runs uvicorn in a background
thread for the lifetime of a run.
"""

import logging
import threading
import time
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from easy_sauce.config import SERVER_START_TIMEOUT
from easy_sauce.exceptions import TestServerError

logger = logging.getLogger(__name__)


def create_app(root: Path) -> FastAPI:
    """Create an app serving root as static files.

    Directory URLs resolve to their index.html, so a tests path like
    "/test/" loads test/index.html.
    """
    app = FastAPI(title="easy-sauce test server", docs_url=None, redoc_url=None, openapi_url=None)
    app.mount("/", StaticFiles(directory=str(root), html=True), name="tests")
    return app


class TestServer:
    """Static file server running in a background thread.

    Usage:
        with TestServer(Path.cwd(), port=1337) as server:
            print(server.url)
    """

    __test__ = False

    def __init__(
        self,
        root: Path,
        port: int,
        host: str = "127.0.0.1",
        start_timeout: float = SERVER_START_TIMEOUT,
    ) -> None:
        self.root = root
        self.port = port
        self.host = host
        self.start_timeout = start_timeout
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    @property
    def url(self) -> str:
        return f"http://localhost:{self.port}"

    def start(self) -> None:
        """Start serving and wait until the server accepts connections.

        Raises:
            TestServerError: If the server does not come up in time.
        """
        config = uvicorn.Config(
            create_app(self.root),
            host=self.host,
            port=self.port,
            log_level="warning",
            access_log=False,
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run, name="easy-sauce-server", daemon=True
        )
        self._thread.start()

        deadline = time.monotonic() + self.start_timeout
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self.stop()
                raise TestServerError(f"Could not start test server on port {self.port}")
            time.sleep(0.05)

        logger.info("Test server listening on %s (root=%s)", self.url, self.root)

    def stop(self) -> None:
        """Shut the server down and wait for its thread to exit."""
        if self._server is not None:
            self._server.should_exit = True
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self._server = None
        self._thread = None

    def __enter__(self) -> "TestServer":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
