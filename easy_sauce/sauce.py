"""Sauce Labs REST client for JavaScript unit test jobs.

Wraps the two js-tests endpoints used by a run:
- POST /{username}/js-tests          start a job per platform
- POST /{username}/js-tests/status   poll those jobs
"""

import logging
from typing import Any

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from easy_sauce.config import REQUEST_TIMEOUT, SAUCE_API_URL
from easy_sauce.exceptions import SauceAPIError

logger = logging.getLogger(__name__)


class JsTest(BaseModel):
    """Status of a single platform's js-tests job."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | None = Field(None, description="js-tests job ID")
    job_id: str | None = Field(None, description="Sauce Labs job ID")
    url: str | None = Field(None, description="Job page on Sauce Labs")
    platform: list[Any] = Field(default_factory=list, description="[os, browser, version]")
    result: Any = Field(None, description="Framework result payload, once available")


class JsTestsStatus(BaseModel):
    """Status of all jobs started by one js-tests request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    completed: bool = Field(False, description="True once every job has finished")
    js_tests: list[JsTest] = Field(default_factory=list, alias="js tests")


class SauceClient:
    """Client for the Sauce Labs js-tests REST API.

    Usage:
        client = SauceClient("me", "access-key")
        ids = client.start_js_tests(url, [["Windows 10", "chrome", "latest"]], "mocha")
        status = client.get_js_tests_status(ids)
    """

    def __init__(
        self,
        username: str,
        key: str,
        api_url: str = SAUCE_API_URL,
        timeout: float = REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.username = username
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = (username, key)

    @property
    def base_url(self) -> str:
        return f"{self.api_url}/{self.username}"

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}/{path}"
        logger.debug("POST %s %s", url, payload)
        try:
            response = self.session.post(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise SauceAPIError(f"Could not reach Sauce Labs: {e}") from e

        if not response.ok:
            raise SauceAPIError(
                f"Sauce Labs responded with {response.status_code}: {response.text.strip()}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SauceAPIError(
                "Sauce Labs returned an invalid response",
                status_code=response.status_code,
                detail=response.text,
            ) from e

    def start_js_tests(
        self,
        url: str,
        platforms: list[list[Any]],
        framework: str,
        name: str | None = None,
        build: str | None = None,
        tunnel_identifier: str | None = None,
    ) -> list[str]:
        """Start a js-tests job on each platform.

        Args:
            url: Publicly reachable (or tunnelled) URL of the test page.
            platforms: [os, browser, version] triples.
            framework: Test framework reporting results on the page.
            name: Job name.
            build: Build identifier.
            tunnel_identifier: Sauce Connect tunnel to route traffic through.

        Returns:
            The js-tests job IDs, one per platform.
        """
        payload: dict[str, Any] = {
            "url": url,
            "platforms": platforms,
            "framework": framework,
        }
        if name:
            payload["name"] = name
        if build:
            payload["build"] = build
        if tunnel_identifier:
            payload["tunnel-identifier"] = tunnel_identifier

        data = self._post("js-tests", payload)
        ids = data.get("js tests") if isinstance(data, dict) else None
        if not isinstance(ids, list) or not ids:
            raise SauceAPIError("Sauce Labs did not start any tests", detail=str(data))
        return [str(i) for i in ids]

    def get_js_tests_status(self, ids: list[str]) -> JsTestsStatus:
        """Fetch the status of previously started js-tests jobs."""
        data = self._post("js-tests/status", {"js tests": ids})
        try:
            return JsTestsStatus.model_validate(data)
        except ValidationError as e:
            raise SauceAPIError(
                "Sauce Labs returned an invalid status response", detail=str(e)
            ) from e
