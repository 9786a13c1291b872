"""Result formatting for js-tests runs."""

from typing import Any

from easy_sauce.logger import LogStream
from easy_sauce.sauce import JsTest, JsTestsStatus


def platform_label(platform: list[Any]) -> str:
    """Format a platform triple, e.g. "Windows 10 chrome latest"."""
    return " ".join(str(part) for part in platform if str(part)).strip() or "unknown platform"


def summarize_result(result: Any) -> tuple[bool, str]:
    """Normalize a framework result payload into (passed, detail).

    Handles mocha (passes/failures), jasmine, qunit and custom
    (passed/failed/total) payloads, and bare booleans.
    """
    if result is None:
        return False, "no result reported"
    if isinstance(result, bool):
        return result, "passed" if result else "failed"
    if not isinstance(result, dict):
        return False, f"unrecognized result: {result!r}"

    if "failures" in result:
        failures = int(result.get("failures") or 0)
        passes = int(result.get("passes") or 0)
        total = int(result.get("tests") or passes + failures)
        return failures == 0, f"{passes} passed, {failures} failed, {total} total"

    if "failed" in result:
        failed = int(result.get("failed") or 0)
        passed = int(result.get("passed") or 0)
        total = int(result.get("total") or passed + failed)
        return failed == 0, f"{passed} passed, {failed} failed, {total} total"

    if isinstance(result.get("passed"), bool):
        return result["passed"], "passed" if result["passed"] else "failed"

    return False, "unrecognized result"


def report_test(test: JsTest, stream: LogStream) -> bool:
    """Write one platform's outcome and return whether it passed."""
    passed, detail = summarize_result(test.result)
    status = "PASS" if passed else "FAIL"
    stream.result(f"{status}  {platform_label(test.platform)}: {detail}")
    if test.url:
        stream.debug(f"      {test.url}")
    return passed


def report(
    status: JsTestsStatus,
    stream: LogStream,
    started: list[tuple[str, list[Any]]] | None = None,
) -> int:
    """Write every platform's outcome and return the number of failures.

    Args:
        status: Final js-tests status.
        stream: Stream to write result lines to.
        started: (job id, platform) pairs for every job that was started.
            Started jobs missing from status count as failed.
    """
    failed = 0
    reported: set[str | None] = set()
    for test in status.js_tests:
        reported.add(test.id)
        if not report_test(test, stream):
            failed += 1

    missing = [(job_id, platform) for job_id, platform in started or [] if job_id not in reported]
    for _, platform in missing:
        stream.result(f"FAIL  {platform_label(platform)}: no result reported")
        failed += 1

    total = len(status.js_tests) + len(missing)
    stream.log(f"\n{total - failed} of {total} platforms passed")
    return failed
