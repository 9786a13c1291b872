"""easy-sauce options - resolve one Options value from every config source.

Sources, in ascending precedence:
- built-in defaults
- SAUCE_USERNAME / SAUCE_ACCESS_KEY environment credentials
- the "easySauce" field of package.json in the working directory
- an explicit config file (-c/--config), which disables the manifest
- command-line flags

Each field is resolved on its own: a source only fills the fields that no
higher-precedence source has set.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from easy_sauce.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"
MANIFEST_FIELD = "easySauce"

# Short flag name -> long flag name
FLAG_ALIASES = {
    "h": "help",
    "V": "version",
    "c": "config",
    "P": "platforms",
    "t": "tests",
    "p": "port",
    "b": "build",
    "n": "name",
    "f": "framework",
    "u": "username",
    "k": "key",
    "v": "verbose",
    "q": "quiet",
}

# Option field -> environment variable
ENV_CREDENTIALS = {
    "username": "SAUCE_USERNAME",
    "key": "SAUCE_ACCESS_KEY",
}

DEFAULT_PLATFORMS: list[list[Any]] = [["Windows 10", "chrome", "latest"]]

YAML_SUFFIXES = frozenset({".yaml", ".yml"})


@dataclass
class Options:
    """Resolved configuration for a single test run.

    Attributes:
        tests: Path of the test page, served relative to the working directory.
        platforms: List of [os, browser, version] triples to test on.
        port: Local port the test page is served on.
        build: Build identifier shown in the Sauce Labs dashboard.
        name: Job name shown in the Sauce Labs dashboard.
        framework: Test framework (mocha, jasmine, qunit, YUI Test or custom).
        username: Sauce Labs username.
        key: Sauce Labs access key.
        verbose: Show detailed progress output.
        quiet: Only show results and errors.
    """

    tests: str = "/test/"
    platforms: list[list[Any]] = field(
        default_factory=lambda: [list(p) for p in DEFAULT_PLATFORMS]
    )
    port: int = 1337
    build: str | None = None
    name: str = "Unit tests"
    framework: str = "mocha"
    username: str | None = None
    key: str | None = None
    verbose: bool = False
    quiet: bool = False

    def to_dict(self, redact: bool = False) -> dict[str, Any]:
        """Convert to dictionary, optionally masking the access key."""
        key = self.key
        if redact and key:
            key = "****"
        return {
            "tests": self.tests,
            "platforms": self.platforms,
            "port": self.port,
            "build": self.build,
            "name": self.name,
            "framework": self.framework,
            "username": self.username,
            "key": key,
            "verbose": self.verbose,
            "quiet": self.quiet,
        }


OPTION_FIELDS = tuple(f.name for f in fields(Options))


def normalize_flags(flags: Mapping[str, Any]) -> dict[str, Any]:
    """Map short flag names to their long form and drop unset values.

    When both forms of a flag are present the long form wins.
    """
    normalized: dict[str, Any] = {}
    for name, value in flags.items():
        if value is None:
            continue
        if name in FLAG_ALIASES:
            normalized.setdefault(FLAG_ALIASES[name], value)
        else:
            normalized[name] = value
    return normalized


def _known_options(data: Mapping[str, Any], source: str) -> dict[str, Any]:
    """Keep only recognized option fields from a config mapping."""
    unknown = sorted(k for k in data if k not in OPTION_FIELDS)
    if unknown:
        logger.warning("Ignoring unknown options in %s: %s", source, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in OPTION_FIELDS}


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Read options from an explicit config file.

    JSON by default; .yaml/.yml files are parsed as YAML.

    Args:
        path: Path to the config file, as given on the command line.

    Returns:
        Mapping of recognized option fields.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or not a mapping.
    """
    config_path = Path(path)
    try:
        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix.lower() in YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as e:
        logger.debug("Could not load config file %s: %s", path, e)
        raise ConfigurationError(f"No config options found at {path}", detail=str(e)) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"No config options found at {path}",
            detail=f"expected a mapping, got {type(data).__name__}",
        )

    return _known_options(data, source=str(path))


def load_manifest_options(cwd: Path) -> dict[str, Any]:
    """Read options from the easySauce field of package.json in cwd.

    A missing manifest, a missing field or an unreadable manifest all mean
    "no options" rather than an error.
    """
    manifest_path = cwd / MANIFEST_FILE
    if not manifest_path.is_file():
        return {}

    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable manifest %s: %s", manifest_path, e)
        return {}

    section = manifest.get(MANIFEST_FIELD) if isinstance(manifest, dict) else None
    if section is None:
        return {}
    if not isinstance(section, dict):
        logger.warning("Ignoring non-object %s field in %s", MANIFEST_FIELD, manifest_path)
        return {}

    return _known_options(section, source=f"{manifest_path} ({MANIFEST_FIELD})")


def environment_options(environ: Mapping[str, str]) -> dict[str, Any]:
    """Read Sauce Labs credentials from the environment."""
    return {name: environ[var] for name, var in ENV_CREDENTIALS.items() if environ.get(var)}


def merge_layers(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Merge option layers given in ascending precedence.

    A later layer overrides an earlier one only for fields it actually sets
    (non-None values).
    """
    merged: dict[str, Any] = {}
    for layer in layers:
        for name, value in layer.items():
            if value is not None:
                merged[name] = value
    return merged


def _is_platform(entry: Any) -> bool:
    if not isinstance(entry, (list, tuple)) or len(entry) != 3:
        return False
    return all(
        isinstance(part, (str, int, float)) and not isinstance(part, bool) for part in entry
    )


def parse_platforms(value: Any) -> list[list[Any]]:
    """Parse a platforms value into a list of [os, browser, version] lists.

    Strings are decoded as JSON. Every entry must hold exactly three scalar
    items and at least one entry is required.

    Raises:
        ConfigurationError: If the value does not have that shape.
    """
    parsed = value
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError as e:
            raise ConfigurationError(f"{value} could not be converted to an array") from e

    if not isinstance(parsed, (list, tuple)) or not parsed:
        raise ConfigurationError(f"{value} could not be converted to an array")
    if not all(_is_platform(entry) for entry in parsed):
        raise ConfigurationError(
            f"{value} could not be converted to an array",
            detail="each platform must be an [os, browser, version] array",
        )

    return [list(entry) for entry in parsed]


def parse_port(value: Any) -> int:
    """Validate a port value, accepting ints and digit strings."""
    port: int | None = None
    if isinstance(value, int) and not isinstance(value, bool):
        port = value
    elif isinstance(value, str) and value.strip().isdigit():
        port = int(value.strip())

    if port is None or not 1 <= port <= 65535:
        raise ConfigurationError(f"{value} is not a valid port")
    return port


def normalize_tests_path(value: Any) -> str:
    """Make the test page path absolute, e.g. "test/index.html" -> "/test/index.html"."""
    path = str(value).strip()
    return path if path.startswith("/") else "/" + path


def resolve_options(
    flags: Mapping[str, Any],
    cwd: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Options:
    """Resolve the effective Options for a run.

    Args:
        flags: Parsed command-line flags, keyed by short or long name.
        cwd: Directory holding the manifest. Defaults to the current directory.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        The resolved Options.

    Raises:
        ConfigurationError: If the config file, platforms or port is invalid.
    """
    cwd = Path.cwd() if cwd is None else Path(cwd)
    environ = os.environ if environ is None else environ

    cli_options = normalize_flags(flags)
    config_path = cli_options.get("config")

    # An explicit config file replaces the manifest entirely
    if config_path is not None:
        file_options = load_config_file(config_path)
    else:
        file_options = load_manifest_options(cwd)

    cli_values = {k: v for k, v in cli_options.items() if k in OPTION_FIELDS}
    merged = merge_layers(environment_options(environ), file_options, cli_values)

    if "platforms" in merged:
        merged["platforms"] = parse_platforms(merged["platforms"])
    if "port" in merged:
        merged["port"] = parse_port(merged["port"])
    if "build" in merged:
        merged["build"] = str(merged["build"])
    if "tests" in merged:
        merged["tests"] = normalize_tests_path(merged["tests"])
    for flag in ("verbose", "quiet"):
        if flag in merged and not isinstance(merged[flag], bool):
            raise ConfigurationError(f"{merged[flag]} is not a valid value for {flag}")

    options = Options(**merged)
    logger.debug("Resolved options: %s", options.to_dict(redact=True))
    return options
