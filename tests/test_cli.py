"""Tests for the easy-sauce CLI."""

import json
import shutil
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from easy_sauce.cli import cli, dispatch, usage_text
from easy_sauce.exceptions import ExecutionError, TestsFailedError
from easy_sauce.logger import LogStream
from easy_sauce.options import Options
from easy_sauce.version import __version__

PLATFORMS_JSON = (
    '[["Windows 10", "chrome", "latest"],'
    '["OS X 10.11", "firefox","latest"],["OS X 10.11", "safari", "9"]]'
)

# Keep the developer's real credentials out of the tests
CLEAN_ENV: dict[str, str | None] = {"SAUCE_USERNAME": None, "SAUCE_ACCESS_KEY": None}


def _finished_stream(*chunks: str, error: Exception | None = None) -> LogStream:
    """Build a stream that has already reached its terminal event."""
    stream = LogStream()
    for chunk in chunks:
        stream.write(chunk)
    if error is not None:
        stream.fail(error)
    else:
        stream.end()
    return stream


@pytest.fixture
def mock_engine() -> Iterator[MagicMock]:
    """Patch the engine so no run is started."""
    with patch("easy_sauce.cli.EasySauce") as engine_class:
        engine_class.return_value.run_tests_and_log_results.return_value = _finished_stream()
        yield engine_class


def _resolved(engine_class: MagicMock) -> Options:
    """Options passed to the most recent engine instance."""
    return engine_class.call_args.args[0]


class TestHelpAndVersion:
    """Tests for help and version output."""

    def setup_method(self) -> None:
        self.runner = CliRunner()

    @pytest.mark.parametrize("args", [["-h"], ["--help"], ["-h", "-p", "9999"], ["-V", "--help"]])
    def test_help_shows_usage(self, mock_engine: MagicMock, args: list[str]) -> None:
        """Test -h/--help shows usage and never dispatches."""
        result = self.runner.invoke(cli, args)
        assert result.exit_code == 0
        assert "Usage: easy-sauce" in result.output
        assert "--platforms" in result.output
        mock_engine.assert_not_called()

    @pytest.mark.parametrize("args", [["-V"], ["--version"], ["-V", "-c", "missing.json"]])
    def test_version_shows_version(self, mock_engine: MagicMock, args: list[str]) -> None:
        """Test -V/--version prints the package version."""
        result = self.runner.invoke(cli, args)
        assert result.exit_code == 0
        assert __version__ in result.output
        assert "easy-sauce" in result.output
        mock_engine.assert_not_called()

    def test_usage_text(self) -> None:
        """Test usage text lists every flag."""
        text = usage_text()
        assert text.startswith("Usage: easy-sauce")
        for flag in (
            "--config",
            "--platforms",
            "--tests",
            "--port",
            "--build",
            "--name",
            "--framework",
            "--username",
            "--key",
            "--verbose",
            "--quiet",
        ):
            assert flag in text


class TestConfigSources:
    """Tests for config file, manifest and environment sources."""

    def setup_method(self) -> None:
        self.runner = CliRunner()

    @pytest.mark.parametrize("flag", ["-c", "--config"])
    def test_uses_config_file(
        self, mock_engine: MagicMock, fixtures_dir: Path, flag: str
    ) -> None:
        """Test options come from the -c/--config file."""
        config_file = fixtures_dir / "config.json"
        config = json.loads(config_file.read_text())

        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, [flag, str(config_file)], env=CLEAN_ENV)

        assert result.exit_code == 0
        mock_engine.return_value.run_tests_and_log_results.assert_called_once()
        options = _resolved(mock_engine)
        assert options.port == config["port"]
        assert options.tests == config["tests"]
        assert options.platforms == config["platforms"]

    def test_uses_manifest(self, mock_engine: MagicMock, fixtures_dir: Path) -> None:
        """Test options come from the package.json easySauce field."""
        manifest = json.loads((fixtures_dir / "package.json").read_text())["easySauce"]

        with self.runner.isolated_filesystem():
            shutil.copy(fixtures_dir / "package.json", "package.json")
            result = self.runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 0
        mock_engine.assert_called_once()
        options = _resolved(mock_engine)
        assert options.port == manifest["port"]
        assert options.platforms == manifest["platforms"]
        assert options.build == manifest["build"]

    def test_config_file_ignores_manifest(self, mock_engine: MagicMock, fixtures_dir: Path) -> None:
        """Test package.json is not read when --config is set."""
        manifest = json.loads((fixtures_dir / "package.json").read_text())["easySauce"]

        with self.runner.isolated_filesystem():
            shutil.copy(fixtures_dir / "package.json", "package.json")
            result = self.runner.invoke(
                cli, ["--config", str(fixtures_dir / "config.json")], env=CLEAN_ENV
            )

        assert result.exit_code == 0
        assert _resolved(mock_engine).build != manifest["build"]

    @pytest.mark.parametrize(
        "args", [["-c", "./config.json"], ["--config", "tests/fixtures/invalid-config.json"]]
    )
    def test_invalid_config_file(self, mock_engine: MagicMock, args: list[str]) -> None:
        """Test a missing or invalid config file exits 1 without dispatching."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, args, env=CLEAN_ENV)

        assert result.exit_code == 1
        assert f"No config options found at {args[1]}" in result.stderr
        mock_engine.assert_not_called()

    def test_invalid_config_fixture(self, mock_engine: MagicMock, fixtures_dir: Path) -> None:
        """Test the unparsable fixture is reported."""
        result = self.runner.invoke(
            cli, ["--config", str(fixtures_dir / "invalid-config.json")], env=CLEAN_ENV
        )
        assert result.exit_code == 1
        assert "No config options found at" in result.stderr
        mock_engine.assert_not_called()

    def test_environment_credentials(self, mock_engine: MagicMock) -> None:
        """Test Sauce Labs credentials come from the environment."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(
                cli, [], env={"SAUCE_USERNAME": "me", "SAUCE_ACCESS_KEY": "password"}
            )

        assert result.exit_code == 0
        options = _resolved(mock_engine)
        assert options.username == "me"
        assert options.key == "password"

    def test_cli_beats_config(self, mock_engine: MagicMock, fixtures_dir: Path) -> None:
        """Test CLI flags win over config file values."""
        config_file = fixtures_dir / "config.json"
        config = json.loads(config_file.read_text())

        with self.runner.isolated_filesystem():
            result = self.runner.invoke(
                cli, ["--config", str(config_file), "--port", "9999"], env=CLEAN_ENV
            )

        assert result.exit_code == 0
        options = _resolved(mock_engine)
        assert options.port == 9999
        assert options.tests == config["tests"]


class TestCommandLineOptions:
    """Tests for individual flags."""

    def setup_method(self) -> None:
        self.runner = CliRunner()

    def _invoke(self, args: list[str]) -> Options:
        with patch("easy_sauce.cli.EasySauce") as engine_class:
            engine_class.return_value.run_tests_and_log_results.return_value = _finished_stream()
            with self.runner.isolated_filesystem():
                result = self.runner.invoke(cli, args, env=CLEAN_ENV)
            assert result.exit_code == 0, result.output
            engine_class.assert_called_once()
            return _resolved(engine_class)

    def test_shorthand_and_longhand_match(self) -> None:
        """Test short and long forms resolve to identical options."""
        short = self._invoke(
            [
                "-P", PLATFORMS_JSON,
                "-t", "/tests/suite.html",
                "-p", "1979",
                "-b", "1",
                "-n", "Unit Tests",
                "-f", "custom",
                "-u", "me",
                "-k", "secret",
                "-v",
                "-q",
            ]
        )
        long = self._invoke(
            [
                "--platforms", PLATFORMS_JSON,
                "--tests", "/tests/suite.html",
                "--port", "1979",
                "--build", "1",
                "--name", "Unit Tests",
                "--framework", "custom",
                "--username", "me",
                "--key", "secret",
                "--verbose",
                "--quiet",
            ]
        )

        assert short == long
        assert short.platforms == [
            ["Windows 10", "chrome", "latest"],
            ["OS X 10.11", "firefox", "latest"],
            ["OS X 10.11", "safari", "9"],
        ]
        assert short.tests == "/tests/suite.html"
        assert short.port == 1979
        assert short.build == "1"
        assert short.name == "Unit Tests"
        assert short.framework == "custom"
        assert short.verbose is True
        assert short.quiet is True

    def test_unset_flags_use_defaults(self) -> None:
        """Test flags left off the command line do not mask other sources."""
        options = self._invoke([])
        assert options == Options()

    @pytest.mark.parametrize(
        "args",
        [
            ["-P", '["Windows 10", "chrome", "50"],["Linux", "firefox", "4"]'],
            ["--platforms", '"Windows 10", "chrome", "50"'],
        ],
    )
    def test_unparsable_platforms(self, mock_engine: MagicMock, args: list[str]) -> None:
        """Test a bad platforms value exits 1 without dispatching."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, args, env=CLEAN_ENV)

        assert result.exit_code == 1
        assert f"{args[1]} could not be converted to an array" in result.stderr
        mock_engine.assert_not_called()

    def test_invalid_port(self, mock_engine: MagicMock) -> None:
        """Test a non-numeric port exits 1."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, ["--port", "abc"], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "abc is not a valid port" in result.stderr
        mock_engine.assert_not_called()


class TestExitStatus:
    """Tests for mapping the log stream outcome to the exit status."""

    def setup_method(self) -> None:
        self.runner = CliRunner()

    def test_stream_output_forwarded(self, mock_engine: MagicMock) -> None:
        """Test stream chunks reach stdout."""
        mock_engine.return_value.run_tests_and_log_results.return_value = _finished_stream(
            "Serving tests\n", "PASS  Linux firefox latest\n"
        )
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert result.stdout == "Serving tests\nPASS  Linux firefox latest\n"

    def test_error_exits_1(self, mock_engine: MagicMock) -> None:
        """Test a stream error prints its message and exits 1."""
        mock_engine.return_value.run_tests_and_log_results.return_value = _finished_stream(
            "partial output\n", error=ExecutionError("fail")
        )
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "fail" in result.stderr
        assert "partial output" in result.stdout

    def test_failed_tests_exit_1(self, mock_engine: MagicMock) -> None:
        """Test failed platforms are reported on stderr."""
        mock_engine.return_value.run_tests_and_log_results.return_value = _finished_stream(
            error=TestsFailedError(1, 3)
        )
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "Tests failed on 1 of 3 platforms" in result.stderr

    def test_end_exits_0(self, mock_engine: MagicMock) -> None:
        """Test a stream end exits 0."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 0
        assert result.stderr == ""

    def test_interrupt_stops_engine(self, mock_engine: MagicMock) -> None:
        """Test Ctrl-C stops the run before exiting 1."""
        stream = MagicMock()
        stream.__iter__.side_effect = KeyboardInterrupt
        mock_engine.return_value.run_tests_and_log_results.return_value = stream
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(cli, [], env=CLEAN_ENV)

        assert result.exit_code == 1
        assert "Interrupted" in result.stderr
        mock_engine.return_value.stop.assert_called_once_with()


class TestDispatch:
    """Tests for dispatch() with pre-parsed flag mappings."""

    def test_help_returns_without_exit(
        self, mock_engine: MagicMock, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test help output returns normally."""
        dispatch({"h": True})
        dispatch({"help": True})
        out = capsys.readouterr().out
        assert out.count("Usage: easy-sauce") == 2
        mock_engine.assert_not_called()

    def test_version(self, mock_engine: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        """Test version output for both flag forms."""
        dispatch({"V": True})
        dispatch({"version": True})
        assert capsys.readouterr().out.count(__version__) == 2

    def test_short_keys(self, mock_engine: MagicMock, tmp_path: Path) -> None:
        """Test short-keyed mappings are resolved."""
        with pytest.raises(SystemExit) as exc_info:
            dispatch({"P": PLATFORMS_JSON, "p": 1979, "q": True}, cwd=tmp_path, environ={})

        assert exc_info.value.code == 0
        options = _resolved(mock_engine)
        assert options.port == 1979
        assert options.quiet is True
        assert len(options.platforms) == 3

    def test_config_error_exits_1(
        self, mock_engine: MagicMock, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Test configuration errors exit 1 with the message on stderr."""
        with pytest.raises(SystemExit) as exc_info:
            dispatch({"c": "./config.json"}, cwd=tmp_path, environ={})

        assert exc_info.value.code == 1
        assert "No config options found at ./config.json" in capsys.readouterr().err
        mock_engine.assert_not_called()
