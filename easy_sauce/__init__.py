"""easy-sauce - run browser unit tests on Sauce Labs from the command line."""

from easy_sauce.engine import EasySauce
from easy_sauce.exceptions import (
    ConfigurationError,
    EasySauceError,
    ExecutionError,
    SauceAPIError,
    TestsFailedError,
    TunnelError,
)
from easy_sauce.logger import LogStream
from easy_sauce.options import Options, resolve_options
from easy_sauce.version import __version__

__all__ = [
    "__version__",
    "EasySauce",
    "LogStream",
    "Options",
    "resolve_options",
    "EasySauceError",
    "ConfigurationError",
    "ExecutionError",
    "SauceAPIError",
    "TestsFailedError",
    "TunnelError",
]
