"""Version information for easy-sauce."""

__version__ = "0.1.0"
