"""Beady web UI: live-reload development server for the issue browser."""

__version__ = "0.1.0"

# Overridden by release builds.
__commit__ = "none"
__build_date__ = "unknown"

__all__ = ["__version__", "__commit__", "__build_date__"]
