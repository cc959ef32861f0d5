"""
CLI entry point for hue-daylight.

- main: Run the daemon (or the bridge setup wizard with --setup)
"""

from .daemon import main

__all__ = ["main"]
