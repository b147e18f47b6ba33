"""toolsync: declarative installer for developer tools across ecosystems."""

__version__ = "0.1.0"
