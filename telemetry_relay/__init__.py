"""Relay that fans game-server position pushes out to connected map viewers."""

__version__ = "0.4.0"

__all__ = ["__version__"]
