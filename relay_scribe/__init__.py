"""Relay Scribe - Live transcript relay with de-duplication and translation fan-out."""

__version__ = "0.1.0"

__all__ = ["__version__"]
