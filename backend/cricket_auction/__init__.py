"""Live cricket auction broadcast service."""

__version__ = "1.0.0"
