"""LaudReader: listen to web articles."""

__version__ = "1.0.0"
