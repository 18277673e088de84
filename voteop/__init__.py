"""Content-addressed vote signing and storage."""

__version__ = "1.0.0"
