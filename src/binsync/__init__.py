"""binsync - cross-compile release binaries and sync them to object storage."""

__version__ = "0.1.0"
