"""Pull remote metadata changes into a local source workspace."""

__version__ = "0.1.0"
