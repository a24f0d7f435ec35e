"""stamper -- generate new projects from template repositories."""

__version__ = "0.1.0"
