"""Incremental, resumable mirror of a Confluence space into local markdown."""

__version__ = "0.1.0"
