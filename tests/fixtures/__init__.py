"""Test fixtures for the mirror.

This module provides:
- FakeSpace, an in-memory Confluence space with injectable failures
- Storage format snippets for links, mentions and attachment images
- Helpers running one export and reading back its tree and manifest
"""

from .export_runs import make_pipeline, manifest_rows, read_tree, run_export, state_store
from .fake_space import (
    FakeSpace,
    attachment_image,
    fast_fetcher,
    page_link,
    title_link,
    user_mention,
)

__all__ = [
    "FakeSpace",
    "attachment_image",
    "fast_fetcher",
    "make_pipeline",
    "manifest_rows",
    "page_link",
    "read_tree",
    "run_export",
    "state_store",
    "title_link",
    "user_mention",
]
