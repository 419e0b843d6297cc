"""Root pytest configuration for all tests.

This conftest applies to all test types (unit and integration).
"""

import logging

import pytest

from confluence_mirror.file_mapper import ContentStore
from confluence_mirror.manifest import ManifestStore

# atlassian-python-api logs expected 404 lookups at ERROR level
logging.getLogger("atlassian").setLevel(logging.WARNING)


@pytest.fixture
def output_dir(tmp_path):
    """Empty output directory for one test."""
    path = tmp_path / "export"
    path.mkdir()
    return path


@pytest.fixture
def content_store(output_dir):
    return ContentStore(str(output_dir))


@pytest.fixture
def manifest_store(content_store):
    return ManifestStore(content_store.state_dir)
