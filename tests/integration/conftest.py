"""Pytest configuration and fixtures for integration tests.

Provides small Confluence spaces exported by the tests in this package.
"""

import pytest

from tests.fixtures import FakeSpace, page_link, user_mention


@pytest.fixture
def home_space():
    """Home links to Child and mentions alice; only Home is listed."""
    space = FakeSpace("TEAM")
    space.add_page("1001", "Home", f"<p>See {page_link('1002', 'Child')}. Owner: {user_mention('alice')}</p>")
    space.add_page("1002", "Child", "<p>Child page</p>")
    space.add_user("alice", "Alice")
    space.listing = ["1001"]
    return space


@pytest.fixture
def tree_space():
    """A nested space with cross links, a cycle and a shared user."""
    space = FakeSpace("TEAM")
    space.add_page("100", "Home", f"<p>{page_link('105', 'Reference')} {user_mention('bob')}</p>")
    space.add_page("101", "Guides", f"<p>{page_link('100', 'Home')}</p>", parent_id="100")
    space.add_page("102", "Setup", f"<p>{page_link('103', 'Usage')}</p>", parent_id="101")
    space.add_page("103", "Usage", f"<p>{page_link('102', 'Setup')} {user_mention('bob')}</p>", parent_id="101")
    space.add_page("104", "Archive", "<p>old</p>", parent_id="100")
    space.add_page("105", "Reference", f"<p>{page_link('101', 'Guides')}</p>", parent_id="104")
    for n in range(106, 112):
        space.add_page(str(n), f"Note {n}", f"<p>{page_link('100', 'Home')}</p>", parent_id="104")
    space.add_user("bob", "Bob Jones")
    space.listing = ["100"]
    return space
