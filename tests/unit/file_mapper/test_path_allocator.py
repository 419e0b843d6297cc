"""Unit tests for file_mapper.path_allocator module."""

import threading

from confluence_mirror.file_mapper import (
    IdPathMap,
    attachment_path,
    page_path,
    relative_link,
    user_path,
)
from confluence_mirror.models import (
    AncestorRef,
    ConfluenceAttachment,
    ConfluencePage,
    ItemKind,
    SpaceScope,
    UserProfile,
)


def make_page(page_id, title, ancestors=()):
    return ConfluencePage(
        page_id=page_id,
        space_key="TEAM",
        title=title,
        content_storage="",
        version=1,
        ancestors=[AncestorRef(a_id, a_title) for a_id, a_title in ancestors],
    )


class TestPagePath:
    """Test cases for page_path."""

    def test_top_level_page(self):
        assert page_path(make_page("1", "Home"), SpaceScope("TEAM")) == "Home.md"

    def test_nested_under_ancestors(self):
        """Pages are nested under their ancestors' titles."""
        page = make_page("3", "Child Page", [("1", "Home"), ("2", "Guides")])
        assert page_path(page, SpaceScope("TEAM")) == "Home/Guides/Child-Page.md"

    def test_root_page_at_top(self):
        """The root of the scope sits at the top of the tree."""
        page = make_page("2", "Guides", [("1", "Home")])
        assert page_path(page, SpaceScope("TEAM", "2")) == "Guides.md"

    def test_ancestors_above_root_dropped(self):
        """Only ancestors from the root down form directories."""
        page = make_page("3", "Child", [("1", "Home"), ("2", "Guides")])
        assert page_path(page, SpaceScope("TEAM", "2")) == "Guides/Child.md"


class TestOtherPaths:
    """Test cases for attachment_path, user_path and relative_link."""

    def test_attachment_grouped_by_owner(self):
        attachment = ConfluenceAttachment("att9", "1002", "my diagram.png", 1, b"")
        assert attachment_path(attachment) == "attachments/1002/my-diagram.png"

    def test_attachment_owner_override(self):
        attachment = ConfluenceAttachment("att9", "", "a.txt", 1, b"")
        assert attachment_path(attachment, "1001") == "attachments/1001/a.txt"

    def test_user_path(self):
        assert user_path(UserProfile("557058:alice", "Alice Smith")) == "users/Alice-Smith.md"

    def test_relative_link_same_directory(self):
        assert relative_link("Home.md", "Child.md") == "Child.md"

    def test_relative_link_into_subdirectory(self):
        assert relative_link("Home.md", "Home/Child.md") == "Home/Child.md"

    def test_relative_link_up_and_across(self):
        assert relative_link("Home/Child.md", "users/alice.md") == "../users/alice.md"

    def test_relative_link_encodes_parentheses(self):
        """An unbalanced parenthesis must not end the link destination."""
        assert relative_link("Home.md", "Plan-(draft.md") == "Plan-%28draft.md"

    def test_relative_link_encodes_non_ascii_and_spaces(self):
        assert relative_link("Home.md", "Café/a b.md") == "Caf%C3%A9/a%20b.md"


class TestIdPathMap:
    """Test cases for IdPathMap."""

    def test_assign_is_stable(self):
        """The first assignment wins for an identity."""
        paths = IdPathMap()
        assert paths.assign(ItemKind.PAGE, "1001", "Notes.md") == "Notes.md"
        assert paths.assign(ItemKind.PAGE, "1001", "Renamed.md") == "Notes.md"

    def test_collision_gets_id_suffix(self):
        """A second item wanting the same path gets its id fragment appended."""
        paths = IdPathMap()
        paths.assign(ItemKind.PAGE, "1001", "Notes.md")

        assert paths.assign(ItemKind.PAGE, "2002", "Notes.md") == "Notes-2002.md"

    def test_collision_is_case_insensitive(self):
        """Paths differing only in case collide."""
        paths = IdPathMap()
        paths.assign(ItemKind.PAGE, "1001", "Notes.md")

        assert paths.assign(ItemKind.PAGE, "2002", "notes.md") == "notes-2002.md"

    def test_repeated_collision_counts_up(self):
        """When the suffixed path is taken too a counter is added."""
        paths = IdPathMap()
        paths.assign(ItemKind.PAGE, "1001", "Notes.md")
        paths.assign(ItemKind.PAGE, "99002", "Notes-9002.md")

        assert paths.assign(ItemKind.PAGE, "19002", "Notes.md") == "Notes-9002-2.md"

    def test_reserved_path_kept_for_owner(self):
        """An item keeps its previous (suffixed) path while its name is unchanged."""
        paths = IdPathMap(reserved={(ItemKind.PAGE, "2002"): "Notes-2002.md"})

        assert paths.assign(ItemKind.PAGE, "2002", "Notes.md") == "Notes-2002.md"

    def test_reserved_path_not_given_to_others(self):
        """Another item never takes a path reserved by a previous run."""
        paths = IdPathMap(reserved={(ItemKind.PAGE, "1001"): "Notes.md"})

        assert paths.assign(ItemKind.PAGE, "2002", "Notes.md") == "Notes-2002.md"

    def test_renamed_item_leaves_reserved_path(self):
        """A renamed item gets its new path, not the reserved one."""
        paths = IdPathMap(reserved={(ItemKind.PAGE, "1001"): "Old.md"})

        assert paths.assign(ItemKind.PAGE, "1001", "New.md") == "New.md"

    def test_owner_of(self):
        paths = IdPathMap()
        paths.assign(ItemKind.USER, "u1", "users/Alice.md")

        assert paths.owner_of("USERS/alice.md") == (ItemKind.USER, "u1")
        assert paths.owner_of("users/Bob.md") is None

    def test_title_lookup_is_case_insensitive(self):
        paths = IdPathMap()
        paths.record_title("TEAM", "Getting Started", "1001")

        assert paths.find_page_by_title("team", "getting started") == "1001"
        assert paths.find_page_by_title("OTHER", "Getting Started") is None

    def test_concurrent_assignments_are_unique(self):
        """Concurrent workers never receive the same path."""
        paths = IdPathMap()
        results = []
        lock = threading.Lock()

        def worker(index):
            path = paths.assign(ItemKind.PAGE, str(1000 + index), "Same.md")
            with lock:
                results.append(path.lower())

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(16)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(set(results)) == 16
