"""Unit tests for manifest.manifest_store module."""

import os

import pytest

from confluence_mirror.discovery import DiscoveryItem, SourceEdge
from confluence_mirror.links.models import PendingReference
from confluence_mirror.manifest import (
    Checkpoint,
    CheckpointRecord,
    EntryStatus,
    Manifest,
    ManifestEntry,
    ManifestPersistError,
    ManifestStore,
    content_hash,
)
from confluence_mirror.models import ItemKind, SpaceScope


def entry(remote_id, kind=ItemKind.PAGE, status=EntryStatus.ADDED, digest="aaaaaaaaaaaa", path=None):
    return ManifestEntry(
        id=remote_id,
        kind=kind,
        title=f"Page {remote_id}",
        path=path or f"Page-{remote_id}.md",
        hash=digest,
        version=1,
        status=status,
    )


@pytest.fixture
def store(tmp_path):
    return ManifestStore(str(tmp_path / ".confluence-mirror"))


class TestContentHash:
    """Test cases for content_hash."""

    def test_truncated_sha256(self):
        """Hash is the first 12 hex chars of sha256."""
        assert content_hash("hello") == "2cf24dba5fb0"

    def test_str_and_bytes_agree(self):
        """Text is hashed as UTF-8."""
        assert content_hash("héllo") == content_hash("héllo".encode("utf-8"))


class TestLoadAndPersist:
    """Test cases for manifest load/persist."""

    def test_missing_manifest_is_empty(self, store):
        """No file means a first run."""
        manifest = store.load()
        assert len(manifest) == 0
        assert manifest.scope is None

    def test_persist_then_load(self, store):
        """Persisted entries and scope are read back."""
        manifest = Manifest(space_key="TEAM", root_page_id="1001")
        manifest.add(entry("1001"))
        manifest.add(entry("557058:alice", kind=ItemKind.USER, path="users/Alice.md"))

        store.persist(manifest)
        loaded = store.load()

        assert loaded.scope == SpaceScope("TEAM", "1001")
        assert loaded.get(ItemKind.PAGE, "1001") == manifest.get(ItemKind.PAGE, "1001")
        assert loaded.get(ItemKind.USER, "557058:alice").path == "users/Alice.md"
        assert loaded.timestamp is not None

    def test_entries_sorted_numerically(self, store):
        """Entries are persisted by kind, then numeric id."""
        manifest = Manifest(space_key="TEAM")
        for remote_id in ("10", "9", "100"):
            manifest.add(entry(remote_id))
        store.persist(manifest)

        assert [e.id for e in store.load().sorted_entries()] == ["9", "10", "100"]

    def test_persist_leaves_no_temp_files(self, store):
        """The atomic write cleans up after itself."""
        store.persist(Manifest(space_key="TEAM"))
        assert os.listdir(store.state_dir) == [ManifestStore.MANIFEST_FILE]

    def test_corrupt_manifest_treated_as_empty(self, store, caplog):
        """Malformed YAML is logged and treated as no prior state."""
        os.makedirs(store.state_dir)
        with open(store.manifest_path, "w", encoding="utf-8") as f:
            f.write("entries: [unclosed")

        manifest = store.load()

        assert len(manifest) == 0
        assert "treating as no prior state" in caplog.text

    def test_non_mapping_manifest_treated_as_empty(self, store):
        """A YAML list is not a manifest."""
        os.makedirs(store.state_dir)
        with open(store.manifest_path, "w", encoding="utf-8") as f:
            f.write("- a\n- b\n")

        assert len(store.load()) == 0

    def test_persist_failure_raises(self, tmp_path):
        """An unwritable location raises ManifestPersistError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        store = ManifestStore(str(blocker / "state"))

        with pytest.raises(ManifestPersistError):
            store.persist(Manifest(space_key="TEAM"))


class TestDiffStatus:
    """Test cases for diff_status."""

    def test_no_prior_is_added(self):
        assert ManifestStore.diff_status(None, "abc") == EntryStatus.ADDED

    def test_same_hash_is_unchanged(self):
        assert ManifestStore.diff_status(entry("1", digest="abc"), "abc") == EntryStatus.UNCHANGED

    def test_different_hash_is_changed(self):
        assert ManifestStore.diff_status(entry("1", digest="abc"), "def") == EntryStatus.CHANGED

    def test_prior_removed_is_added(self):
        """An item that reappears after removal counts as added."""
        prior = entry("1", status=EntryStatus.REMOVED, digest="abc")
        assert ManifestStore.diff_status(prior, "abc") == EntryStatus.ADDED

    def test_prior_without_hash_is_added(self):
        """A previously failed item has no content to compare against."""
        prior = entry("1", status=EntryStatus.FAILED)
        prior.hash = None
        assert ManifestStore.diff_status(prior, "abc") == EntryStatus.ADDED


class TestComputeRemoved:
    """Test cases for compute_removed."""

    def test_unseen_entries_removed(self):
        """Prior entries missing from the traversal become removed entries."""
        prior = Manifest(space_key="TEAM")
        prior.add(entry("1"))
        prior.add(entry("2"))

        removed = ManifestStore.compute_removed(prior, [(ItemKind.PAGE, "1")])

        assert [(e.id, e.status) for e in removed] == [("2", EntryStatus.REMOVED)]
        assert removed[0].path == "Page-2.md"
        assert prior.get(ItemKind.PAGE, "2").status == EntryStatus.ADDED

    def test_already_removed_not_repeated(self):
        """Removed entries are reported once."""
        prior = Manifest(space_key="TEAM")
        prior.add(entry("1", status=EntryStatus.REMOVED))

        assert ManifestStore.compute_removed(prior, []) == []


class TestCheckpoint:
    """Test cases for checkpoint persistence."""

    def test_round_trip(self, store):
        """Records keep their entry, discoveries and pending references."""
        record = CheckpointRecord(
            entry=entry("1001"),
            discovered=[DiscoveryItem(ItemKind.PAGE, "1002", "1001", SourceEdge.LINK)],
            pending_refs=[PendingReference("1001", ItemKind.PAGE, "mirror-ref:page:1002", "1002")],
            space_key="TEAM",
        )
        store.save_checkpoint(Checkpoint(space_key="TEAM", root_page_id="1001", fresh=True, records=[record]))

        loaded = store.load_checkpoint()

        assert store.has_checkpoint()
        assert loaded.scope == SpaceScope("TEAM", "1001")
        assert loaded.fresh is True
        assert loaded.records[0].entry == record.entry
        assert loaded.records[0].discovered == record.discovered
        assert loaded.records[0].pending_refs == record.pending_refs
        assert loaded.records[0].space_key == "TEAM"

    def test_clear_checkpoint(self, store):
        """Clearing removes the file; clearing twice is harmless."""
        store.save_checkpoint(Checkpoint(space_key="TEAM"))
        store.clear_checkpoint()
        store.clear_checkpoint()

        assert not store.has_checkpoint()
        assert store.load_checkpoint() is None

    def test_corrupt_checkpoint_ignored(self, store):
        """A checkpoint without a space key is unusable."""
        os.makedirs(store.state_dir)
        with open(store.checkpoint_path, "w", encoding="utf-8") as f:
            f.write("records: []\n")

        assert store.load_checkpoint() is None
