"""Unit tests for pipeline.resume_guard module."""

import pytest

from confluence_mirror.manifest import Checkpoint, CheckpointRecord, EntryStatus, ManifestEntry, ManifestStore
from confluence_mirror.models import ItemKind, SpaceScope
from confluence_mirror.pipeline import ResumeGuard, ResumeRequiredError, RunMode


@pytest.fixture
def store(tmp_path):
    return ManifestStore(str(tmp_path / ".confluence-mirror"))


def save_checkpoint(store, space_key="TEAM", root_page_id=None):
    record = CheckpointRecord(
        entry=ManifestEntry(id="1", kind=ItemKind.PAGE, title="Home", path="Home.md",
                            hash="abcdefabcdef", version=1, status=EntryStatus.ADDED),
        space_key=space_key,
    )
    store.save_checkpoint(Checkpoint(space_key=space_key, root_page_id=root_page_id, records=[record]))


class TestResumeGuard:
    """Test cases for ResumeGuard.check."""

    def test_normal_without_checkpoint(self, store):
        assert ResumeGuard(store).check(RunMode.NORMAL, SpaceScope("TEAM")) is None

    def test_normal_with_checkpoint_requires_choice(self, store):
        """An unfinished run must be resumed or discarded explicitly."""
        save_checkpoint(store)

        with pytest.raises(ResumeRequiredError) as exc_info:
            ResumeGuard(store).check(RunMode.NORMAL, SpaceScope("TEAM"))

        assert "--resume" in str(exc_info.value)
        assert "--fresh" in str(exc_info.value)
        assert store.has_checkpoint()

    def test_fresh_discards_checkpoint(self, store):
        save_checkpoint(store)

        assert ResumeGuard(store).check(RunMode.FRESH, SpaceScope("TEAM")) is None
        assert not store.has_checkpoint()

    def test_resume_returns_checkpoint(self, store):
        save_checkpoint(store)

        checkpoint = ResumeGuard(store).check(RunMode.RESUME, SpaceScope("TEAM"))

        assert checkpoint is not None
        assert [r.entry.id for r in checkpoint.records] == ["1"]

    def test_resume_without_checkpoint_starts_over(self, store):
        assert ResumeGuard(store).check(RunMode.RESUME, SpaceScope("TEAM")) is None

    def test_resume_with_other_scope_rejected(self, store):
        """A checkpoint for another space or root cannot be resumed."""
        save_checkpoint(store, root_page_id="42")

        with pytest.raises(ResumeRequiredError) as exc_info:
            ResumeGuard(store).check(RunMode.RESUME, SpaceScope("TEAM"))

        assert "root 42" in str(exc_info.value)
