"""Data models for graph discovery."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from confluence_mirror.models import ItemKind


class SourceEdge(str, Enum):
    """How an item was reached during traversal."""
    LISTING = "listing"
    CHILD = "child"
    LINK = "link"
    MENTION = "mention"
    ATTACHMENT = "attachment"
    RESUME = "resume"


Identity = Tuple[ItemKind, str]


@dataclass(frozen=True)
class DiscoveryItem:
    """A unit of traversal work: one remote item identified by kind and ID.

    Attributes:
        kind: Page, attachment or user profile
        remote_id: Remote identifier (page ID, attachment ID, account ID)
        discovered_from: Remote ID of the page that referenced this item
            (None for items from the scope listing). For attachments this is
            the owning page, which decides the local directory.
        source_edge: How the item was reached
    """
    kind: ItemKind
    remote_id: str
    discovered_from: Optional[str] = None
    source_edge: SourceEdge = SourceEdge.LISTING

    @property
    def identity(self) -> Identity:
        """Deduplication key for the item."""
        return (self.kind, self.remote_id)


@dataclass(frozen=True)
class QueueStats:
    """Snapshot of queue counters for progress reporting.

    Attributes:
        enqueued: Total identities ever accepted into the queue
        completed: Items whose processing has terminated
        in_flight: Items handed to a worker and not yet completed
        pending: Items waiting in the frontier
    """
    enqueued: int
    completed: int
    in_flight: int
    pending: int
