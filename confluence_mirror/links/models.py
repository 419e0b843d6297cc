"""Data models for deferred link resolution."""

from dataclasses import dataclass
from typing import Optional

from confluence_mirror.models import ItemKind

# Written in place of a reference whose target never got a local path
BROKEN_REFERENCE_MARKER = "#broken-reference"


@dataclass
class PendingReference:
    """A placeholder left in staged content, waiting for its target's path.

    Attributes:
        source_id: Page ID of the document containing the placeholder
        target_kind: Kind of the referenced item
        token: Placeholder text written into the staged content
        target_remote_id: Target remote ID, if the reference named it
        target_title: Target page title for title-only references
        target_space: Space key for title-only references
        resolved: Set once the placeholder has been rewritten
    """
    source_id: str
    target_kind: ItemKind
    token: str
    target_remote_id: Optional[str] = None
    target_title: Optional[str] = None
    target_space: Optional[str] = None
    resolved: bool = False


@dataclass(frozen=True)
class BrokenReference:
    """A reference that could not be resolved to a local path."""
    source_id: str
    token: str
    reason: str
