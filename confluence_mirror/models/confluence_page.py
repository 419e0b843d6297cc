"""Confluence remote data models."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class SpaceScope:
    """The part of Confluence being mirrored.

    Attributes:
        space_key: Space key (e.g., "TEAM")
        root_page_id: Optional page ID; when set only this page and what it
            reaches are mirrored, otherwise the whole space listing is used
    """
    space_key: str
    root_page_id: Optional[str] = None


@dataclass(frozen=True)
class AncestorRef:
    """An ancestor of a page, ordered root first."""
    page_id: str
    title: str


@dataclass(frozen=True)
class AttachmentRef:
    """Attachment listed on a page (metadata only, no bytes)."""
    attachment_id: str
    filename: str


@dataclass
class ConfluencePage:
    """Confluence page with storage format content.

    Attributes:
        page_id: Unique identifier for the page
        space_key: Space key where the page resides (e.g., "TEAM")
        title: Page title
        content_storage: Page content in Confluence storage format (XHTML)
        version: Current version number
        parent_id: Parent page ID (None if page is at root level)
        ancestors: Ancestor chain, root first
        children: Child page IDs
        attachments: Attachments listed on the page
    """
    page_id: str
    space_key: str
    title: str
    content_storage: str
    version: int
    parent_id: Optional[str] = None
    ancestors: List[AncestorRef] = field(default_factory=list)
    children: List[str] = field(default_factory=list)
    attachments: List[AttachmentRef] = field(default_factory=list)


@dataclass
class ConfluenceAttachment:
    """Downloaded attachment.

    Attributes:
        attachment_id: Attachment content ID
        page_id: ID of the page the attachment belongs to
        filename: Original file name
        version: Attachment version number
        data: Raw file bytes
        media_type: MIME type reported by Confluence
    """
    attachment_id: str
    page_id: str
    filename: str
    version: int
    data: bytes
    media_type: Optional[str] = None


@dataclass
class UserProfile:
    """Confluence user profile referenced by a mention."""
    account_id: str
    display_name: str
    email: Optional[str] = None
    profile_url: Optional[str] = None
