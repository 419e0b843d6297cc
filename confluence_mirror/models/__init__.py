"""Data models for remote Confluence items and conversion results."""

from confluence_mirror.models.confluence_page import (
    AncestorRef,
    AttachmentRef,
    ConfluenceAttachment,
    ConfluencePage,
    SpaceScope,
    UserProfile,
)
from confluence_mirror.models.conversion_result import ConversionResult, OutboundReference
from confluence_mirror.models.item_kind import ItemKind

__all__ = [
    'AncestorRef',
    'AttachmentRef',
    'ConfluenceAttachment',
    'ConfluencePage',
    'ConversionResult',
    'ItemKind',
    'OutboundReference',
    'SpaceScope',
    'UserProfile',
]
