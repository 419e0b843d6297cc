"""Conversion result data model."""

from dataclasses import dataclass, field
from typing import List, Optional

from .item_kind import ItemKind


@dataclass(frozen=True)
class OutboundReference:
    """Reference from converted content to another remote item.

    The converter leaves `token` in the markdown where the link target
    belongs; the link resolver later substitutes the target's relative path.

    Attributes:
        kind: Kind of the referenced item
        token: Placeholder written into the markdown
        target_remote_id: Remote ID when the reference names it directly
        target_title: Page title when the reference only names a title
        target_space: Space key for title references
        original_locator: The reference as it appeared in storage format
    """
    kind: ItemKind
    token: str
    target_remote_id: Optional[str] = None
    target_title: Optional[str] = None
    target_space: Optional[str] = None
    original_locator: str = ""


@dataclass
class ConversionResult:
    """Result of converting one remote item to local content.

    Attributes:
        markdown: Converted markdown, with placeholders for references
        outbound_refs: References found in the content, one per distinct token
        warnings: Warnings about unsupported features encountered
    """
    markdown: str
    outbound_refs: List[OutboundReference] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
