"""Kinds of remote items the mirror discovers."""

from enum import Enum


class ItemKind(str, Enum):
    """Kind of a discoverable remote item.

    The string values are used in the persisted manifest, in checkpoints
    and in placeholder tokens, so they must stay stable.
    """
    PAGE = "page"
    ATTACHMENT = "attachment"
    USER = "user"
