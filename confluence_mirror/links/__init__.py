"""Deferred link resolution over staged content."""

from .link_resolver import LinkResolver
from .models import BROKEN_REFERENCE_MARKER, BrokenReference, PendingReference

__all__ = [
    'BROKEN_REFERENCE_MARKER',
    'BrokenReference',
    'LinkResolver',
    'PendingReference',
]
