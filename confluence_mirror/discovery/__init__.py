"""Graph discovery: deduplicating work queue and discovery items."""

from .discovery_queue import DiscoveryQueue
from .models import DiscoveryItem, QueueStats, SourceEdge

__all__ = [
    'DiscoveryItem',
    'DiscoveryQueue',
    'QueueStats',
    'SourceEdge',
]
