"""Second-phase rewrite of reference placeholders.

Runs once discovery has reached quiescence, so every reachable target has
its final local path. Each placeholder is replaced with the posix path of
the target relative to the source document; targets that never received a
path (permanently failed, denied, or outside the mirrored scope) get the
stable broken reference marker instead. Unresolvable references are
reported, never raised.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from confluence_mirror.content_converter.reference_tokens import TOKEN_PATTERN
from confluence_mirror.file_mapper.content_store import ContentStore
from confluence_mirror.file_mapper.path_allocator import IdPathMap, relative_link
from confluence_mirror.models import ItemKind

from .models import BROKEN_REFERENCE_MARKER, BrokenReference, PendingReference

logger = logging.getLogger(__name__)


class LinkResolver:
    """Rewrites staged documents once the id -> path map is complete.

    Example:
        >>> resolver = LinkResolver(ContentStore("./confluence-export"))
        >>> rewritten = resolver.resolve(pending_refs, id_path_map)
        >>> for page_id, content in rewritten.items():
        ...     store.finalize(id_path_map.get(ItemKind.PAGE, page_id), content)
    """

    def __init__(self, store: ContentStore):
        self._store = store
        self.broken_references: List[BrokenReference] = []

    def resolve(
        self,
        pending_references: Iterable[PendingReference],
        id_path_map: IdPathMap,
    ) -> Dict[str, str]:
        """Rewrite the staged content of every document with pending references.

        Args:
            pending_references: References collected during discovery
            id_path_map: Completed mapping of items to local paths

        Returns:
            Mapping of source page ID to rewritten content
        """
        by_source: Dict[str, List[PendingReference]] = defaultdict(list)
        for ref in pending_references:
            by_source[ref.source_id].append(ref)

        rewritten: Dict[str, str] = {}
        for source_id in sorted(by_source):
            source_path = id_path_map.get(ItemKind.PAGE, source_id)
            if source_path is None:
                logger.warning(f"Page {source_id} has references but no local path; skipping")
                continue

            replacements: Dict[str, str] = {}
            for ref in by_source[source_id]:
                target_path = self._target_path(ref, id_path_map)
                if target_path is None:
                    replacements[ref.token] = BROKEN_REFERENCE_MARKER
                    self._report_broken(ref)
                else:
                    replacements[ref.token] = relative_link(source_path, target_path)
                    ref.resolved = True

            content = self._store.read_staged(source_path)
            rewritten[source_id] = TOKEN_PATTERN.sub(
                lambda match: replacements.get(match.group(0), match.group(0)),
                content,
            )

        if self.broken_references:
            logger.warning(f"{len(self.broken_references)} reference(s) could not be resolved")
        return rewritten

    def check(
        self,
        pending_references: Iterable[PendingReference],
        id_path_map: IdPathMap,
    ) -> List[BrokenReference]:
        """Report the references resolve() would break, without reading any document."""
        for ref in pending_references:
            if self._target_path(ref, id_path_map) is None:
                self._report_broken(ref)
        return self.broken_references

    @staticmethod
    def _target_path(ref: PendingReference, id_path_map: IdPathMap) -> Optional[str]:
        target_id = ref.target_remote_id
        if target_id is None and ref.target_kind == ItemKind.PAGE and ref.target_title:
            target_id = id_path_map.find_page_by_title(ref.target_space or '', ref.target_title)
        if target_id is None:
            return None
        return id_path_map.get(ref.target_kind, target_id)

    def _report_broken(self, ref: PendingReference) -> None:
        target = ref.target_remote_id or f"{ref.target_space}:{ref.target_title}"
        reason = f"{ref.target_kind.value} {target} was not mirrored"
        self.broken_references.append(BrokenReference(ref.source_id, ref.token, reason))
        logger.warning(f"Broken reference in page {ref.source_id}: {reason}")
