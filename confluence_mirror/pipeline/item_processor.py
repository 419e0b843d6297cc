"""Processing of a single discovery item.

For each item the processor fetches the remote content, converts it, assigns
its local path, stages it, and computes its manifest entry. Failures are
turned into denied/failed entries here so one bad item never affects the
others; only cancellation and unexpected errors escape.
"""

import logging
from typing import List, Optional, Protocol

from confluence_mirror.confluence_client.errors import (
    FetchCancelledError,
    MirrorError,
    PermanentFetchError,
)
from confluence_mirror.content_converter import MarkdownConverter
from confluence_mirror.discovery import DiscoveryItem, SourceEdge
from confluence_mirror.file_mapper import (
    ContentStore,
    attachment_path,
    page_path,
    user_path,
)
from confluence_mirror.links.models import PendingReference
from confluence_mirror.manifest import EntryStatus, ManifestEntry, ManifestStore, content_hash
from confluence_mirror.models import (
    ConfluenceAttachment,
    ConfluencePage,
    ItemKind,
    SpaceScope,
    UserProfile,
)

from .models import ExportJob, ItemOutcome

logger = logging.getLogger(__name__)

LIMIT_REASON = "item limit reached"
OUT_OF_SCOPE_REASON = "outside the mirrored scope"


class RemoteSource(Protocol):
    """The idempotent remote reads the pipeline needs."""

    def list_children(self, scope: SpaceScope) -> List[str]: ...

    def get_document(self, page_id: str) -> ConfluencePage: ...

    def get_attachment(self, attachment_id: str) -> ConfluenceAttachment: ...

    def get_user_profile(self, account_id: str) -> UserProfile: ...


class ItemProcessor:
    """Turns one DiscoveryItem into an ItemOutcome."""

    def __init__(
        self,
        job: ExportJob,
        source: RemoteSource,
        store: ContentStore,
        converter: MarkdownConverter,
    ):
        self._job = job
        self._source = source
        self._store = store
        self._converter = converter

    def process(self, item: DiscoveryItem) -> ItemOutcome:
        """Process an item, isolating per-item failures.

        Raises:
            FetchCancelledError: If the run was cancelled mid-fetch
        """
        if item.kind == ItemKind.PAGE and not self._job.claim_page_slot():
            return ItemOutcome(
                entry=self._failure_entry(item, EntryStatus.SKIPPED, LIMIT_REASON),
                journal=False,
            )

        try:
            if item.kind == ItemKind.PAGE:
                return self._process_page(item)
            if item.kind == ItemKind.ATTACHMENT:
                return self._process_attachment(item)
            return self._process_user(item)
        except FetchCancelledError:
            raise
        except PermanentFetchError as e:
            if e.is_permission_denied:
                logger.warning(f"Access denied to {item.kind.value} {item.remote_id}: {e}")
                status = EntryStatus.DENIED
            else:
                logger.error(f"Failed to fetch {item.kind.value} {item.remote_id}: {e}")
                status = EntryStatus.FAILED
            return ItemOutcome(entry=self._failure_entry(item, status, str(e)), journal=False)
        except (MirrorError, ValueError) as e:
            logger.error(f"Failed to export {item.kind.value} {item.remote_id}: {e}")
            return ItemOutcome(
                entry=self._failure_entry(item, EntryStatus.FAILED, str(e)),
                journal=False,
            )

    def _process_page(self, item: DiscoveryItem) -> ItemOutcome:
        job = self._job
        page = self._source.get_document(item.remote_id)

        if not _in_scope(page, job.scope):
            logger.info(f"Page {page.page_id} ({page.title}) is {OUT_OF_SCOPE_REASON}")
            entry = self._failure_entry(item, EntryStatus.SKIPPED, OUT_OF_SCOPE_REASON)
            entry.title = page.title
            entry.version = page.version
            return ItemOutcome(entry=entry, space_key=page.space_key)

        result = self._converter.transform(page)
        for warning in result.warnings:
            logger.info(f"Page {page.page_id} ({page.title}): {warning}")

        space_key = page.space_key or job.scope.space_key
        path = job.paths.assign(ItemKind.PAGE, page.page_id, page_path(page, job.scope))
        job.paths.record_title(space_key, page.title, page.page_id)

        discovered = self._page_discoveries(page, result.outbound_refs)
        pending = [
            PendingReference(
                source_id=page.page_id,
                target_kind=ref.kind,
                token=ref.token,
                target_remote_id=ref.target_remote_id,
                target_title=ref.target_title,
                target_space=ref.target_space,
            )
            for ref in result.outbound_refs
        ]

        self._stage(path, result.markdown)
        entry = self._entry(
            item,
            title=page.title,
            path=path,
            digest=content_hash(result.markdown),
            version=page.version,
            parent_id=page.parent_id,
        )
        return ItemOutcome(entry=entry, discovered=discovered, pending_refs=pending, space_key=space_key)

    def _page_discoveries(self, page: ConfluencePage, outbound_refs) -> List[DiscoveryItem]:
        options = self._job.options
        discovered = [
            DiscoveryItem(ItemKind.PAGE, child_id, page.page_id, SourceEdge.CHILD)
            for child_id in page.children
        ]
        if options.include_attachments:
            discovered.extend(
                DiscoveryItem(ItemKind.ATTACHMENT, att.attachment_id, page.page_id, SourceEdge.ATTACHMENT)
                for att in page.attachments
            )
        for ref in outbound_refs:
            if ref.target_remote_id is None:
                # Title-only references are resolved through the title index
                continue
            if ref.kind == ItemKind.PAGE and options.follow_links:
                discovered.append(
                    DiscoveryItem(ItemKind.PAGE, ref.target_remote_id, page.page_id, SourceEdge.LINK)
                )
            elif ref.kind == ItemKind.USER and options.include_users:
                discovered.append(
                    DiscoveryItem(ItemKind.USER, ref.target_remote_id, page.page_id, SourceEdge.MENTION)
                )
        return discovered

    def _process_attachment(self, item: DiscoveryItem) -> ItemOutcome:
        attachment = self._source.get_attachment(item.remote_id)
        owner = item.discovered_from or attachment.page_id
        path = self._job.paths.assign(
            ItemKind.ATTACHMENT, item.remote_id, attachment_path(attachment, owner)
        )
        if not self._job.options.dry_run:
            self._store.write_bytes(path, attachment.data)
        entry = self._entry(
            item,
            title=attachment.filename,
            path=path,
            digest=content_hash(attachment.data),
            version=attachment.version,
            parent_id=owner,
        )
        return ItemOutcome(entry=entry)

    def _process_user(self, item: DiscoveryItem) -> ItemOutcome:
        profile = self._source.get_user_profile(item.remote_id)
        content = self._converter.render_user_profile(profile)
        path = self._job.paths.assign(ItemKind.USER, item.remote_id, user_path(profile))
        self._stage(path, content)
        entry = self._entry(
            item,
            title=profile.display_name,
            path=path,
            digest=content_hash(content),
            version=None,
            parent_id=None,
        )
        return ItemOutcome(entry=entry)

    def _stage(self, path: str, content: str) -> None:
        # A dry run computes hashes and statuses but writes nothing
        if not self._job.options.dry_run:
            self._store.stage(path, content)

    def _entry(
        self,
        item: DiscoveryItem,
        title: str,
        path: str,
        digest: str,
        version: Optional[int],
        parent_id: Optional[str],
    ) -> ManifestEntry:
        if self._job.fresh:
            status = EntryStatus.EXPORTED
        else:
            status = ManifestStore.diff_status(self._job.prior.get(item.kind, item.remote_id), digest)
        return ManifestEntry(
            id=item.remote_id,
            kind=item.kind,
            title=title,
            path=path,
            hash=digest,
            version=version,
            status=status,
            parent_id=parent_id,
        )

    def _failure_entry(self, item: DiscoveryItem, status: EntryStatus, error: str) -> ManifestEntry:
        """Entry for an item that produced no content.

        The previous run's title, path and hash are carried forward so the
        next run still diffs against the last good export.
        """
        prior = None if self._job.fresh else self._job.prior.get(item.kind, item.remote_id)
        if prior is not None and prior.status == EntryStatus.REMOVED:
            prior = None
        parent_id = None
        if item.source_edge in (SourceEdge.CHILD, SourceEdge.ATTACHMENT):
            parent_id = item.discovered_from
        return ManifestEntry(
            id=item.remote_id,
            kind=item.kind,
            title=prior.title if prior else "",
            path=prior.path if prior else None,
            hash=prior.hash if prior else None,
            version=prior.version if prior else None,
            status=status,
            parent_id=prior.parent_id if prior else parent_id,
            error=error.splitlines()[0] if error else None,
        )


def _in_scope(page: ConfluencePage, scope: SpaceScope) -> bool:
    if page.space_key and page.space_key.lower() != scope.space_key.lower():
        return False
    if scope.root_page_id and page.page_id != scope.root_page_id:
        return scope.root_page_id in {a.page_id for a in page.ancestors}
    return True
