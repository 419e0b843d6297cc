"""Allocation of stable, collision-free local paths for remote items.

Each (kind, remote id) gets exactly one path, decided the first time it is
assigned. When the desired path is already held by another item the
disambiguating suffix `-<last 4 id chars>` is added (then `-<n>` if still
taken). Comparison is case-insensitive so the tree is portable to
case-insensitive file systems.

Layout (posix paths relative to the output directory):
    <Ancestor>/<Page>.md
    attachments/<page-id>/<filename>
    users/<Display-Name>.md
"""

import logging
import posixpath
import re
import threading
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import quote

from confluence_mirror.models import (
    ConfluenceAttachment,
    ConfluencePage,
    ItemKind,
    SpaceScope,
    UserProfile,
)

from .filesafe_converter import FilesafeConverter

logger = logging.getLogger(__name__)

Identity = Tuple[ItemKind, str]

ATTACHMENTS_DIR = "attachments"
USERS_DIR = "users"


def page_path(page: ConfluencePage, scope: SpaceScope) -> str:
    """Desired path of a page, nested under its in-scope ancestors.

    With a root page, ancestors above the root are dropped so the root
    page sits at the top of the tree.
    """
    ancestors = list(page.ancestors)
    if scope.root_page_id:
        ids = [a.page_id for a in ancestors]
        if page.page_id == scope.root_page_id:
            ancestors = []
        elif scope.root_page_id in ids:
            ancestors = ancestors[ids.index(scope.root_page_id):]
    parts = [FilesafeConverter.title_to_dirname(a.title) for a in ancestors]
    parts.append(FilesafeConverter.title_to_filename(page.title))
    return posixpath.join(*parts)


def attachment_path(attachment: ConfluenceAttachment, owner_page_id: Optional[str] = None) -> str:
    """Desired path of an attachment, grouped by the page that owns it."""
    owner = owner_page_id or attachment.page_id or "unattached"
    return posixpath.join(
        ATTACHMENTS_DIR,
        owner,
        FilesafeConverter.attachment_filename(attachment.filename),
    )


def user_path(profile: UserProfile) -> str:
    """Desired path of a user profile page."""
    return posixpath.join(USERS_DIR, FilesafeConverter.title_to_filename(profile.display_name))


def relative_link(source_path: str, target_path: str) -> str:
    """Markdown link destination for target, relative to the directory of source.

    The posix path is percent-encoded so characters such as parentheses
    cannot end the link destination early.

    Example:
        >>> relative_link("Home.md", "Home/Child.md")
        'Home/Child.md'
        >>> relative_link("Home/Child.md", "users/alice.md")
        '../users/alice.md'
        >>> relative_link("Home.md", "Plan-(draft.md")
        'Plan-%28draft.md'
    """
    start = posixpath.dirname(source_path) or '.'
    return quote(posixpath.relpath(target_path, start), safe='/')


class IdPathMap:
    """Thread-safe mapping from (kind, remote id) to local path.

    Paths recorded by a previous run can be reserved for their items so the
    tree stays stable across runs: another item never takes a reserved path,
    and the owner gets it back as long as its desired name is unchanged.

    Example:
        >>> paths = IdPathMap()
        >>> paths.assign(ItemKind.PAGE, "1001", "Notes.md")
        'Notes.md'
        >>> paths.assign(ItemKind.PAGE, "2002", "notes.md")
        'notes-2002.md'
    """

    def __init__(self, reserved: Optional[Dict[Identity, str]] = None):
        """Initialize the map.

        Args:
            reserved: Paths held by items of a previous run
        """
        self._lock = threading.Lock()
        self._assigned: Dict[Identity, str] = {}
        self._reserved: Dict[Identity, str] = dict(reserved or {})
        self._taken: Dict[str, Identity] = {}
        self._titles: Dict[Tuple[str, str], str] = {}
        for identity, path in self._reserved.items():
            self._taken.setdefault(path.lower(), identity)

    def assign(self, kind: ItemKind, remote_id: str, desired_path: str) -> str:
        """Assign a path to an item, once.

        Args:
            kind: Item kind
            remote_id: Remote ID
            desired_path: Path derived from the item's names

        Returns:
            The item's path; the same value on every later call
        """
        identity = (kind, remote_id)
        with self._lock:
            existing = self._assigned.get(identity)
            if existing is not None:
                return existing

            reserved = self._reserved.get(identity)
            if reserved is not None and _is_variant_of(reserved, desired_path, remote_id):
                path = reserved
            else:
                path = self._free_path(identity, desired_path, remote_id)
                if path != desired_path:
                    logger.info(
                        f"Path collision for {kind.value} {remote_id}: "
                        f"'{desired_path}' is taken, using '{path}'"
                    )

            self._assigned[identity] = path
            self._taken[path.lower()] = identity
            return path

    def restore(self, kind: ItemKind, remote_id: str, path: str) -> None:
        """Record an assignment made by an interrupted run."""
        identity = (kind, remote_id)
        with self._lock:
            self._assigned[identity] = path
            self._taken[path.lower()] = identity

    def get(self, kind: ItemKind, remote_id: str) -> Optional[str]:
        with self._lock:
            return self._assigned.get((kind, remote_id))

    def owner_of(self, path: str) -> Optional[Identity]:
        """Return the item currently assigned to a path (case-insensitive)."""
        with self._lock:
            for identity, assigned in self._assigned.items():
                if assigned.lower() == path.lower():
                    return identity
            return None

    def record_title(self, space_key: str, title: str, page_id: str) -> None:
        """Index a page by title so title-only references can be resolved."""
        with self._lock:
            self._titles.setdefault(_title_key(space_key, title), page_id)

    def find_page_by_title(self, space_key: str, title: str) -> Optional[str]:
        with self._lock:
            return self._titles.get(_title_key(space_key, title))

    def items(self) -> List[Tuple[Identity, str]]:
        with self._lock:
            return list(self._assigned.items())

    def __contains__(self, identity: Identity) -> bool:
        with self._lock:
            return identity in self._assigned

    def __iter__(self) -> Iterator[Identity]:
        return iter([identity for identity, _ in self.items()])

    def __len__(self) -> int:
        with self._lock:
            return len(self._assigned)

    def _free_path(self, identity: Identity, desired: str, remote_id: str) -> str:
        """Find the first untaken candidate for desired (lock held)."""
        for candidate in _candidates(desired, remote_id):
            owner = self._taken.get(candidate.lower())
            if owner is None or owner == identity:
                return candidate
        raise RuntimeError(f"No free path for {desired}")  # pragma: no cover


def _split_ext(path: str) -> Tuple[str, str]:
    directory, name = posixpath.split(path)
    stem, ext = posixpath.splitext(name)
    return posixpath.join(directory, stem) if directory else stem, ext


def _id_fragment(remote_id: str) -> str:
    return remote_id[-4:]


def _candidates(desired: str, remote_id: str) -> Iterator[str]:
    """Yield desired, then desired-<frag>, then desired-<frag>-2, ..."""
    yield desired
    base, ext = _split_ext(desired)
    fragment = _id_fragment(remote_id)
    yield f"{base}-{fragment}{ext}"
    n = 2
    while True:
        yield f"{base}-{fragment}-{n}{ext}"
        n += 1


def _is_variant_of(path: str, desired: str, remote_id: str) -> bool:
    """True if path is desired, possibly with this item's collision suffix."""
    if path.lower() == desired.lower():
        return True
    base, ext = _split_ext(desired)
    pattern = re.escape(f"{base}-{_id_fragment(remote_id)}") + r'(-\d+)?' + re.escape(ext)
    return re.fullmatch(pattern, path, flags=re.IGNORECASE) is not None


def _title_key(space_key: str, title: str) -> Tuple[str, str]:
    return (space_key.casefold(), title.strip().casefold())
