"""Guard against ambiguous resume behavior.

When a previous run left a checkpoint behind, the operator must choose
explicitly between continuing it (`--resume`) and starting over (`--fresh`).
"""

import logging
from typing import Optional

from confluence_mirror.manifest import Checkpoint, ManifestStore
from confluence_mirror.models import SpaceScope

from .errors import ResumeRequiredError
from .models import RunMode

logger = logging.getLogger(__name__)


class ResumeGuard:
    """Decides which checkpoint, if any, a run continues from.

    Example:
        >>> guard = ResumeGuard(ManifestStore(state_dir))
        >>> checkpoint = guard.check(RunMode.RESUME, SpaceScope("TEAM"))
    """

    def __init__(self, manifest_store: ManifestStore):
        self._store = manifest_store

    def check(self, mode: RunMode, scope: SpaceScope) -> Optional[Checkpoint]:
        """Validate the run mode against the checkpoint on disk.

        Args:
            mode: Requested run mode
            scope: Scope of the requested run

        Returns:
            The checkpoint to resume from, or None for a run from scratch

        Raises:
            ResumeRequiredError: If a checkpoint exists and no mode was chosen,
                or the checkpoint belongs to a different scope
        """
        path = self._store.checkpoint_path

        if mode == RunMode.FRESH:
            if self._store.has_checkpoint():
                logger.info(f"Discarding checkpoint {path} for a fresh export")
                self._store.clear_checkpoint()
            return None

        if mode == RunMode.NORMAL:
            if self._store.has_checkpoint():
                raise ResumeRequiredError(path)
            return None

        checkpoint = self._store.load_checkpoint()
        if checkpoint is None:
            logger.warning("No usable checkpoint found; starting from scratch")
            return None
        if checkpoint.scope != scope:
            raise ResumeRequiredError(
                path,
                f"The checkpoint is for space {checkpoint.space_key}"
                f"{' root ' + checkpoint.root_page_id if checkpoint.root_page_id else ''}; "
                "use --fresh to discard it.",
            )
        logger.info(f"Resuming from checkpoint with {len(checkpoint.records)} completed item(s)")
        return checkpoint
