"""Data models for CLI operations.

This module defines the process exit codes and the resolved export
configuration (config file merged with command-line overrides).
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional

from confluence_mirror.confluence_client import RetryPolicy
from confluence_mirror.models import SpaceScope
from confluence_mirror.pipeline import ExportOptions, FailureThreshold, RunMode


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    These exit codes provide meaningful feedback about the run result:
    - SUCCESS (0): Export completed (possibly with isolated item failures)
    - GENERAL_ERROR (1): Unexpected error, storage or manifest failure
    - INVALID_USAGE (2): Invalid flags or configuration values
    - AUTH_ERROR (3): Missing credentials or authentication failure
    - NETWORK_ERROR (4): Scope listing could not be fetched
    - INTERRUPTED (5): Run cancelled; a checkpoint was written
    - RESUME_REQUIRED (6): An unfinished run needs --resume or --fresh
    - CONTENT_FAILURE (7): Failure threshold exceeded

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    INVALID_USAGE = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4
    INTERRUPTED = 5
    RESUME_REQUIRED = 6
    CONTENT_FAILURE = 7


@dataclass
class ExportConfig:
    """Resolved settings for one export run.

    Attributes:
        space_key: Space to mirror
        root_page_id: Optional root page restricting the mirror to a subtree
        output_dir: Root of the mirrored tree
        concurrency: Worker threads
        limit: Maximum pages to export (None for no limit)
        checkpoint_interval: Completed items between checkpoint saves
        request_timeout: Per-request timeout in seconds
        retry: Backoff settings for remote reads
        threshold: Failure threshold for the run
        follow_links: Enqueue pages linked from content
        include_attachments: Download attachments
        include_users: Export profiles of mentioned users

    Example:
        >>> config = ExportConfig(space_key="TEAM", root_page_id="123456")
        >>> options = config.to_options(RunMode.NORMAL)
    """
    space_key: str
    root_page_id: Optional[str] = None
    output_dir: str = "./confluence-export"
    concurrency: int = 4
    limit: Optional[int] = None
    checkpoint_interval: int = 25
    request_timeout: int = 30
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    threshold: FailureThreshold = field(default_factory=FailureThreshold)
    follow_links: bool = True
    include_attachments: bool = True
    include_users: bool = True

    @property
    def scope(self) -> SpaceScope:
        return SpaceScope(self.space_key, self.root_page_id)

    def to_options(self, mode: RunMode, dry_run: bool = False) -> ExportOptions:
        return ExportOptions(
            scope=self.scope,
            concurrency=self.concurrency,
            limit=self.limit,
            checkpoint_interval=self.checkpoint_interval,
            mode=mode,
            follow_links=self.follow_links,
            include_attachments=self.include_attachments,
            include_users=self.include_users,
            threshold=self.threshold,
            dry_run=dry_run,
        )
