"""Typed exceptions for run-level pipeline outcomes.

Per-item failures never surface here: they are recorded as manifest entries.
These exceptions describe the fate of the run as a whole.
"""

from typing import Optional

from confluence_mirror.confluence_client.errors import MirrorError


class PipelineError(MirrorError):
    """Base exception for run-level pipeline errors."""
    pass


class RunFailedError(PipelineError):
    """Raised when the failure threshold declared the run failed.

    The checkpoint has been persisted so the run can be resumed.
    """

    def __init__(self, reason: str, failed: int = 0, processed: int = 0):
        super().__init__(f"Export failed: {reason}")
        self.reason = reason
        self.failed = failed
        self.processed = processed


class RunCancelledError(PipelineError):
    """Raised when the run was cancelled; completed work is checkpointed."""

    def __init__(self, completed: int = 0, checkpoint_path: Optional[str] = None):
        message = f"Export cancelled after {completed} completed item(s)"
        if checkpoint_path:
            message += f"; resume with --resume (checkpoint: {checkpoint_path})"
        super().__init__(message)
        self.completed = completed
        self.checkpoint_path = checkpoint_path


class ResumeRequiredError(PipelineError):
    """Raised when an unfinished run exists and no mode was chosen."""

    def __init__(self, checkpoint_path: str, detail: Optional[str] = None):
        message = (
            f"An interrupted export was found ({checkpoint_path}). "
            "Run again with --resume to continue it or --fresh to start over."
        )
        if detail:
            message += f" {detail}"
        super().__init__(message)
        self.checkpoint_path = checkpoint_path
