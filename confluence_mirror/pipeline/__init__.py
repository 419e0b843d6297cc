"""Concurrent export pipeline: discovery, staging, resolution and persistence."""

from .errors import PipelineError, ResumeRequiredError, RunCancelledError, RunFailedError
from .item_processor import ItemProcessor, RemoteSource
from .models import (
    EventSink,
    EventType,
    ExportJob,
    ExportOptions,
    Phase,
    PipelineEvent,
    RunCounters,
    RunMode,
    RunResult,
)
from .pipeline import Pipeline
from .resume_guard import ResumeGuard
from .thresholds import FailureThreshold

__all__ = [
    'EventSink',
    'EventType',
    'ExportJob',
    'ExportOptions',
    'FailureThreshold',
    'ItemProcessor',
    'Phase',
    'Pipeline',
    'PipelineError',
    'PipelineEvent',
    'RemoteSource',
    'ResumeGuard',
    'ResumeRequiredError',
    'RunCancelledError',
    'RunCounters',
    'RunFailedError',
    'RunMode',
    'RunResult',
]
