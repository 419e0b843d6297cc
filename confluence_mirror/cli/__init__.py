"""Command-line interface for the Confluence mirror.

This package provides the `confluence-mirror` CLI tool: configuration
loading, the export command wiring the pipeline to the Confluence API, and
Rich-based progress and summary output.
"""

from .config import ConfigLoader
from .errors import CLIError, ConfigError, ConfigNotFoundError
from .export_command import ExportCommand
from .models import ExitCode, ExportConfig
from .output import OutputHandler

__all__ = [
    'CLIError',
    'ConfigError',
    'ConfigLoader',
    'ConfigNotFoundError',
    'ExitCode',
    'ExportCommand',
    'ExportConfig',
    'OutputHandler',
]
