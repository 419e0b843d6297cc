"""Main CLI entry point for the confluence-mirror command.

This module provides the Typer application that serves as the entry point
for the confluence-mirror command-line tool. A single command with options
keeps the interface simple: every invocation is one export run.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer

from confluence_mirror import __version__
from confluence_mirror.pipeline import RunMode

from .config import ConfigLoader
from .errors import CLIError
from .export_command import ExportCommand
from .models import ExitCode
from .output import OutputHandler

app = typer.Typer(
    name="confluence-mirror",
    help="""Mirror a Confluence space into a local tree of Markdown files.

QUICK START:
  confluence-mirror --space TEAM                     # Export (incremental after the first run)
  confluence-mirror --space TEAM --root 123456       # Export one page tree
  confluence-mirror --resume                         # Continue an interrupted export
  confluence-mirror --fresh                          # Ignore previous state and start over
  confluence-mirror --space TEAM --dry-run           # Show what an export would do

Credentials are read from CONFLUENCE_URL, CONFLUENCE_USER and
CONFLUENCE_API_TOKEN (environment or .env file).""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=False,
)

logger = logging.getLogger(__name__)


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'confluence_mirror' namespace logger to avoid
    affecting third-party libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    app_logger = logging.getLogger("confluence_mirror")
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"confluence-mirror_{timestamp}.log"

        # File handler keeps logger names for post-mortem debugging
        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


@app.command()
def main_command(
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        help="Config file (default: .confluence-mirror/config.yaml if present)",
        metavar="PATH",
    ),
    space: Optional[str] = typer.Option(
        None,
        "--space",
        help="Key of the space to mirror",
        metavar="KEY",
    ),
    root: Optional[str] = typer.Option(
        None,
        "--root",
        help="Only mirror this page and what it reaches",
        metavar="PAGE_ID",
    ),
    output_dir: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (default: ./confluence-export)",
        metavar="DIR",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-j",
        help="Number of concurrent workers (default: 4)",
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        help="Export at most this many pages",
    ),
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Continue an interrupted export from its checkpoint",
    ),
    fresh: bool = typer.Option(
        False,
        "--fresh",
        help="Ignore the previous manifest and any checkpoint",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be exported without writing any files",
    ),
    max_failures: Optional[int] = typer.Option(
        None,
        "--max-failures",
        help="Fail the run when more items than this fail",
    ),
    max_failure_ratio: Optional[float] = typer.Option(
        None,
        "--max-failure-ratio",
        help="Fail the run when this share (0-1) of items fails",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
) -> None:
    """Mirror a Confluence space into a local tree of Markdown files.

    \b
    QUICK START:
      confluence-mirror --space TEAM                     # Export (incremental after the first run)
      confluence-mirror --space TEAM --root 123456       # Export one page tree
      confluence-mirror --resume                         # Continue an interrupted export
      confluence-mirror --fresh                          # Ignore previous state and start over
  confluence-mirror --space TEAM --dry-run           # Show what an export would do

    \b
    EXIT CODES:
      0 success, 1 general error, 2 invalid usage, 3 authentication error,
      4 network error, 5 interrupted, 6 resume required, 7 too many failures
    """
    if version:
        typer.echo(f"confluence-mirror version {__version__}")
        raise typer.Exit()

    if resume and fresh:
        typer.echo("Error: --resume and --fresh cannot be used together", err=True)
        raise typer.Exit(ExitCode.INVALID_USAGE)

    if resume and dry_run:
        typer.echo("Error: --resume and --dry-run cannot be used together", err=True)
        raise typer.Exit(ExitCode.INVALID_USAGE)

    _configure_logging(verbosity, logdir)
    output = OutputHandler(verbosity=verbosity, no_color=no_color)

    try:
        config = ConfigLoader.load(
            config_path,
            overrides={
                'space_key': space,
                'root_page_id': root,
                'output_dir': output_dir,
                'concurrency': concurrency,
                'limit': limit,
                'max_failures': max_failures,
                'max_failure_ratio': max_failure_ratio,
            },
        )
    except CLIError as e:
        logger.error(str(e))
        output.error(str(e))
        raise typer.Exit(ExitCode.INVALID_USAGE)

    if resume:
        mode = RunMode.RESUME
    elif fresh:
        mode = RunMode.FRESH
    else:
        mode = RunMode.NORMAL

    command = ExportCommand(output_handler=output)
    try:
        exit_code = command.run(config, mode, dry_run=dry_run)
    except KeyboardInterrupt:
        output.error("Aborted")
        raise typer.Exit(ExitCode.INTERRUPTED)

    raise typer.Exit(exit_code)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m confluence_mirror.cli.main
if __name__ == "__main__":
    main()
