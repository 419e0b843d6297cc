"""Export command orchestration for CLI.

This module provides the ExportCommand class that wires the Confluence
client, storage, manifest and pipeline together for one run, reports
progress, and translates run outcomes into exit codes.
"""

import logging
import signal
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from confluence_mirror.confluence_client import (
    FetchError,
    InvalidCredentialsError,
    PermanentFetchError,
    RetryableFetchClient,
)
from confluence_mirror.confluence_client.api_wrapper import APIWrapper, sanitize_credentials
from confluence_mirror.confluence_client.auth import Authenticator
from confluence_mirror.file_mapper import ContentStore, FileMapperError
from confluence_mirror.manifest import ManifestError, ManifestStore
from confluence_mirror.pipeline import (
    Pipeline,
    RemoteSource,
    ResumeRequiredError,
    RunCancelledError,
    RunFailedError,
    RunMode,
)

from .models import ExitCode, ExportConfig
from .output import OutputHandler

logger = logging.getLogger(__name__)


class ExportCommand:
    """Runs one export and maps its outcome to an exit code.

    Example:
        >>> output = OutputHandler(verbosity=1)
        >>> command = ExportCommand(output_handler=output)
        >>> exit_code = command.run(config, RunMode.NORMAL)
        >>> sys.exit(exit_code)
    """

    def __init__(
        self,
        output_handler: Optional[OutputHandler] = None,
        authenticator: Optional[Authenticator] = None,
        source: Optional[RemoteSource] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """Initialize export command with dependencies.

        Args:
            output_handler: OutputHandler for terminal output (optional)
            authenticator: Authenticator for the Confluence API (optional)
            source: Remote source to read from instead of the Confluence API
            cancel_event: Run-level cancellation event (optional)

        Note:
            The API client is created from the config at run time unless a
            source is injected.
        """
        self.output_handler = output_handler or OutputHandler()
        self.authenticator = authenticator
        self.source = source
        self.cancel_event = cancel_event or threading.Event()
        self.pipeline: Optional[Pipeline] = None

    def run(self, config: ExportConfig, mode: RunMode = RunMode.NORMAL, dry_run: bool = False) -> ExitCode:
        """Execute the export.

        Args:
            config: Resolved export configuration
            mode: Normal, resume or fresh run
            dry_run: Report what would be exported without writing anything

        Returns:
            ExitCode indicating success or the failure type
        """
        output = self.output_handler
        try:
            source = self.source or self._create_source(config)

            action = "Planning export of" if dry_run else "Exporting"
            output.info(f"{action} space {config.space_key} to {config.output_dir}")
            if config.root_page_id:
                output.info(f"  Root page: {config.root_page_id}")

            store = ContentStore(config.output_dir)
            with self._interrupt_handler(), output.progress_reporter() as on_event:
                self.pipeline = Pipeline(
                    source,
                    store,
                    ManifestStore(store.state_dir),
                    config.to_options(mode, dry_run=dry_run),
                    event_sink=on_event,
                    cancel_event=self.cancel_event,
                )
                result = self.pipeline.run()

            output.print_summary(result)
            return ExitCode.SUCCESS

        except InvalidCredentialsError as e:
            logger.error(f"Authentication failed: {e}")
            output.error(f"Authentication failed: {e}")
            output.info("Check CONFLUENCE_USER and CONFLUENCE_API_TOKEN environment variables")
            return ExitCode.AUTH_ERROR

        except ResumeRequiredError as e:
            logger.error(str(e))
            output.error(str(e))
            return ExitCode.RESUME_REQUIRED

        except RunCancelledError as e:
            logger.warning(str(e))
            output.warning(str(e))
            return ExitCode.INTERRUPTED

        except RunFailedError as e:
            logger.error(str(e))
            output.error(f"{e} ({e.failed} of {e.processed} item(s) failed)")
            output.info("Completed work was checkpointed; fix the cause and run again with --resume")
            return ExitCode.CONTENT_FAILURE

        except PermanentFetchError as e:
            message = sanitize_credentials(str(e))
            if e.is_permission_denied:
                logger.error(f"Access denied: {message}")
                output.error(f"Access denied: {message}")
                return ExitCode.AUTH_ERROR
            logger.error(f"API error: {message}")
            output.error(f"API error: {message}")
            return ExitCode.NETWORK_ERROR

        except FetchError as e:
            message = sanitize_credentials(str(e))
            logger.error(f"API error: {message}")
            output.error(f"API error: {message}")
            output.info("Check your internet connection and try again")
            return ExitCode.NETWORK_ERROR

        except (ManifestError, FileMapperError) as e:
            logger.error(f"Storage error: {e}")
            output.error(f"Storage error: {e}")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception("Unexpected error during export")
            output.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

    def cancel(self) -> None:
        """Request a graceful stop: workers drain and a checkpoint is written."""
        if self.pipeline is not None:
            self.pipeline.cancel()
        else:
            self.cancel_event.set()

    def _create_source(self, config: ExportConfig) -> APIWrapper:
        """Build the API-backed source, checking credentials up front.

        Raises:
            InvalidCredentialsError: If credentials are missing
        """
        authenticator = self.authenticator or Authenticator()
        authenticator.get_credentials()
        fetcher = RetryableFetchClient(config.retry, self.cancel_event)
        return APIWrapper(authenticator, fetcher, timeout=config.request_timeout)

    @contextmanager
    def _interrupt_handler(self) -> Iterator[None]:
        """Route the first SIGINT to a graceful cancel; a second one interrupts.

        Signal handlers can only be installed from the main thread; elsewhere
        the default behavior is kept.
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def _handle(signum, frame):
            if self.cancel_event.is_set():
                raise KeyboardInterrupt
            self.output_handler.warning("Interrupted: finishing in-flight items (Ctrl-C again to abort)")
            self.cancel()

        previous = signal.signal(signal.SIGINT, _handle)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)
