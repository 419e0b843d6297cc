"""Staging and final writes into the output tree.

Documents are first staged with their reference placeholders under
`.confluence-mirror/staging/`, then finalized into the output tree once
every reference has been rewritten. All writes go through a temporary file
and `os.replace`, and rewriting a file with identical bytes is a no-op, so
every operation is safe to repeat.
"""

import logging
import os
import shutil
import tempfile
from typing import Union

from .errors import StorageError, UnsafePathError

logger = logging.getLogger(__name__)

STATE_DIR = '.confluence-mirror'
STAGING_DIR = 'staging'


class ContentStore:
    """Storage collaborator for one output directory.

    Example:
        >>> store = ContentStore("./confluence-export")
        >>> store.stage("Home.md", "See [Child](mirror-ref:page:2)")
        >>> store.finalize("Home.md", "See [Child](Home/Child.md)")
    """

    def __init__(self, output_dir: str):
        """Initialize the store.

        Args:
            output_dir: Root of the mirrored tree
        """
        self.output_dir = os.path.abspath(output_dir)
        self.state_dir = os.path.join(self.output_dir, STATE_DIR)
        self.staging_dir = os.path.join(self.state_dir, STAGING_DIR)

    def stage(self, path: str, content: str) -> None:
        """Write content with placeholders to the staging area.

        Raises:
            StorageError: If the file cannot be written
        """
        self._write(self._resolve(self.staging_dir, path), content.encode('utf-8'))

    def read_staged(self, path: str) -> str:
        """Read staged content back.

        Raises:
            StorageError: If the staged file is missing or unreadable
        """
        target = self._resolve(self.staging_dir, path)
        try:
            with open(target, 'r', encoding='utf-8') as f:
                return f.read()
        except OSError as e:
            raise StorageError(target, 'read', str(e)) from e

    def finalize(self, path: str, content: str) -> None:
        """Write the final, link-resolved content into the output tree.

        Raises:
            StorageError: If the file cannot be written
        """
        self._write(self._resolve(self.output_dir, path), content.encode('utf-8'))

    def write_bytes(self, path: str, data: bytes) -> None:
        """Write binary content (attachments) directly into the output tree."""
        self._write(self._resolve(self.output_dir, path), data)

    def remove(self, path: str) -> bool:
        """Delete a file from the output tree and prune empty directories.

        Returns:
            True if a file was deleted, False if it did not exist
        """
        target = self._resolve(self.output_dir, path)
        try:
            os.remove(target)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(target, 'delete', str(e)) from e
        self._prune_empty_dirs(os.path.dirname(target))
        logger.debug(f"Removed {target}")
        return True

    def clear_staging(self) -> None:
        """Delete the staging area."""
        try:
            shutil.rmtree(self.staging_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(self.staging_dir, 'delete', str(e)) from e

    def _resolve(self, base: str, path: str) -> str:
        """Join a relative posix path to base, refusing anything that escapes it.

        Raises:
            UnsafePathError: If the path is absolute or resolves outside base
        """
        if not path or os.path.isabs(path):
            raise UnsafePathError(path, base)
        target = os.path.join(base, *path.split('/'))
        real_base = os.path.realpath(base)
        real_target = os.path.realpath(target)
        if not real_target.startswith(real_base + os.sep):
            raise UnsafePathError(path, base)
        return target

    @staticmethod
    def _write(target: str, data: Union[bytes, bytearray]) -> None:
        """Atomically write bytes unless the file already holds them."""
        try:
            with open(target, 'rb') as f:
                if f.read() == data:
                    return
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(target, 'read', str(e)) from e

        directory = os.path.dirname(target)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.', suffix='.tmp')
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, target)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(target, 'write', str(e)) from e

    def _prune_empty_dirs(self, directory: str) -> None:
        """Remove empty directories up to, not including, the output root."""
        real_root = os.path.realpath(self.output_dir)
        current = directory
        while os.path.realpath(current).startswith(real_root + os.sep):
            try:
                os.rmdir(current)
            except OSError:
                return
            current = os.path.dirname(current)
