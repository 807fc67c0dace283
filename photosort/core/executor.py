"""Filesystem operations for PhotoSort.

Turns a resolved (source, destination, action) triple into a move, copy,
hard link or symbolic link, or into a dry-run report. Failures are returned
as FAILED results; nothing raised here aborts the batch.
"""

import errno
import logging
import os
import shutil
from datetime import datetime

import filedate

from photosort.core.config import ActionType
from photosort.core.errors import (
    FilesystemOperationError,
    MissingParentDirectory,
    PhotoSortError,
)
from photosort.core.models import OperationResult, Outcome

logger = logging.getLogger(__name__)


def _same_file(source: str, destination: str) -> bool:
    try:
        return os.path.samefile(source, destination)
    except OSError:
        return False


def copy_with_times(source: str, destination: str) -> None:
    """Copy file content, verify the size and carry over access/modify times.

    A partial or mismatched copy is removed before the error propagates.

    Raises:
        OSError: If the copy itself fails.
        FilesystemOperationError: If the copied size differs.
    """
    try:
        shutil.copy(source, destination)

        expected = os.path.getsize(source)
        actual = os.path.getsize(destination)
        if actual != expected:
            raise FilesystemOperationError(
                f"Copied file size differs ({actual} != {expected} bytes)", path=destination
            )
    except Exception:
        try:
            os.remove(destination)
        except OSError as e:
            logger.debug(f"Could not remove incomplete copy {destination}: {e}")
        raise

    stat = os.stat(source)
    try:
        filedate.File(destination).set(
            modified=datetime.fromtimestamp(stat.st_mtime),
            accessed=datetime.fromtimestamp(stat.st_atime),
        )
    except Exception as e:
        logger.warning(f"Could not set file dates on {destination}: {e}")


class OperationExecutor:
    """Applies one file operation.

    Stateless; a single instance is shared by all workers.
    """

    def apply(
        self,
        source: str,
        destination: str,
        action: ActionType,
        dry_run: bool = False,
        allow_mkdir: bool = False,
    ) -> OperationResult:
        """Perform (or, in dry-run mode, describe) an operation.

        Args:
            source: Existing source file.
            destination: Absolute destination path.
            action: What to do.
            dry_run: Only run the checks and report.
            allow_mkdir: Create a missing destination directory.

        Returns:
            OperationResult with outcome SUCCESS, SKIPPED or FAILED.
        """
        result = OperationResult(
            source=source,
            destination=destination,
            action=action,
            outcome=Outcome.SUCCESS,
            dry_run=dry_run,
        )

        if os.path.lexists(destination):
            if _same_file(source, destination):
                result.outcome = Outcome.SKIPPED
                logger.debug(f"Already in place: {source}")
                return result
            return self._fail(result, FilesystemOperationError(
                f"Target already exists: {destination}", path=destination
            ))

        parent = os.path.dirname(destination)
        if not os.path.isdir(parent):
            if not allow_mkdir:
                return self._fail(result, MissingParentDirectory(parent))
            if not dry_run:
                try:
                    os.makedirs(parent, exist_ok=True)
                except OSError as e:
                    return self._fail(result, FilesystemOperationError(
                        f"Could not create directory {parent}: {e}", path=parent, cause=e
                    ))
                logger.info(f"Created directory {parent}")
            else:
                logger.info(f"[dry-run] Mkdir: {parent}")
            result.created_dirs = parent

        if dry_run:
            logger.info(f"[dry-run] {action.label}: {source} -> {destination}")
            return result

        try:
            self._perform(source, destination, action)
        except FilesystemOperationError as e:
            return self._fail(result, e)
        except OSError as e:
            return self._fail(result, FilesystemOperationError(
                f"{action.label} failed: {e}", path=destination, cause=e
            ))

        logger.debug(f"{action.label}: {source} -> {destination}")
        return result

    def _perform(self, source: str, destination: str, action: ActionType) -> None:
        if action is ActionType.MOVE:
            try:
                os.rename(source, destination)
            except OSError as e:
                if e.errno != errno.EXDEV:
                    raise
                logger.debug(f"Cross-device move, copying instead: {source}")
                copy_with_times(source, destination)
                os.unlink(source)
        elif action is ActionType.COPY:
            copy_with_times(source, destination)
        elif action is ActionType.HARDLINK:
            os.link(source, destination)
        elif action is ActionType.RELATIVE_SYMLINK:
            link_text = os.path.relpath(os.path.abspath(source), os.path.dirname(destination))
            os.symlink(link_text, destination)
        elif action is ActionType.ABSOLUTE_SYMLINK:
            os.symlink(os.path.realpath(source), destination)
        else:
            raise ValueError(f"Unsupported action: {action}")

    @staticmethod
    def _fail(result: OperationResult, error: PhotoSortError) -> OperationResult:
        result.outcome = Outcome.FAILED
        result.error = error
        logger.error(f"{result.action.label} failed for {result.source}: {error}")
        return result
