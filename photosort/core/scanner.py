"""Source directory scanning for PhotoSort."""

import logging
import os
from typing import Iterator, List, Optional, Sequence, Tuple

from photosort.core.config import normalize_extensions
from photosort.core.models import MediaType, ProgressCallback, SourceFile

logger = logging.getLogger(__name__)


def _fast_walk(path: str, recursive: bool = True) -> Iterator[Tuple[str, List[str], List[str]]]:
    """Directory walker using os.scandir, in a stable order.

    Files and sub-directories are sorted by name; a directory's files are
    yielded before its sub-directories are entered. Symlinked directories
    are not followed.

    Args:
        path: Root directory to walk.
        recursive: Descend into sub-directories.

    Yields:
        Tuples of (dirpath, dirnames, filenames) like os.walk().
    """
    try:
        with os.scandir(path) as entries:
            dirs = []
            files = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=False):
                        dirs.append(entry.name)
                    elif entry.is_file():
                        files.append(entry.name)
                except OSError as e:
                    # Log and skip entries we can't access
                    logger.debug(f"Cannot access entry {entry.path}: {e}")
                    continue
    except OSError as e:
        # Log and skip directories we can't access
        logger.debug(f"Cannot access directory {path}: {e}")
        return

    dirs.sort()
    files.sort()
    yield path, dirs, files
    if recursive:
        for d in dirs:
            yield from _fast_walk(os.path.join(path, d), recursive)


def list_existing_files(root: str) -> Iterator[str]:
    """Yield every file path currently below root (nothing if root is missing)."""
    if not os.path.isdir(root):
        return
    for dirpath, _, filenames in _fast_walk(root):
        for filename in filenames:
            yield os.path.join(dirpath, filename)


class FileScanner:
    """Finds media files in the source directories.

    Usage:
        scanner = FileScanner(["/photos/card"], recursive=True)
        files = scanner.scan()

    Files with an extension in neither list are only returned (as
    MediaType.UNKNOWN) when include_unknown is set.
    """

    def __init__(
        self,
        source_dirs: Sequence[str],
        recursive: bool = False,
        extensions: Sequence[str] = (),
        video_extensions: Sequence[str] = (),
        include_unknown: bool = False,
    ):
        self.source_dirs = [source_dirs] if isinstance(source_dirs, str) else list(source_dirs)
        self.recursive = recursive
        self.extensions = set(normalize_extensions(extensions))
        self.video_extensions = set(normalize_extensions(video_extensions))
        self.include_unknown = include_unknown
        self.files: List[SourceFile] = []
        self.ignored_count = 0

    def media_type_for(self, filename: str) -> MediaType:
        ext = os.path.splitext(filename)[1][1:].lower()
        if ext in self.extensions:
            return MediaType.IMAGE
        if ext in self.video_extensions:
            return MediaType.VIDEO
        return MediaType.UNKNOWN

    def scan(self, on_progress: Optional[ProgressCallback] = None) -> List[SourceFile]:
        """Scan every source directory.

        Args:
            on_progress: Optional callback for progress updates.
                        Called with (files_found, files_found, message).

        Returns:
            SourceFile list in scan order (source by source).
        """
        self.files = []
        self.ignored_count = 0
        progress_interval = 100

        for source in self.source_dirs:
            for dirpath, _, filenames in _fast_walk(source, self.recursive):
                for filename in filenames:
                    media_type = self.media_type_for(filename)
                    if media_type is MediaType.UNKNOWN and not self.include_unknown:
                        logger.debug(f"Skipping file with unknown extension: {filename}")
                        self.ignored_count += 1
                        continue
                    self.files.append(SourceFile(os.path.join(dirpath, filename), media_type))

                    if on_progress and len(self.files) % progress_interval == 0:
                        on_progress(len(self.files), len(self.files), f"Found {len(self.files)} files...")

        logger.info(
            f"Found {len(self.files)} files in {len(self.source_dirs)} source directories "
            f"({self.ignored_count} ignored)"
        )
        if on_progress:
            on_progress(len(self.files), len(self.files), "Scan complete")
        return self.files
