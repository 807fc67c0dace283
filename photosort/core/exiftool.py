"""ExifTool management for PhotoSort.

Handles finding ExifTool and running it through pyexiftool for reads.
"""

import logging
import os
import shutil
import sys
import threading
from typing import Optional, List

import exiftool

logger = logging.getLogger(__name__)

# ExifTool paths
EXIFTOOL_DIR = os.path.join("tools", "exiftool")
EXIFTOOL_EXE = "exiftool.exe" if sys.platform == "win32" else "exiftool"


def get_exiftool_path(base_dir: Optional[str] = None) -> Optional[str]:
    """Find ExifTool executable.

    Checks in order:
    1. System PATH
    2. Local tools directory

    Args:
        base_dir: Base directory for local tools folder.
                 Defaults to the project root.

    Returns:
        Path to exiftool executable, or None if not found.
    """
    if shutil.which("exiftool"):
        return "exiftool"

    if base_dir is None:
        # Go up from photosort/core/ to project root
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))

    local_path = os.path.join(base_dir, EXIFTOOL_DIR, EXIFTOOL_EXE)
    if os.path.exists(local_path):
        return local_path

    return None


def is_exiftool_available(base_dir: Optional[str] = None) -> bool:
    """Check if ExifTool is available.

    Returns:
        True if ExifTool can be found.
    """
    return get_exiftool_path(base_dir) is not None


class ExifToolManager:
    """Manages the ExifTool process for metadata reads.

    One process serves the whole run; calls are serialised with a lock so the
    manager can be shared between worker threads.

    Usage:
        with ExifToolManager() as et:
            tags = et.read_tags("/path/to/file.jpg", ["EXIF:DateTimeOriginal"])
    """

    def __init__(self, base_dir: Optional[str] = None):
        """Initialize manager.

        Args:
            base_dir: Base directory for local tools folder.
        """
        self._helper = None
        self._exiftool_path = None
        self._base_dir = base_dir
        self._lock = threading.Lock()

    def start(self) -> bool:
        """Start ExifTool process.

        Returns:
            True if started successfully, False otherwise.
        """
        with self._lock:
            if self._helper is not None:
                return True

            self._exiftool_path = get_exiftool_path(self._base_dir)
            if not self._exiftool_path:
                logger.warning("ExifTool not found. Install from https://exiftool.org/")
                return False

            try:
                self._helper = exiftool.ExifToolHelper(executable=self._exiftool_path)
                self._helper.run()
                return True
            except Exception as e:
                logger.error(f"Failed to start ExifTool: {e}")
                self._helper = None
                return False

    def stop(self) -> None:
        """Stop ExifTool process."""
        with self._lock:
            if self._helper:
                try:
                    self._helper.terminate()
                except Exception as e:
                    logger.debug(f"Error stopping ExifTool: {e}")
                self._helper = None

    def read_tags(self, filepath: str, tags: Optional[List[str]] = None) -> dict:
        """Read tags from a file.

        Args:
            filepath: Path to file.
            tags: Optional list of specific tags to read.

        Returns:
            Dict of tag values, empty if error.
        """
        return self.read_tags_batch([filepath], tags)[0]

    def read_tags_batch(
        self,
        filepaths: List[str],
        tags: Optional[List[str]] = None
    ) -> List[dict]:
        """Read tags from multiple files efficiently.

        Uses pyexiftool's native batch support. If the batch call fails (one
        unreadable file fails the whole ExifTool call), files are retried one
        by one so a single bad file does not blank the others.

        Args:
            filepaths: List of file paths to read.
            tags: Optional list of specific tags to read.

        Returns:
            List of tag dicts, one per file in same order.
            Empty dict for files that failed to read.
        """
        if not filepaths:
            return []

        with self._lock:
            if not self._helper:
                return [{} for _ in filepaths]
            try:
                results = self._get(filepaths, tags)
                if results and len(results) == len(filepaths):
                    return results
            except Exception as e:
                logger.debug(f"Batch read failed, retrying per file: {e}")

            results = []
            for path in filepaths:
                try:
                    result = self._get([path], tags)
                    results.append(result[0] if result else {})
                except Exception as e:
                    logger.debug(f"Failed to read tags from {path}: {e}")
                    results.append({})
            return results

    def _get(self, filepaths: List[str], tags: Optional[List[str]]) -> List[dict]:
        if tags:
            return self._helper.get_tags(filepaths, tags)
        return self._helper.get_metadata(filepaths)

    @property
    def is_running(self) -> bool:
        """Check if ExifTool is running."""
        return self._helper is not None

    @property
    def exiftool_path(self) -> Optional[str]:
        """Get the path to ExifTool executable."""
        return self._exiftool_path

    def __enter__(self) -> "ExifToolManager":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()
