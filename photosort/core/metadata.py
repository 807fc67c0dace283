"""Embedded metadata extraction for PhotoSort.

Reads creation timestamps and vendor tags through ExifTool and turns them
into ExtractedMetadata objects.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from photosort.core.errors import MetadataUnavailable
from photosort.core.exiftool import ExifToolManager
from photosort.core.models import ExtractedMetadata, SourceFile

logger = logging.getLogger(__name__)

# Tags requested from ExifTool (group prefixes are added by ExifTool)
REQUESTED_TAGS = [
    "DateTimeOriginal",
    "CreateDate",
    "ModifyDate",
    "MediaCreateDate",
    "Make",
    "Model",
    "SequenceNumber",
]

# Timestamp tags in priority order
TIMESTAMP_PRIORITY = [
    "EXIF:DateTimeOriginal",
    "EXIF:CreateDate",
    "EXIF:ModifyDate",
    "QuickTime:CreateDate",
    "QuickTime:MediaCreateDate",
]

# Fallback for any other group (XMP, MakerNotes, Composite, ...)
_FALLBACK_TIMESTAMP_NAMES = ("DateTimeOriginal", "CreateDate")

_EXIF_DATETIME_RE = re.compile(
    r"^\s*(\d{4}):(\d{2}):(\d{2})"
    r"(?:[ T](\d{2}):(\d{2}):(\d{2})(?:\.\d+)?)?"
    r"\s*(?:Z|[+-]\d{2}:?\d{2})?\s*$"
)

ExtractionResult = Union[ExtractedMetadata, MetadataUnavailable]


def parse_exif_datetime(value: Any) -> Optional[datetime]:
    """Parse an EXIF style timestamp.

    Accepts "YYYY:MM:DD HH:MM:SS" with optional sub-seconds and a zone suffix
    (the zone is ignored, the result is naive local time). Zero dates and
    values that are not valid calendar dates yield None.

    Example:
        >>> parse_exif_datetime("2023:06:15 08:00:00")
        datetime.datetime(2023, 6, 15, 8, 0)
        >>> parse_exif_datetime("0000:00:00 00:00:00") is None
        True
    """
    if not isinstance(value, str):
        return None
    match = _EXIF_DATETIME_RE.match(value)
    if not match:
        return None

    parts = [int(p) if p is not None else 0 for p in match.groups()]
    year, month, day = parts[:3]
    if year == 0 or month == 0 or day == 0:
        return None
    try:
        return datetime(*parts)
    except ValueError:
        return None


def pick_timestamp(tags: Dict[str, Any]) -> Optional[datetime]:
    """Choose the creation timestamp from a tag dict.

    Args:
        tags: Tag dict as returned by ExifTool (group-prefixed keys).

    Returns:
        The first valid timestamp in priority order, or None.
    """
    for key in TIMESTAMP_PRIORITY:
        parsed = parse_exif_datetime(tags.get(key))
        if parsed:
            return parsed

    for name in _FALLBACK_TIMESTAMP_NAMES:
        for key, value in tags.items():
            if key == name or key.endswith(":" + name):
                parsed = parse_exif_datetime(value)
                if parsed:
                    return parsed
    return None


class MetadataExtractor:
    """Interface for reading embedded metadata.

    Subclasses implement extract(); extract_batch() may be overridden when
    the backend can read many files at once.
    """

    def extract(self, path: str) -> ExtractedMetadata:
        """Read metadata for one file.

        Raises:
            MetadataUnavailable: If the file's metadata cannot be read.
        """
        raise NotImplementedError

    def extract_batch(self, paths: Sequence[str]) -> List[ExtractionResult]:
        """Read metadata for many files.

        Returns:
            One entry per path, in order: the metadata or the
            MetadataUnavailable error for that file.
        """
        results: List[ExtractionResult] = []
        for path in paths:
            try:
                results.append(self.extract(path))
            except MetadataUnavailable as e:
                results.append(e)
        return results

    def close(self) -> None:
        """Release any backend resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class ExifToolExtractor(MetadataExtractor):
    """MetadataExtractor backed by a shared ExifTool process.

    The process is started on first use. If ExifTool cannot be found a
    single warning is logged and every extraction raises MetadataUnavailable.
    """

    def __init__(self, manager: Optional[ExifToolManager] = None, batch_size: int = 200):
        self._manager = manager or ExifToolManager()
        self._batch_size = batch_size
        self._available: Optional[bool] = None

    def _ensure_started(self) -> None:
        if self._available is None:
            self._available = self._manager.start()
            if not self._available:
                logger.warning(
                    "ExifTool is not available; dates will only be taken from file names"
                )
        if not self._available:
            raise MetadataUnavailable("ExifTool is not available")

    def _to_metadata(self, path: str, tags: Dict[str, Any]) -> ExtractedMetadata:
        if not tags:
            raise MetadataUnavailable(f"Could not read metadata from {path}")
        timestamp = pick_timestamp(tags)
        logger.debug(f"Metadata for {path}: timestamp={timestamp}")
        return ExtractedMetadata(timestamp=timestamp, tags=dict(tags))

    def extract(self, path: str) -> ExtractedMetadata:
        self._ensure_started()
        tags = self._manager.read_tags(path, REQUESTED_TAGS)
        return self._to_metadata(path, tags)

    def extract_batch(self, paths: Sequence[str]) -> List[ExtractionResult]:
        try:
            self._ensure_started()
        except MetadataUnavailable as e:
            return [e for _ in paths]

        results: List[ExtractionResult] = []
        for start in range(0, len(paths), self._batch_size):
            chunk = list(paths[start:start + self._batch_size])
            for path, tags in zip(chunk, self._manager.read_tags_batch(chunk, REQUESTED_TAGS)):
                try:
                    results.append(self._to_metadata(path, tags))
                except MetadataUnavailable as e:
                    results.append(e)
        return results

    def close(self) -> None:
        self._manager.stop()


def prefetch_metadata(files: Sequence[SourceFile], extractor: MetadataExtractor) -> int:
    """Extract metadata for files that do not have it cached yet.

    Runs on the calling thread so workers only ever read the cache.

    Returns:
        Number of files whose metadata was fetched.
    """
    pending = [f for f in files if not f.metadata_loaded]
    if not pending:
        return 0

    logger.debug(f"Prefetching metadata for {len(pending)} files")
    results = extractor.extract_batch([f.path for f in pending])
    for file, result in zip(pending, results):
        if isinstance(result, MetadataUnavailable):
            file.set_metadata(None, result)
        else:
            file.set_metadata(result)
    return len(pending)
