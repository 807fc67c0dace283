"""Date resolution for PhotoSort.

Derives a file's canonical date from embedded metadata and/or its file name
according to the configured AnalysisMode.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional, Pattern, Tuple

from photosort.core.config import AnalysisMode
from photosort.core.errors import MetadataUnavailable
from photosort.core.metadata import MetadataExtractor
from photosort.core.models import (
    Confidence,
    DateAnalysis,
    DateCandidate,
    DateOrigin,
    SourceFile,
)

logger = logging.getLogger(__name__)

_DATE = r"(?<!\d)(?P<year>\d{4})[-_.]?(?P<month>\d{2})[-_.]?(?P<day>\d{2})"
_TIME = r"(?P<hour>\d{2})[-_.:]?(?P<minute>\d{2})[-_.:]?(?P<second>\d{2})(?!\d)"

# Ordered by priority; the first pattern with a valid match wins.
NAME_PATTERNS: List[Tuple[Pattern, Confidence]] = [
    # 20230101_120000, 2023-01-01 12.00.00, 2023-01-01-12-00-00,
    # Screenshot 2023-01-01 at 12.00.00
    (re.compile(_DATE + r"\D{0,5}?" + _TIME + r"[-_]?"), Confidence.MEDIUM),
    # IMG-20230101-WA0001 (only the date part is consumed)
    (re.compile(r"(?<!\d)(?P<year>\d{4})(?P<month>\d{2})(?P<day>\d{2})(?=-WA\d+)"), Confidence.LOW),
    # 20230101, 2023-01-01
    (re.compile(_DATE + r"(?!\d)[-_]?"), Confidence.LOW),
]

_IMAGE_NAME_RE = re.compile(r"^((IMG|img|NO_?DATE|no_?date)?[-_]*)*(.*?)[-_]*?\.([A-Za-z0-9]+)$")
_EXTENSION_RE = re.compile(r"\.[A-Za-z0-9]+$")
_NODATE_RE = re.compile(r"NO_?DATE|no_?date")


def clean_image_name(name: str) -> str:
    """Remove the extension and prefixes added by earlier runs.

    Strips leading "IMG"/"img"/"NODATE"/"NO_DATE" prefixes with their
    separators, trailing separators, the extension, and any NODATE marker.

    Example:
        >>> clean_image_name("IMG_holiday.jpg")
        'holiday'
        >>> clean_image_name("NODATE-beach-1.png")
        'beach-1'
    """
    match = _IMAGE_NAME_RE.match(name)
    if match:
        result = _NODATE_RE.sub("", match.group(3), count=1)
    else:
        result = _NODATE_RE.sub("", _EXTENSION_RE.sub("", name), count=1)
    logger.debug(f"Cleaned name: {name!r} -> {result!r}")
    return result


def _build_datetime(match: re.Match) -> Optional[datetime]:
    fields = match.groupdict()
    try:
        return datetime(
            int(fields["year"]),
            int(fields["month"]),
            int(fields["day"]),
            int(fields.get("hour") or 0),
            int(fields.get("minute") or 0),
            int(fields.get("second") or 0),
        )
    except ValueError:
        return None


def date_from_name(
    filename: str,
    patterns: List[Tuple[Pattern, Confidence]] = NAME_PATTERNS,
) -> Tuple[Optional[DateCandidate], str]:
    """Find a date in a file name.

    Args:
        filename: File name (with extension).
        patterns: Ordered (regex, confidence) pairs.

    Returns:
        Tuple of (candidate or None, file name with the matched text removed).
    """
    for pattern, confidence in patterns:
        for match in pattern.finditer(filename):
            value = _build_datetime(match)
            if value is None:
                continue
            remainder = filename[:match.start()] + filename[match.end():]
            return DateCandidate(value, DateOrigin.FILE_NAME, confidence), remainder
    return None, filename


class DateResolver:
    """Resolves the canonical date of a file.

    Safe to call from several threads at once: the only shared state is the
    SourceFile's cached metadata, which is written before the fan-out.

    Args:
        extractor: Metadata backend, or None to disable metadata dates.
        patterns: Name patterns, defaults to NAME_PATTERNS.
    """

    def __init__(
        self,
        extractor: Optional[MetadataExtractor] = None,
        patterns: Optional[List[Tuple[Pattern, Confidence]]] = None,
    ):
        self._extractor = extractor
        self._patterns = patterns if patterns is not None else NAME_PATTERNS

    def from_metadata(self, file: SourceFile) -> Optional[DateCandidate]:
        """Date from embedded metadata, or None when there is none."""
        if self._extractor is None and not file.metadata_loaded:
            return None
        try:
            metadata = file.get_metadata(self._extractor)
        except MetadataUnavailable as e:
            logger.debug(f"No metadata date for {file.path}: {e}")
            return None
        if metadata.timestamp is None:
            return None
        return DateCandidate(metadata.timestamp, DateOrigin.EXIF, Confidence.HIGH)

    def analyze(self, file: SourceFile, mode: AnalysisMode) -> DateAnalysis:
        """Resolve the date and the cleaned name of a file.

        The name is always analysed so that a date found in it is removed
        from the cleaned name, even when the date itself comes from metadata.
        """
        name_candidate, remainder = date_from_name(file.filename, self._patterns)
        stripped_name = clean_image_name(remainder).strip()

        if mode is AnalysisMode.ONLY_NAME:
            candidate = name_candidate
        elif mode is AnalysisMode.ONLY_EXIF:
            candidate = self.from_metadata(file)
        elif mode is AnalysisMode.EXIF_THEN_NAME:
            candidate = self.from_metadata(file)
            if candidate is None and name_candidate is not None:
                logger.debug(f"Falling back to name analysis for {file.path}")
                candidate = name_candidate
        else:
            candidate = name_candidate or self.from_metadata(file)

        if candidate is None:
            logger.info(f"No date was derived for file {file.path}")
        else:
            logger.debug(
                f"Date for {file.filename}: {candidate.value} "
                f"({candidate.origin.value}, {candidate.confidence.name})"
            )
        return DateAnalysis(candidate=candidate, stripped_name=stripped_name)

    def resolve(self, file: SourceFile, mode: AnalysisMode) -> Optional[DateCandidate]:
        """Resolve only the date of a file."""
        return self.analyze(file, mode).candidate
