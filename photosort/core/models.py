"""Data models for PhotoSort."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, List, Optional, Tuple

from photosort.core.config import ActionType
from photosort.core.errors import MetadataUnavailable, PhotoSortError


class MediaType(Enum):
    """Media classification decided by the extension allow-lists."""
    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"


class DateOrigin(Enum):
    EXIF = "exif"
    FILE_NAME = "file_name"


class Confidence(IntEnum):
    """How much a derived date can be trusted (higher is better)."""
    LOW = 0       # date only, taken from the file name
    MEDIUM = 1    # date and time, taken from the file name
    HIGH = 2      # embedded metadata


class Outcome(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class DateCandidate:
    """A date derived for a file, with where it came from."""
    value: datetime
    origin: DateOrigin
    confidence: Confidence


@dataclass(frozen=True)
class DateAnalysis:
    """Full answer of the date resolver for one file.

    stripped_name is the file name with the matched date text removed; it is
    the input for the {name} placeholder.
    """
    candidate: Optional[DateCandidate]
    stripped_name: str

    @property
    def date(self) -> Optional[datetime]:
        return self.candidate.value if self.candidate else None


@dataclass(frozen=True)
class ExtractedMetadata:
    """What the metadata extractor found in a file.

    timestamp is None when no valid creation time was embedded; tags holds
    the raw (group-prefixed) tag values used for vendor detection.
    """
    timestamp: Optional[datetime] = None
    tags: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True, eq=False)
class SourceFile:
    """A media file discovered in a source directory.

    Identity is the absolute path. The metadata result (or the failure to
    obtain it) is computed at most once per run.
    """
    path: str
    media_type: MediaType = MediaType.IMAGE

    _size: Optional[int] = None
    _metadata: Optional[ExtractedMetadata] = None
    _metadata_error: Optional[MetadataUnavailable] = None

    def __post_init__(self):
        self.path = os.path.abspath(self.path)

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)

    @property
    def stem(self) -> str:
        return os.path.splitext(self.filename)[0]

    @property
    def extension(self) -> str:
        """Extension without the dot, original case ('' if none)."""
        return os.path.splitext(self.filename)[1][1:]

    @property
    def size(self) -> int:
        if self._size is None:
            self._size = os.path.getsize(self.path)
        return self._size

    @property
    def metadata_loaded(self) -> bool:
        return self._metadata is not None or self._metadata_error is not None

    def set_metadata(self, metadata: Optional[ExtractedMetadata],
                     error: Optional[MetadataUnavailable] = None) -> None:
        """Store a prefetched extraction result (or its failure)."""
        self._metadata = metadata
        self._metadata_error = error

    def get_metadata(self, extractor) -> ExtractedMetadata:
        """Return the cached metadata, extracting it on first use.

        Raises:
            MetadataUnavailable: If extraction failed (now or earlier).
        """
        if not self.metadata_loaded:
            try:
                self._metadata = extractor.extract(self.path)
            except MetadataUnavailable as e:
                self._metadata_error = e
        if self._metadata_error is not None:
            raise self._metadata_error
        return self._metadata

    def __hash__(self) -> int:
        return hash(self.path)

    def __eq__(self, other) -> bool:
        return isinstance(other, SourceFile) and other.path == self.path

    def __repr__(self) -> str:
        return f"SourceFile({self.path!r}, {self.media_type.value})"


@dataclass(frozen=True)
class BracketTag:
    """Vendor sequence marker parsed from maker notes."""
    vendor: str
    sequence_id: Tuple
    index: int


@dataclass(frozen=True)
class BracketInfo:
    """Per-member view of a bracket unit, used by the {bracket} placeholder."""
    sequence_number: int
    sequence_length: int
    group_index: int
    first_name: str
    last_name: str


@dataclass
class BracketUnit:
    """Files grouped by the bracket grouper.

    Members are contiguous in scan order and share one vendor sequence; a
    unit of size 1 is an ordinary, non-bracketed file.
    """
    members: List[SourceFile]
    tags: List[Optional[BracketTag]]
    vendor: Optional[str] = None
    group_index: Optional[int] = None
    representative_date: Optional[DateCandidate] = None

    @property
    def is_bracket(self) -> bool:
        return len(self.members) > 1

    def __len__(self) -> int:
        return len(self.members)

    def info_for(self, position: int) -> Optional[BracketInfo]:
        """Build the BracketInfo of the member at position, or None."""
        if not self.is_bracket:
            return None
        tag = self.tags[position]
        return BracketInfo(
            sequence_number=tag.index if tag else position + 1,
            sequence_length=len(self.members),
            group_index=self.group_index or 0,
            first_name=self.members[0].filename,
            last_name=self.members[-1].filename,
        )


@dataclass
class OperationResult:
    """Outcome of one file's operation."""
    source: str
    destination: Optional[str]
    action: ActionType
    outcome: Outcome
    error: Optional[PhotoSortError] = None
    dry_run: bool = False
    created_dirs: Optional[str] = None
    dup: int = 0

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.FAILED

    @property
    def reason(self) -> str:
        return str(self.error) if self.error else ""

    def describe_lines(self) -> List[str]:
        """Human readable lines for the outcome.

        A created (or, in dry-run mode, planned) destination directory gets
        its own "[Mkdir]" line before the operation line.
        """
        suffix = " (dry-run)" if self.dry_run else ""
        label = self.action.label + suffix
        lines = []
        if self.created_dirs:
            lines.append(f"[Mkdir{suffix}] {self.created_dirs}")
        if self.outcome is Outcome.FAILED:
            lines.append(f"[{label}] FAILED {self.source}: {self.reason}")
        elif self.outcome is Outcome.SKIPPED:
            lines.append(f"[{label}] SKIPPED {self.source}: {self.reason or 'already in place'}")
        else:
            lines.append(f"[{label}] {self.source} -> {self.destination}")
        return lines

    def describe(self) -> str:
        return "\n".join(self.describe_lines())


@dataclass
class ProcessingStats:
    """Statistics from a sorting run."""
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    no_date: int = 0
    unknown: int = 0
    bracketed: int = 0

    def total_files(self) -> int:
        return self.succeeded + self.skipped + self.failed

    def record(self, result: OperationResult) -> None:
        if result.outcome is Outcome.SUCCESS:
            self.succeeded += 1
        elif result.outcome is Outcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


@dataclass
class RunResult:
    """Results from a full sorting run.

    Returned by SortOrchestrator.process(). results are in completion order.
    """
    stats: ProcessingStats
    results: List[OperationResult] = field(default_factory=list)
    elapsed_time: float = 0.0
    start_time: str = ""
    end_time: str = ""
    dry_run: bool = False
    cancelled: bool = False

    @property
    def has_failures(self) -> bool:
        return self.stats.failed > 0

    def failures(self) -> List[OperationResult]:
        return [r for r in self.results if r.failed]


# Type aliases for callbacks
# (current_item, total_items, message) -> None
ProgressCallback = Callable[[int, int, str], None]

# Called once per finished file
ResultCallback = Callable[[OperationResult], None]
