"""Core processing logic for PhotoSort."""

from photosort.core.errors import (
    PhotoSortError,
    ConfigurationError,
    TemplateSyntaxError,
    MetadataUnavailable,
    DuplicatePathExhausted,
    FilesystemOperationError,
    MissingParentDirectory,
)

from photosort.core.config import (
    AnalysisMode,
    ActionType,
    SorterSettings,
    DEFAULT_DATE_FORMAT,
    DEFAULT_FILE_FORMAT,
    DEFAULT_EXTENSIONS,
    DEFAULT_VIDEO_EXTENSIONS,
)

from photosort.core.models import (
    SourceFile,
    MediaType,
    DateCandidate,
    DateAnalysis,
    DateOrigin,
    Confidence,
    ExtractedMetadata,
    BracketTag,
    BracketUnit,
    BracketInfo,
    Outcome,
    OperationResult,
    ProcessingStats,
    RunResult,
    ProgressCallback,
)

from photosort.core.exiftool import (
    get_exiftool_path,
    is_exiftool_available,
    ExifToolManager,
)

from photosort.core.metadata import (
    MetadataExtractor,
    ExifToolExtractor,
    parse_exif_datetime,
    prefetch_metadata,
)

from photosort.core.dates import (
    DateResolver,
    NAME_PATTERNS,
    clean_image_name,
    date_from_name,
)

from photosort.core.brackets import (
    BracketGrouper,
    VendorRegistry,
    parse_sony,
)

from photosort.core.template import (
    FormatSpec,
    RenderContext,
    Skeleton,
    compile_format,
    render,
    render_skeleton,
)

from photosort.core.duplicates import (
    ClaimedPathSet,
    DuplicateResolver,
)

from photosort.core.executor import (
    OperationExecutor,
)

from photosort.core.scanner import (
    FileScanner,
    list_existing_files,
)

from photosort.core.logger import (
    BufferedLogger,
    NullLogger,
    OperationReport,
    create_logger,
)

from photosort.core.orchestrator import (
    SortOrchestrator,
)

__all__ = [
    # Errors
    "PhotoSortError",
    "ConfigurationError",
    "TemplateSyntaxError",
    "MetadataUnavailable",
    "DuplicatePathExhausted",
    "FilesystemOperationError",
    "MissingParentDirectory",
    # Config
    "AnalysisMode",
    "ActionType",
    "SorterSettings",
    "DEFAULT_DATE_FORMAT",
    "DEFAULT_FILE_FORMAT",
    "DEFAULT_EXTENSIONS",
    "DEFAULT_VIDEO_EXTENSIONS",
    # Models
    "SourceFile",
    "MediaType",
    "DateCandidate",
    "DateAnalysis",
    "DateOrigin",
    "Confidence",
    "ExtractedMetadata",
    "BracketTag",
    "BracketUnit",
    "BracketInfo",
    "Outcome",
    "OperationResult",
    "ProcessingStats",
    "RunResult",
    "ProgressCallback",
    # ExifTool
    "get_exiftool_path",
    "is_exiftool_available",
    "ExifToolManager",
    # Metadata
    "MetadataExtractor",
    "ExifToolExtractor",
    "parse_exif_datetime",
    "prefetch_metadata",
    # Dates
    "DateResolver",
    "NAME_PATTERNS",
    "clean_image_name",
    "date_from_name",
    # Brackets
    "BracketGrouper",
    "VendorRegistry",
    "parse_sony",
    # Template
    "FormatSpec",
    "RenderContext",
    "Skeleton",
    "compile_format",
    "render",
    "render_skeleton",
    # Duplicates
    "ClaimedPathSet",
    "DuplicateResolver",
    # Executor
    "OperationExecutor",
    # Scanner
    "FileScanner",
    "list_existing_files",
    # Logger
    "BufferedLogger",
    "NullLogger",
    "OperationReport",
    "create_logger",
    # Orchestrator
    "SortOrchestrator",
]
