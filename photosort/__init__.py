"""PhotoSort - Rename and sort photos and videos by date.

High-level API:
    from photosort import SortOrchestrator, SorterSettings

    settings = SorterSettings(
        source_dirs=("/path/to/card",),
        target_dir="/path/to/photos",
        file_format="{date?%Y}/{date?%m}/{type}{_:date}{-:dup}",
        mkdir=True,
    )
    result = SortOrchestrator(settings).process()
    print(f"Sorted {result.stats.succeeded} files")
"""

__version__ = "0.3.0"

# Public API exports
from photosort.core.orchestrator import SortOrchestrator
from photosort.core.config import SorterSettings, AnalysisMode, ActionType
from photosort.core.models import (
    RunResult,
    ProcessingStats,
    OperationResult,
    Outcome,
    SourceFile,
)
from photosort.core.errors import PhotoSortError

__all__ = [
    "SortOrchestrator",
    "SorterSettings",
    "AnalysisMode",
    "ActionType",
    "RunResult",
    "ProcessingStats",
    "OperationResult",
    "Outcome",
    "SourceFile",
    "PhotoSortError",
    "__version__",
]
