"""High-level orchestrator for PhotoSort.

Coordinates scanning, metadata prefetch, bracket grouping, rendering,
duplicate resolution and the file operations. Used by the CLI and by
library callers.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional, Tuple

from photosort.core.brackets import BracketGrouper, VendorRegistry, assign_representative_dates
from photosort.core.config import SorterSettings
from photosort.core.dates import DateResolver
from photosort.core.duplicates import DEFAULT_MAX_ATTEMPTS, ClaimedPathSet, DuplicateResolver
from photosort.core.errors import DuplicatePathExhausted, PhotoSortError
from photosort.core.executor import OperationExecutor
from photosort.core.metadata import ExifToolExtractor, MetadataExtractor, prefetch_metadata
from photosort.core.models import (
    BracketUnit,
    MediaType,
    OperationResult,
    Outcome,
    ProcessingStats,
    ProgressCallback,
    ResultCallback,
    RunResult,
    SourceFile,
)
from photosort.core.scanner import FileScanner, list_existing_files
from photosort.core.template import FormatSpec, RenderContext, Skeleton, compile_format, render_skeleton

logger = logging.getLogger(__name__)

# Kinds of file, for the run statistics
_DATED = "dated"
_NO_DATE = "no_date"
_UNKNOWN = "unknown"
_BRACKETED = "bracketed"


def _adaptive_interval(total: int) -> int:
    """Calculate adaptive progress update interval based on total count.

    More frequent updates for smaller collections, less frequent for larger ones.

    Args:
        total: Total number of items to process.

    Returns:
        Update interval (report progress every N items).
    """
    if total < 50:
        return 1
    elif total < 200:
        return 10
    elif total < 1000:
        return 25
    elif total < 5000:
        return 50
    else:
        return 100


@dataclass
class _Job:
    file: SourceFile
    unit: BracketUnit
    position: int


class SortOrchestrator:
    """Coordinates a whole sorting run.

    Format strings are compiled when the orchestrator is built, so a
    TemplateSyntaxError surfaces before any file is touched.

    Usage:
        settings = SorterSettings(source_dirs=("/card",), target_dir="/photos")
        orchestrator = SortOrchestrator(settings)
        result = orchestrator.process(on_progress=my_callback)
        print(f"Failed: {result.stats.failed} files")
    """

    def __init__(
        self,
        settings: SorterSettings,
        extractor: Optional[MetadataExtractor] = None,
        registry: Optional[VendorRegistry] = None,
        executor: Optional[OperationExecutor] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        """Initialize orchestrator.

        Args:
            settings: Validated run settings.
            extractor: Metadata backend. Defaults to an ExifToolExtractor when
                the analysis mode or bracket grouping needs metadata.
            registry: Bracket vendor parsers.
            executor: File operation executor.
            max_attempts: Upper bound on duplicate counters per file.

        Raises:
            ConfigurationError: If the settings are invalid.
            TemplateSyntaxError: If a format string does not compile.
        """
        settings.validate()
        self.settings = settings

        self._file_spec = compile_format(settings.file_format)
        self._nodate_spec = compile_format(settings.effective_nodate_format)
        self._unknown_spec = (
            compile_format(settings.unknown_file_format) if settings.unknown_file_format else None
        )
        self._bracket_spec = (
            compile_format(settings.bracketed_file_format) if settings.bracketed_file_format else None
        )

        specs = [s for s in (self._file_spec, self._nodate_spec, self._unknown_spec) if s]
        self.grouping_enabled = self._bracket_spec is not None or any(s.uses_bracket for s in specs)

        self._owns_extractor = False
        if extractor is None and (settings.analysis_mode.uses_exif or self.grouping_enabled):
            extractor = ExifToolExtractor()
            self._owns_extractor = True
        self._extractor = extractor

        self._date_resolver = DateResolver(extractor)
        self._grouper = BracketGrouper(extractor, registry)
        self._executor = executor or OperationExecutor()
        self._max_attempts = max_attempts
        self._duplicates: Optional[DuplicateResolver] = None

    def scan(self, on_progress: Optional[ProgressCallback] = None) -> List[SourceFile]:
        """Find the files of this run in scan order."""
        scanner = FileScanner(
            self.settings.source_dirs,
            recursive=self.settings.recursive,
            extensions=self.settings.extensions,
            video_extensions=self.settings.video_extensions,
            include_unknown=self._unknown_spec is not None,
        )
        return scanner.scan(on_progress)

    def _prefetch(self, files: List[SourceFile]) -> None:
        if self._extractor is None:
            return
        uses_exif = self.settings.analysis_mode.uses_exif
        needed = [
            f for f in files
            if (uses_exif and f.media_type is not MediaType.UNKNOWN)
            or (self.grouping_enabled and f.media_type is MediaType.IMAGE)
        ]
        prefetch_metadata(needed, self._extractor)

    def _build_units(self, files: List[SourceFile]) -> List[BracketUnit]:
        if not self.grouping_enabled:
            return [BracketUnit(members=[f], tags=[None]) for f in files]
        units = self._grouper.group(files)
        assign_representative_dates(units, self._date_resolver, self.settings.analysis_mode)
        return units

    def _skeleton_for(self, job: _Job) -> Tuple[Skeleton, str]:
        """Pass-1 render of one file. Returns (skeleton, kind)."""
        file = job.file
        settings = self.settings

        if file.media_type is MediaType.UNKNOWN:
            ctx = RenderContext(
                date=None,
                name=file.stem,
                original_name=file.stem,
                extension=file.extension,
                media_type=MediaType.UNKNOWN,
                date_format=settings.date_format,
            )
            return render_skeleton(self._unknown_spec, ctx), _UNKNOWN

        analysis = self._date_resolver.analyze(file, settings.analysis_mode)
        bracket = job.unit.info_for(job.position)
        if bracket is not None:
            candidate = job.unit.representative_date
        else:
            candidate = analysis.candidate

        spec: FormatSpec
        if bracket is not None and self._bracket_spec is not None:
            spec, kind = self._bracket_spec, _BRACKETED
        elif candidate is not None:
            spec, kind = self._file_spec, _BRACKETED if bracket else _DATED
        else:
            spec, kind = self._nodate_spec, _NO_DATE

        ctx = RenderContext(
            date=candidate,
            name=analysis.stripped_name,
            original_name=file.stem,
            extension=file.extension,
            media_type=file.media_type,
            date_format=settings.date_format,
            bracket=bracket,
        )
        return render_skeleton(spec, ctx), kind

    def _process_one(self, job: _Job) -> Tuple[OperationResult, str]:
        """Run the full pipeline for one file.

        Per-file problems become FAILED results. An unexpected error while
        claiming a destination propagates and ends the run.
        """
        settings = self.settings
        file = job.file

        def failed(error: PhotoSortError) -> OperationResult:
            logger.error(f"{settings.action.label} failed for {file.path}: {error}")
            return OperationResult(
                source=file.path,
                destination=None,
                action=settings.action,
                outcome=Outcome.FAILED,
                error=error,
                dry_run=settings.dry_run,
            )

        try:
            skeleton, kind = self._skeleton_for(job)
        except PhotoSortError as e:
            return failed(e), _DATED
        except (OSError, ValueError) as e:
            return failed(PhotoSortError(f"Could not build a name: {e}")), _DATED

        try:
            destination, dup = self._duplicates.claim(
                skeleton, settings.target_dir, own_path=file.path
            )
        except DuplicatePathExhausted as e:
            return failed(e), kind

        result = self._executor.apply(
            file.path,
            destination,
            settings.action,
            dry_run=settings.dry_run,
            allow_mkdir=settings.mkdir,
        )
        result.dup = dup
        return result, kind

    def process(
        self,
        on_progress: Optional[ProgressCallback] = None,
        on_result: Optional[ResultCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> RunResult:
        """Sort every file of the source directories.

        Args:
            on_progress: Optional callback for progress updates.
            on_result: Optional callback, called once per finished file on
                the calling thread.
            cancel_event: Optional threading.Event for cooperative
                cancellation. Files not yet started are not processed.

        Returns:
            RunResult with statistics and per-file results.
        """
        start_time = time.time()
        stats = ProcessingStats()
        result = RunResult(
            stats=stats,
            start_time=time.strftime("%Y-%m-%d %H:%M:%S"),
            dry_run=self.settings.dry_run,
        )

        try:
            if on_progress:
                on_progress(0, 0, "[1/3] Scanning files...")
            files = self.scan()

            if on_progress:
                on_progress(0, len(files), "[2/3] Reading metadata...")
            self._prefetch(files)
            units = self._build_units(files)
            jobs = [
                _Job(file=member, unit=unit, position=i)
                for unit in units
                for i, member in enumerate(unit.members)
            ]

            claimed = ClaimedPathSet(list_existing_files(self.settings.target_dir))
            logger.debug(f"{len(claimed)} existing files in {self.settings.target_dir}")
            self._duplicates = DuplicateResolver(claimed, self._max_attempts)

            self._run_jobs(jobs, result, on_progress, on_result, cancel_event)
        finally:
            if self._owns_extractor:
                self._extractor.close()

        result.elapsed_time = round(time.time() - start_time, 3)
        result.end_time = time.strftime("%Y-%m-%d %H:%M:%S")
        logger.info(
            f"Done: {stats.succeeded} succeeded, {stats.skipped} skipped, "
            f"{stats.failed} failed in {result.elapsed_time}s"
        )
        if on_progress:
            total = len(result.results)
            on_progress(total, total, "Processing complete")
        return result

    def _collect(
        self,
        outcome: Tuple[OperationResult, str],
        result: RunResult,
        on_result: Optional[ResultCallback],
    ) -> None:
        op_result, kind = outcome
        result.stats.record(op_result)
        if kind == _NO_DATE:
            result.stats.no_date += 1
        elif kind == _UNKNOWN:
            result.stats.unknown += 1
        elif kind == _BRACKETED:
            result.stats.bracketed += 1
        result.results.append(op_result)
        if on_result:
            on_result(op_result)

    def _run_jobs(
        self,
        jobs: List[_Job],
        result: RunResult,
        on_progress: Optional[ProgressCallback],
        on_result: Optional[ResultCallback],
        cancel_event: Optional[threading.Event],
    ) -> None:
        total = len(jobs)
        interval = _adaptive_interval(total)
        workers = self.settings.workers

        if on_progress:
            on_progress(0, total, "[3/3] Processing files...")

        if workers == 1:
            for i, job in enumerate(jobs, 1):
                if cancel_event and cancel_event.is_set():
                    result.cancelled = True
                    break
                self._collect(self._process_one(job), result, on_result)
                if on_progress and (i % interval == 0 or i == total):
                    on_progress(i, total, f"[3/3] Processing: {job.file.filename}")
            return

        pool = ThreadPoolExecutor(max_workers=workers)
        future_to_job = {pool.submit(self._process_one, job): job for job in jobs}
        collected = set()
        try:
            for future in as_completed(future_to_job):
                if cancel_event and cancel_event.is_set():
                    result.cancelled = True
                    break

                job = future_to_job[future]
                try:
                    outcome = future.result()
                except Exception:
                    logger.error(f"Aborting run after unexpected error on {job.file.path}")
                    raise

                collected.add(future)
                self._collect(outcome, result, on_result)
                if on_progress and (len(collected) % interval == 0 or len(collected) == total):
                    on_progress(len(collected), total, f"[3/3] Processing: {job.file.filename}")
        finally:
            # Queued jobs are dropped; running ones finish before we return
            pool.shutdown(wait=True, cancel_futures=True)

        if result.cancelled:
            # Jobs that finished after the cancel still touched the disk
            for future, job in future_to_job.items():
                if future in collected or future.cancelled():
                    continue
                if future.exception() is None:
                    self._collect(future.result(), result, on_result)
                else:
                    logger.error(f"Error on {job.file.path} after cancel: {future.exception()}")
