"""Command-line interface for PhotoSort."""

import argparse
import logging
import shutil
import sys
from contextlib import nullcontext
from typing import List, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from photosort import __version__
from photosort.core.config import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_EXTENSIONS,
    DEFAULT_FILE_FORMAT,
    DEFAULT_VIDEO_EXTENSIONS,
    ActionType,
    AnalysisMode,
    SorterSettings,
)
from photosort.core.errors import ConfigurationError, TemplateSyntaxError
from photosort.core.logger import OperationReport, create_logger
from photosort.core.models import OperationResult, Outcome
from photosort.core.orchestrator import SortOrchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s %(levelname)s %(name)s] %(message)s"

# Program description
DESCRIPTION = """PhotoSort

Renames and sorts photos and videos from one or more source directories into
a target directory. Each file's date is taken from its EXIF data and/or its
file name, and its new name is built from a format string.

Format placeholders: {name}, {original_name}, {date}, {date?FORMAT}, {dup},
{type}, {type?IMG,VID}, {ext}, {ext?upper|lower}, {bracket?seq|num|len|first|last}.
A label in front of a colon, as in {_:date}, is only written when the
placeholder is not empty. A "/" in the result starts a sub-directory.
"""


def create_progress_callback(desc: str = "Processing"):
    """Create a tqdm-based progress callback.

    Args:
        desc: Description for progress bar.

    Returns:
        Tuple of (callback function, tqdm instance).
    """
    pbar = tqdm(total=100, desc=desc)

    # Leave room for progress bar elements (percentage, bar, counts)
    terminal_width = shutil.get_terminal_size().columns
    max_desc_width = max(20, min(80, terminal_width - 40))

    def callback(current: int, total: int, message: str):
        pbar.total = total
        pbar.n = current
        if len(message) > max_desc_width:
            message = message[:max_desc_width - 3] + "..."
        pbar.set_description(message)
        pbar.refresh()

    return callback, pbar


def parse_extension_list(text: str) -> List[str]:
    """argparse type for comma separated extension lists."""
    return [part for part in (p.strip() for p in text.split(",")) if part]


def configure_logging(
    verbose: bool = False,
    debug: bool = False,
    quiet: bool = False,
    log_file: Optional[str] = None,
) -> None:
    """Wire the root logger for a CLI run.

    Console: WARNING by default, INFO with verbose, DEBUG with debug and
    ERROR only with quiet. The optional log file gets the general level.
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.ERROR if quiet else level)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    root.setLevel(level)


def build_settings(parsed: argparse.Namespace) -> SorterSettings:
    """Turn parsed arguments into SorterSettings."""
    return SorterSettings(
        source_dirs=tuple(parsed.source_dir),
        target_dir=parsed.target_dir,
        recursive=parsed.recursive,
        file_format=parsed.file_format,
        nodate_file_format=parsed.nodate,
        unknown_file_format=parsed.unknown,
        bracketed_file_format=parsed.bracket,
        date_format=parsed.date_format,
        extensions=tuple(parsed.extensions),
        video_extensions=tuple(parsed.video_extensions),
        analysis_mode=parsed.analysis_mode,
        action=parsed.move_mode,
        dry_run=parsed.dry_run,
        mkdir=parsed.mkdir,
        threads=parsed.threads,
    )


def run_sort(
    orchestrator: SortOrchestrator,
    progress: bool = False,
    quiet: bool = False,
    report_path: Optional[str] = None,
) -> int:
    """Run the sort and print one outcome line per file.

    Returns:
        Exit code: 0 if nothing failed, 2 if any file failed.
    """
    settings = orchestrator.settings
    if settings.dry_run and not quiet:
        print("=== DRY RUN MODE ===")
        print("No files will be moved, copied or linked.\n")

    callback, pbar = create_progress_callback("Sorting") if progress else (None, None)
    write = tqdm.write if progress else print

    with OperationReport(create_logger(report_path)) as report:

        def on_result(result: OperationResult) -> None:
            report.add(result)
            if result.outcome is Outcome.FAILED or not quiet:
                write(result.describe())

        try:
            with logging_redirect_tqdm() if progress else nullcontext():
                result = orchestrator.process(on_progress=callback, on_result=on_result)
        except KeyboardInterrupt:
            print("\n\nInterrupted!", file=sys.stderr)
            return 130
        finally:
            if pbar is not None:
                pbar.close()

        report.write_summary(result)

    if not quiet:
        stats = result.stats
        print("\nFinished!" if not settings.dry_run else "\n=== END DRY RUN ===")
        print(f"Succeeded: {stats.succeeded} files")
        print(f"Skipped:   {stats.skipped} files")
        print(f"Failed:    {stats.failed} files")
        if stats.no_date:
            print(f"  Without a date: {stats.no_date}")
        if stats.bracketed:
            print(f"  In bracket sequences: {stats.bracketed}")
        print(f"Time used: {result.elapsed_time} seconds")

    if result.has_failures:
        return 2
    return 0


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Arguments to parse (default: sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="photosort",
        description=DESCRIPTION,
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "-s", "--source-dir",
        help="The source directories to read files from",
        nargs="+",
        required=True
    )

    parser.add_argument(
        "-t", "--target-dir",
        help="The target directory to write files to",
        required=True
    )

    parser.add_argument(
        "-r", "--recursive",
        help="Descend into sub-directories of the source directories",
        action="store_true"
    )

    parser.add_argument(
        "--date-format",
        help=f"Default strftime format for {{date}} (default: {DEFAULT_DATE_FORMAT.replace('%', '%%')})",
        default=DEFAULT_DATE_FORMAT
    )

    parser.add_argument(
        "-f", "--file-format",
        help=f"Format of the new file names (default: {DEFAULT_FILE_FORMAT})",
        default=DEFAULT_FILE_FORMAT
    )

    parser.add_argument(
        "--nodate",
        help="Format for files without a date (default: the file format)",
        default=None
    )

    parser.add_argument(
        "--unknown",
        help="Format for files with unknown extensions; if unset they are ignored",
        default=None
    )

    parser.add_argument(
        "--bracket", "--bracketed",
        dest="bracket",
        help="Format for files that are part of a bracketing sequence",
        default=None
    )

    parser.add_argument(
        "--mkdir", "--mkdirs",
        dest="mkdir",
        help="Create missing target directories",
        action="store_true"
    )

    parser.add_argument(
        "-e", "--extensions",
        help=f"Comma separated image extensions (default: {','.join(DEFAULT_EXTENSIONS)})",
        type=parse_extension_list,
        default=list(DEFAULT_EXTENSIONS)
    )

    parser.add_argument(
        "--video-extensions",
        help=f"Comma separated video extensions (default: {','.join(DEFAULT_VIDEO_EXTENSIONS)})",
        type=parse_extension_list,
        default=list(DEFAULT_VIDEO_EXTENSIONS)
    )

    parser.add_argument(
        "-a", "--analysis-mode",
        help="only_exif, only_name, exif_then_name or name_then_exif (default: exif_then_name)",
        type=AnalysisMode.parse,
        default=AnalysisMode.EXIF_THEN_NAME
    )

    parser.add_argument(
        "-m", "--move-mode",
        help="move, copy, hardlink, relative_symlink or absolute_symlink (default: move)",
        type=ActionType.parse,
        default=ActionType.MOVE
    )

    parser.add_argument(
        "-n", "--dry-run",
        help="Show what would be done without making changes",
        action="store_true"
    )

    parser.add_argument(
        "-v", "--verbose",
        help="Log informational messages",
        action="store_true"
    )

    parser.add_argument(
        "-d", "--debug",
        help="Log debug messages",
        action="store_true"
    )

    parser.add_argument(
        "-q", "--quiet",
        help="Only print errors to the console",
        action="store_true"
    )

    parser.add_argument(
        "-l", "--log",
        help="Append the full log to this file",
        default=None
    )

    parser.add_argument(
        "--report",
        help="Write one line per file and a summary to this file",
        default=None
    )

    parser.add_argument(
        "-p", "--progress",
        help="Show a progress bar",
        action="store_true"
    )

    parser.add_argument(
        "--threads",
        help="Number of worker threads (default: sequential)",
        type=int,
        default=None
    )

    return parser.parse_args(args)


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (default: sys.argv[1:]).

    Returns:
        Exit code (0 for success, 1 for invalid invocation, 2 if any file
        failed).
    """
    try:
        parsed = parse_args(args)
    except SystemExit as e:
        # argparse exits with 2 on errors; 2 is reserved for file failures
        return 0 if e.code in (0, None) else 1

    if parsed.quiet and (parsed.verbose or parsed.debug) and not parsed.log:
        print("Error: --quiet with --verbose or --debug requires --log", file=sys.stderr)
        return 1

    configure_logging(parsed.verbose, parsed.debug, parsed.quiet, parsed.log)

    settings = build_settings(parsed)
    logger.debug(f"Settings: {settings}")
    try:
        orchestrator = SortOrchestrator(settings)
    except (ConfigurationError, TemplateSyntaxError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return run_sort(
        orchestrator,
        progress=parsed.progress,
        quiet=parsed.quiet,
        report_path=parsed.report,
    )


if __name__ == "__main__":
    sys.exit(main())
