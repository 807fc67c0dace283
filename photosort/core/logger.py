"""Report files for PhotoSort."""

import os
import time
from typing import Optional, TextIO, Union

from photosort.core.models import OperationResult, RunResult


class BufferedLogger:
    """Buffered, append-mode text log with context manager support.

    Usage:
        with BufferedLogger("/path/to/report.txt") as log:
            log.log("Processing started")
        # File is automatically closed
    """

    def __init__(self, filepath: str):
        """Initialize logger.

        Args:
            filepath: Log file path; its directory is created on first write.
        """
        self.filepath = filepath
        self._handle: Optional[TextIO] = None

    def _open(self) -> None:
        """Open the log file for writing (lazy initialization)."""
        if self._handle is None:
            directory = os.path.dirname(self.filepath)
            if directory:
                os.makedirs(directory, exist_ok=True)
            self._handle = open(self.filepath, "a", encoding="utf-8")

    def log(self, message: str) -> None:
        """Write a timestamped message to the log."""
        self._open()
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        self._handle.write(f"{timestamp} - {message}\n")

    def flush(self) -> None:
        """Flush the log buffer to disk."""
        if self._handle:
            self._handle.flush()

    def close(self) -> None:
        """Close the log file."""
        if self._handle:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "BufferedLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._handle is not None


class NullLogger:
    """A logger that does nothing - used when no report file is requested."""

    def log(self, message: str) -> None:
        pass

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "NullLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass

    @property
    def is_open(self) -> bool:
        return True


def create_logger(filepath: Optional[str]) -> Union[BufferedLogger, NullLogger]:
    """Create a logger instance.

    Args:
        filepath: Log file path, or None for a NullLogger.

    Returns:
        Configured logger instance.
    """
    if filepath:
        return BufferedLogger(filepath)
    return NullLogger()


class OperationReport:
    """Writes one line per file outcome and a closing summary.

    Usage:
        with OperationReport(create_logger(path)) as report:
            orchestrator.process(on_result=report.add)
            report.write_summary(run_result)
    """

    def __init__(self, logger: Union[BufferedLogger, NullLogger]):
        self._logger = logger

    def add(self, result: OperationResult) -> None:
        for line in result.describe_lines():
            self._logger.log(line)

    def write_summary(self, run: RunResult) -> None:
        """Append the run summary block."""
        stats = run.stats
        if run.elapsed_time >= 60:
            minutes = int(run.elapsed_time // 60)
            seconds = int(run.elapsed_time % 60)
            duration = f"{minutes}m {seconds}s"
        else:
            duration = f"{run.elapsed_time:.1f}s"

        title = "Summary (dry run)" if run.dry_run else "Summary"
        if run.cancelled:
            title += ", cancelled"
        self._logger.log(title)
        self._logger.log(f"  Succeeded: {stats.succeeded:,}")
        self._logger.log(f"  Skipped:   {stats.skipped:,}")
        self._logger.log(f"  Failed:    {stats.failed:,}")
        self._logger.log(f"  Without date: {stats.no_date:,}, unknown type: {stats.unknown:,}, "
                         f"bracketed: {stats.bracketed:,}")
        self._logger.log(f"  Started:   {run.start_time}")
        self._logger.log(f"  Ended:     {run.end_time}")
        self._logger.log(f"  Duration:  {duration}")
        self._logger.flush()

    def close(self) -> None:
        self._logger.close()

    def __enter__(self) -> "OperationReport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
