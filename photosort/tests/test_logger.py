"""Tests for photosort.core.logger module."""

import os

from photosort.core.config import ActionType
from photosort.core.errors import FilesystemOperationError
from photosort.core.logger import BufferedLogger, NullLogger, OperationReport, create_logger
from photosort.core.models import OperationResult, Outcome, ProcessingStats, RunResult


def read_lines(path):
    with open(path, encoding="utf-8") as f:
        return f.read().splitlines()


class TestBufferedLogger:
    """Tests for BufferedLogger class."""

    def test_lazy_open(self, temp_dir):
        path = os.path.join(temp_dir, "reports", "run.txt")
        log = BufferedLogger(path)

        assert not log.is_open
        assert not os.path.exists(path)

        log.log("hello")
        log.close()

        assert read_lines(path)[0].endswith(" - hello")

    def test_appends(self, temp_dir):
        path = os.path.join(temp_dir, "run.txt")
        with BufferedLogger(path) as log:
            log.log("first")
        with BufferedLogger(path) as log:
            log.log("second")

        assert len(read_lines(path)) == 2

    def test_context_manager_closes(self, temp_dir):
        with BufferedLogger(os.path.join(temp_dir, "run.txt")) as log:
            log.log("x")
            assert log.is_open
        assert not log.is_open


class TestNullLogger:
    """Tests for NullLogger class."""

    def test_does_nothing(self):
        with NullLogger() as log:
            log.log("ignored")
            log.flush()
        assert log.is_open

    def test_create_logger(self, temp_dir):
        assert isinstance(create_logger(None), NullLogger)
        assert isinstance(create_logger(os.path.join(temp_dir, "r.txt")), BufferedLogger)


class TestOperationReport:
    """Tests for OperationReport."""

    def test_lines_and_summary(self, temp_dir):
        path = os.path.join(temp_dir, "report.txt")
        ok = OperationResult("/s/a.jpg", "/t/b.jpg", ActionType.COPY, Outcome.SUCCESS)
        failed = OperationResult(
            "/s/c.jpg", "/t/c.jpg", ActionType.COPY, Outcome.FAILED,
            error=FilesystemOperationError("Target already exists: /t/c.jpg"),
        )
        stats = ProcessingStats()
        stats.record(ok)
        stats.record(failed)
        run = RunResult(stats=stats, results=[ok, failed], elapsed_time=75.0,
                        start_time="2024-01-01 10:00:00", end_time="2024-01-01 10:01:15")

        with OperationReport(create_logger(path)) as report:
            report.add(ok)
            report.add(failed)
            report.write_summary(run)

        lines = read_lines(path)
        assert lines[0].endswith("[Copy] /s/a.jpg -> /t/b.jpg")
        assert lines[1].endswith("[Copy] FAILED /s/c.jpg: Target already exists: /t/c.jpg")
        assert lines[2].endswith("Summary")
        assert any(line.endswith("Succeeded: 1") for line in lines)
        assert any(line.endswith("Failed:    1") for line in lines)
        assert lines[-1].endswith("Duration:  1m 15s")

    def test_directory_line_precedes_operation(self, temp_dir):
        path = os.path.join(temp_dir, "report.txt")
        planned = OperationResult(
            "/s/a.jpg", "/t/new/a.jpg", ActionType.COPY, Outcome.SUCCESS,
            dry_run=True, created_dirs="/t/new",
        )

        with OperationReport(create_logger(path)) as report:
            report.add(planned)

        lines = read_lines(path)
        assert lines[0].endswith("[Mkdir (dry-run)] /t/new")
        assert lines[1].endswith("[Copy (dry-run)] /s/a.jpg -> /t/new/a.jpg")

    def test_dry_run_cancelled_title(self, temp_dir):
        path = os.path.join(temp_dir, "report.txt")
        run = RunResult(stats=ProcessingStats(), dry_run=True, cancelled=True, elapsed_time=1.5)

        with OperationReport(create_logger(path)) as report:
            report.write_summary(run)

        lines = read_lines(path)
        assert lines[0].endswith("Summary (dry run), cancelled")
        assert lines[-1].endswith("Duration:  1.5s")
