"""Integration tests with real file operations.

These tests run whole sorting runs on a temporary tree (not mocked) with an
in-memory metadata backend, so ExifTool does not need to be installed.
"""

import os
from datetime import datetime, timedelta

import pytest

from photosort.core.config import ActionType, AnalysisMode, SorterSettings
from photosort.core.models import Outcome
from photosort.core.orchestrator import SortOrchestrator

from conftest import FakeExtractor, write_file


def snapshot(root):
    """Map of relative path -> content for every file below root."""
    result = {}
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            with open(path, "rb") as f:
                result[os.path.relpath(path, root)] = f.read()
    return result


@pytest.mark.integration
class TestFullWorkflow:
    """End-to-end runs over the sample tree."""

    def run(self, sample_tree, **kwargs):
        settings = SorterSettings(
            source_dirs=(os.path.join(sample_tree, "source"),),
            target_dir=os.path.join(sample_tree, "target"),
            **kwargs,
        )
        return SortOrchestrator(settings, extractor=FakeExtractor()).process()

    def test_name_analysis_move(self, sample_tree):
        result = self.run(
            sample_tree, recursive=True, mkdir=True, analysis_mode=AnalysisMode.ONLY_NAME,
            file_format="{date?%Y}/{type}{_:date}{-:name}{-:dup}.{ext}",
        )

        target = os.path.join(sample_tree, "target")
        assert sorted(snapshot(target)) == sorted([
            os.path.join("2021", "IMG_20210506-000000-beach.jpg"),
            os.path.join("2022", "MOV_20220704-200000-VID.mp4"),
            os.path.join("2023", "IMG_20230101-120000.jpg"),
            os.path.join("NODATE", "IMG_NODATE-holiday.png"),
        ])
        assert result.stats.succeeded == 4
        assert result.stats.no_date == 1
        # Ignored files stay behind
        assert snapshot(os.path.join(sample_tree, "source")) == {"notes.txt": b"text"}

    def test_dry_run_changes_nothing(self, sample_tree):
        before = snapshot(sample_tree)

        result = self.run(sample_tree, recursive=True, mkdir=True, dry_run=True)

        assert snapshot(sample_tree) == before
        assert not os.path.exists(os.path.join(sample_tree, "target"))
        assert result.dry_run
        assert all(r.outcome is Outcome.SUCCESS for r in result.results)
        assert len(result.results) == 4

    def test_dry_run_matches_real_run(self, sample_tree):
        planned = self.run(sample_tree, recursive=True, mkdir=True, dry_run=True, action=ActionType.COPY)
        actual = self.run(sample_tree, recursive=True, mkdir=True, action=ActionType.COPY)

        assert sorted(r.destination for r in planned.results) == sorted(r.destination for r in actual.results)

    def test_copy_keeps_sources(self, sample_tree):
        before = snapshot(os.path.join(sample_tree, "source"))

        self.run(sample_tree, recursive=True, mkdir=True, action=ActionType.COPY)

        assert snapshot(os.path.join(sample_tree, "source")) == before
        assert len(snapshot(os.path.join(sample_tree, "target"))) == 4

    def test_relative_symlinks(self, sample_tree):
        result = self.run(sample_tree, mkdir=True, action=ActionType.RELATIVE_SYMLINK)

        for r in result.results:
            assert os.path.islink(r.destination)
            assert not os.path.isabs(os.readlink(r.destination))
            assert os.path.samefile(r.destination, r.source)


@pytest.mark.integration
class TestSameNameInTwoSources:
    """Two sources holding a file of the same name and date."""

    def test_second_file_gets_counter(self, temp_dir, exif_date):
        first = os.path.join(temp_dir, "card1")
        second = os.path.join(temp_dir, "card2")
        target = os.path.join(temp_dir, "target")
        os.makedirs(target)
        write_file(os.path.join(first, "IMG_20230101_120000.jpg"), b"first")
        write_file(os.path.join(second, "IMG_20230101_120000.jpg"), b"second")
        settings = SorterSettings(
            source_dirs=(first, second), target_dir=target, file_format="{type}{_:date}{-:dup}",
        )
        extractor = FakeExtractor({"IMG_20230101_120000.jpg": {"timestamp": exif_date}})

        result = SortOrchestrator(settings, extractor=extractor).process()

        assert result.stats.succeeded == 2
        assert snapshot(target) == {
            "IMG_20230615-080000.jpg": b"first",
            "IMG_20230615-080000-1.jpg": b"second",
        }


@pytest.mark.integration
class TestIdempotence:
    """Sorting an already sorted directory changes nothing."""

    def test_rerun_in_place_skips_everything(self, temp_dir):
        folder = os.path.join(temp_dir, "photos")
        date = datetime(2023, 6, 15, 8, 0, 0)
        write_file(os.path.join(folder, "a.jpg"), b"a")
        write_file(os.path.join(folder, "b.jpg"), b"b")
        extractor = FakeExtractor({"a.jpg": {"timestamp": date}, "b.jpg": {"timestamp": date}})
        settings = SorterSettings(
            source_dirs=(folder,), target_dir=folder, file_format="{type}{_:date}{-:dup}.{ext}"
        )

        first = SortOrchestrator(settings, extractor=extractor).process()
        assert first.stats.succeeded == 2
        after_first = snapshot(folder)
        assert sorted(after_first) == ["IMG_20230615-080000-1.jpg", "IMG_20230615-080000.jpg"]

        extractor = FakeExtractor({
            "IMG_20230615-080000.jpg": {"timestamp": date},
            "IMG_20230615-080000-1.jpg": {"timestamp": date},
        })
        second = SortOrchestrator(settings, extractor=extractor).process()

        assert second.stats.skipped == 2
        assert second.stats.succeeded == 0
        assert snapshot(folder) == after_first


@pytest.mark.integration
class TestParallelRun:
    """Many workers never hand out the same destination."""

    @pytest.mark.parametrize("threads", [2, 8])
    def test_destinations_are_unique(self, temp_dir, threads):
        source = os.path.join(temp_dir, "source")
        target = os.path.join(temp_dir, "target")
        entries = {}
        base = datetime(2023, 6, 15, 8, 0, 0)
        for i in range(60):
            name = f"shot{i:03d}.jpg"
            write_file(os.path.join(source, name), name.encode())
            # Three distinct dates, twenty files each
            entries[name] = {"timestamp": base + timedelta(days=i % 3)}
        settings = SorterSettings(
            source_dirs=(source,), target_dir=target, mkdir=True, threads=threads,
            action=ActionType.COPY, analysis_mode=AnalysisMode.ONLY_EXIF,
            file_format="{date?%Y-%m-%d}/{dup?always}.{ext}",
        )

        result = SortOrchestrator(settings, extractor=FakeExtractor(entries)).process()

        destinations = [r.destination for r in result.results]
        assert result.stats.succeeded == 60
        assert len(set(destinations)) == 60
        files = snapshot(target)
        assert len(files) == 60
        for day in ("2023-06-15", "2023-06-16", "2023-06-17"):
            assert sorted(os.path.basename(p) for p in files if p.startswith(day)) == sorted(
                f"{n}.jpg" for n in range(20)
            )
        # Every source content arrived exactly once
        assert sorted(files.values()) == sorted(f"shot{i:03d}.jpg".encode() for i in range(60))
