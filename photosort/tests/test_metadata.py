"""Tests for photosort.core.metadata module."""

from datetime import datetime
from unittest.mock import Mock

import pytest

from photosort.core.errors import MetadataUnavailable
from photosort.core.metadata import (
    REQUESTED_TAGS,
    ExifToolExtractor,
    parse_exif_datetime,
    pick_timestamp,
    prefetch_metadata,
)
from photosort.core.models import ExtractedMetadata, SourceFile

from conftest import FakeExtractor


class TestParseExifDatetime:
    """Tests for parse_exif_datetime()."""

    @pytest.mark.parametrize("value,expected", [
        ("2023:06:15 08:00:00", datetime(2023, 6, 15, 8, 0, 0)),
        ("2023:06:15 08:00:00.123", datetime(2023, 6, 15, 8, 0, 0)),
        ("2023:06:15 08:00:00+02:00", datetime(2023, 6, 15, 8, 0, 0)),
        ("2023:06:15 08:00:00Z", datetime(2023, 6, 15, 8, 0, 0)),
        ("2023:06:15", datetime(2023, 6, 15)),
    ])
    def test_valid(self, value, expected):
        assert parse_exif_datetime(value) == expected

    @pytest.mark.parametrize("value", [
        "0000:00:00 00:00:00",
        "2023:02:30 10:00:00",
        "2023-06-15 08:00:00",
        "not a date",
        "",
        None,
        20230615,
    ])
    def test_invalid(self, value):
        assert parse_exif_datetime(value) is None


class TestPickTimestamp:
    """Tests for pick_timestamp()."""

    def test_priority(self):
        tags = {
            "EXIF:ModifyDate": "2023:01:03 00:00:00",
            "EXIF:CreateDate": "2023:01:02 00:00:00",
            "EXIF:DateTimeOriginal": "2023:01:01 00:00:00",
        }
        assert pick_timestamp(tags) == datetime(2023, 1, 1)

    def test_skips_zero_date(self):
        tags = {
            "EXIF:DateTimeOriginal": "0000:00:00 00:00:00",
            "EXIF:CreateDate": "2023:01:02 00:00:00",
        }
        assert pick_timestamp(tags) == datetime(2023, 1, 2)

    def test_quicktime(self):
        assert pick_timestamp({"QuickTime:CreateDate": "2022:07:04 20:00:00"}) == datetime(2022, 7, 4, 20)

    def test_other_group_fallback(self):
        assert pick_timestamp({"XMP:DateTimeOriginal": "2020:01:01 10:00:00"}) == datetime(2020, 1, 1, 10)

    def test_nothing(self):
        assert pick_timestamp({"SourceFile": "a.jpg"}) is None


class TestExifToolExtractor:
    """Tests for ExifToolExtractor with a mocked manager."""

    def test_extract(self):
        manager = Mock()
        manager.start.return_value = True
        manager.read_tags.return_value = {
            "SourceFile": "a.jpg",
            "EXIF:DateTimeOriginal": "2023:06:15 08:00:00",
            "EXIF:Make": "SONY",
        }
        extractor = ExifToolExtractor(manager)

        metadata = extractor.extract("a.jpg")

        assert metadata.timestamp == datetime(2023, 6, 15, 8)
        assert metadata.tags["EXIF:Make"] == "SONY"
        manager.read_tags.assert_called_once_with("a.jpg", REQUESTED_TAGS)

    def test_empty_read_is_unavailable(self):
        manager = Mock()
        manager.start.return_value = True
        manager.read_tags.return_value = {}

        with pytest.raises(MetadataUnavailable):
            ExifToolExtractor(manager).extract("a.jpg")

    def test_missing_exiftool_warns_once(self, caplog):
        manager = Mock()
        manager.start.return_value = False
        extractor = ExifToolExtractor(manager)

        with caplog.at_level("WARNING"):
            for _ in range(3):
                with pytest.raises(MetadataUnavailable):
                    extractor.extract("a.jpg")

        assert manager.start.call_count == 1
        assert len([r for r in caplog.records if "not available" in r.message]) == 1

    def test_extract_batch(self):
        manager = Mock()
        manager.start.return_value = True
        manager.read_tags_batch.return_value = [
            {"SourceFile": "a.jpg", "EXIF:CreateDate": "2023:01:01 00:00:00"},
            {},
        ]
        extractor = ExifToolExtractor(manager)

        results = extractor.extract_batch(["a.jpg", "b.jpg"])

        assert isinstance(results[0], ExtractedMetadata)
        assert results[0].timestamp == datetime(2023, 1, 1)
        assert isinstance(results[1], MetadataUnavailable)

    def test_extract_batch_chunks(self):
        manager = Mock()
        manager.start.return_value = True
        manager.read_tags_batch.side_effect = lambda paths, tags: [{"SourceFile": p} for p in paths]
        extractor = ExifToolExtractor(manager, batch_size=2)

        results = extractor.extract_batch(["a", "b", "c"])

        assert len(results) == 3
        assert manager.read_tags_batch.call_count == 2

    def test_extract_batch_without_exiftool(self):
        manager = Mock()
        manager.start.return_value = False

        results = ExifToolExtractor(manager).extract_batch(["a.jpg", "b.jpg"])

        assert all(isinstance(r, MetadataUnavailable) for r in results)
        manager.read_tags_batch.assert_not_called()

    def test_close_stops_manager(self):
        manager = Mock()
        with ExifToolExtractor(manager):
            pass
        manager.stop.assert_called_once()


class TestPrefetchMetadata:
    """Tests for prefetch_metadata()."""

    def test_caches_results_and_failures(self):
        extractor = FakeExtractor({
            "a.jpg": {"timestamp": datetime(2023, 1, 1)},
            "b.jpg": None,
        })
        files = [SourceFile("/x/a.jpg"), SourceFile("/x/b.jpg")]

        assert prefetch_metadata(files, extractor) == 2

        assert files[0].get_metadata(extractor).timestamp == datetime(2023, 1, 1)
        with pytest.raises(MetadataUnavailable):
            files[1].get_metadata(extractor)
        # Nothing was extracted a second time
        assert extractor.calls == {"/x/a.jpg": 1, "/x/b.jpg": 1}

    def test_skips_loaded_files(self):
        extractor = FakeExtractor()
        file = SourceFile("/x/a.jpg")
        file.set_metadata(ExtractedMetadata())

        assert prefetch_metadata([file], extractor) == 0
        assert extractor.calls == {}
