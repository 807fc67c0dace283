"""Pytest configuration and fixtures."""

import os
import tempfile
import shutil
from datetime import datetime
from typing import Dict, Generator, Optional

import pytest

from photosort.core.errors import MetadataUnavailable
from photosort.core.metadata import MetadataExtractor
from photosort.core.models import ExtractedMetadata


class FakeExtractor(MetadataExtractor):
    """In-memory metadata backend keyed by file name.

    Files without an entry have no timestamp; entries set to None raise
    MetadataUnavailable. Calls are counted per path.
    """

    def __init__(self, entries: Optional[Dict[str, Optional[dict]]] = None):
        self.entries = entries or {}
        self.calls: Dict[str, int] = {}
        self.closed = False

    def extract(self, path: str) -> ExtractedMetadata:
        self.calls[path] = self.calls.get(path, 0) + 1
        name = os.path.basename(path)
        if name in self.entries and self.entries[name] is None:
            raise MetadataUnavailable(f"Could not read metadata from {path}")
        entry = self.entries.get(name, {})
        return ExtractedMetadata(timestamp=entry.get("timestamp"), tags=entry.get("tags", {}))

    def close(self) -> None:
        self.closed = True


def write_file(path: str, data: bytes = b"fake image data") -> str:
    """Create a file (and its directory) with some content."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    return path


def sony_tags(index: int, model: str = "ILCE-7M3") -> dict:
    """Tag dict of a Sony shot with the given sequence number."""
    return {
        "EXIF:Make": "SONY",
        "EXIF:Model": model,
        "MakerNotes:SequenceNumber": index,
    }


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir)


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def sample_tree(temp_dir: str) -> str:
    """Create a source tree for testing.

    Structure:
        temp_dir/
        ├── source/
        │   ├── IMG_20230101_120000.jpg
        │   ├── holiday.png
        │   ├── VID_20220704_200000.mp4
        │   ├── notes.txt
        │   └── sub/
        │       └── 2021-05-06 beach.jpg
        └── target/ (not created)
    """
    source = os.path.join(temp_dir, "source")
    write_file(os.path.join(source, "IMG_20230101_120000.jpg"), b"jpg one")
    write_file(os.path.join(source, "holiday.png"), b"png data")
    write_file(os.path.join(source, "VID_20220704_200000.mp4"), b"video data")
    write_file(os.path.join(source, "notes.txt"), b"text")
    write_file(os.path.join(source, "sub", "2021-05-06 beach.jpg"), b"jpg two")
    return temp_dir


@pytest.fixture
def exif_date() -> datetime:
    return datetime(2023, 6, 15, 8, 0, 0)
