"""Bracket (burst / exposure sequence) detection for PhotoSort.

Cameras mark the shots of one bracketing sequence in their maker notes. A
VendorRegistry turns those tags into BracketTag objects and BracketGrouper
collects consecutive tagged files into BracketUnits.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from photosort.core.config import AnalysisMode
from photosort.core.errors import MetadataUnavailable
from photosort.core.metadata import MetadataExtractor
from photosort.core.models import BracketTag, BracketUnit, MediaType, SourceFile

logger = logging.getLogger(__name__)

# (file, raw tags) -> BracketTag or None
TagParser = Callable[[SourceFile, Dict[str, Any]], Optional[BracketTag]]

# Sony writes 65535 when the sequence number is not applicable
_SONY_MAX_SEQUENCE = 65534


def tag_value(tags: Dict[str, Any], name: str) -> Any:
    """Look up a tag by name regardless of its group prefix."""
    if name in tags:
        return tags[name]
    suffix = ":" + name
    for key, value in tags.items():
        if key.endswith(suffix):
            return value
    return None


def parse_sony(file: SourceFile, tags: Dict[str, Any]) -> Optional[BracketTag]:
    """Parse the Sony maker-note SequenceNumber (tag 0xb04a).

    The sequence id is the file's directory plus the camera model, so two
    cameras shooting into one folder never merge their sequences.
    """
    make = tag_value(tags, "Make")
    if not isinstance(make, str) or not make.strip().upper().startswith("SONY"):
        return None

    try:
        index = int(tag_value(tags, "SequenceNumber"))
    except (TypeError, ValueError):
        return None
    if not 1 <= index <= _SONY_MAX_SEQUENCE:
        return None

    model = tag_value(tags, "Model") or ""
    return BracketTag(vendor="sony", sequence_id=(file.directory, str(model)), index=index)


class VendorRegistry:
    """Maps vendor ids to maker-note tag parsers.

    Usage:
        registry = VendorRegistry.default()
        registry.register("canon", parse_canon)
    """

    def __init__(self):
        self._parsers: Dict[str, TagParser] = {}

    @classmethod
    def default(cls) -> "VendorRegistry":
        registry = cls()
        registry.register("sony", parse_sony)
        return registry

    def register(self, vendor: str, parser: TagParser) -> None:
        self._parsers[vendor] = parser

    def unregister(self, vendor: str) -> None:
        self._parsers.pop(vendor, None)

    @property
    def vendors(self) -> List[str]:
        return list(self._parsers)

    def parse(self, file: SourceFile, tags: Dict[str, Any]) -> Optional[BracketTag]:
        """Return the first tag any registered parser recognises."""
        for parser in self._parsers.values():
            tag = parser(file, tags)
            if tag is not None:
                return tag
        return None


class BracketGrouper:
    """Groups consecutive files of one bracketing sequence.

    Single left-to-right pass. A file continues the open unit when its tag
    has the same vendor and sequence id as the previous member and a strictly
    greater index; anything else closes the unit.

    Args:
        extractor: Metadata backend used when a file has no cached metadata.
        registry: Vendor parsers, defaults to VendorRegistry.default().
    """

    def __init__(
        self,
        extractor: Optional[MetadataExtractor] = None,
        registry: Optional[VendorRegistry] = None,
    ):
        self._extractor = extractor
        self._registry = registry or VendorRegistry.default()

    def tag_for(self, file: SourceFile) -> Optional[BracketTag]:
        """Parse the bracket tag of a file, None if it has none."""
        if file.media_type is not MediaType.IMAGE:
            return None
        if self._extractor is None and not file.metadata_loaded:
            return None
        try:
            metadata = file.get_metadata(self._extractor)
        except MetadataUnavailable:
            return None
        return self._registry.parse(file, metadata.tags)

    def group(self, files: Iterable[SourceFile]) -> List[BracketUnit]:
        """Split files (in scan order) into units.

        Every input file appears in exactly one unit, in input order. Units
        with two or more members get a running group_index.
        """
        units: List[BracketUnit] = []
        current: Optional[BracketUnit] = None

        for file in files:
            tag = self.tag_for(file)
            if current is not None and tag is not None and _continues(current, tag):
                current.members.append(file)
                current.tags.append(tag)
                continue

            current = BracketUnit(
                members=[file],
                tags=[tag],
                vendor=tag.vendor if tag else None,
            )
            units.append(current)
            if tag is None:
                # An untagged file never opens a sequence
                current = None

        group_index = 0
        for unit in units:
            if unit.is_bracket:
                unit.group_index = group_index
                group_index += 1
                logger.debug(
                    f"Bracket group {unit.group_index}: {len(unit)} files "
                    f"({unit.members[0].filename} .. {unit.members[-1].filename})"
                )
        return units


def _continues(unit: BracketUnit, tag: BracketTag) -> bool:
    last = unit.tags[-1]
    return (
        last is not None
        and last.vendor == tag.vendor
        and last.sequence_id == tag.sequence_id
        and tag.index > last.index
    )


def assign_representative_dates(units: Iterable[BracketUnit], resolver, mode: AnalysisMode) -> None:
    """Set each bracket unit's date from its first member.

    Args:
        units: Units produced by BracketGrouper.group().
        resolver: DateResolver used for the first member.
        mode: Analysis mode of the run.
    """
    for unit in units:
        if unit.is_bracket:
            unit.representative_date = resolver.resolve(unit.members[0], mode)
