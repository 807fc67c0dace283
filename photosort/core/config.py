"""Run configuration for PhotoSort.

A single immutable SorterSettings object is built once (by the CLI or by
library callers) and handed read-only to every pipeline stage.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

from photosort.core.errors import ConfigurationError

DEFAULT_DATE_FORMAT = "%Y%m%d-%H%M%S"
DEFAULT_FILE_FORMAT = "{type}{_:date}{-:name}{-:dup}.{ext}"
DEFAULT_EXTENSIONS = ("jpg", "jpeg", "png", "tiff", "heif", "heic", "avif", "webp")
DEFAULT_VIDEO_EXTENSIONS = ("mp4", "mov", "avi")


class AnalysisMode(Enum):
    """Priority policy between metadata-derived and name-derived dates."""

    ONLY_EXIF = "only_exif"
    ONLY_NAME = "only_name"
    EXIF_THEN_NAME = "exif_then_name"
    NAME_THEN_EXIF = "name_then_exif"

    @classmethod
    def parse(cls, text: str) -> "AnalysisMode":
        """Parse a mode name or one of its short aliases.

        Raises:
            ValueError: If the name is not recognised.
        """
        mode = _ANALYSIS_ALIASES.get(text.strip().lower())
        if mode is None:
            raise ValueError(
                f"Invalid analysis mode {text!r}. Possible values are "
                "only_exif, only_name, exif_then_name, name_then_exif"
            )
        return mode

    @property
    def uses_exif(self) -> bool:
        return self is not AnalysisMode.ONLY_NAME

    def __str__(self) -> str:
        return self.value


_ANALYSIS_ALIASES = {
    "only_exif": AnalysisMode.ONLY_EXIF,
    "exif": AnalysisMode.ONLY_EXIF,
    "only_name": AnalysisMode.ONLY_NAME,
    "name": AnalysisMode.ONLY_NAME,
    "exif_then_name": AnalysisMode.EXIF_THEN_NAME,
    "exif_name": AnalysisMode.EXIF_THEN_NAME,
    "name_then_exif": AnalysisMode.NAME_THEN_EXIF,
    "name_exif": AnalysisMode.NAME_THEN_EXIF,
}


class ActionType(Enum):
    """Filesystem operation applied to each file."""

    MOVE = "move"
    COPY = "copy"
    HARDLINK = "hardlink"
    RELATIVE_SYMLINK = "relative_symlink"
    ABSOLUTE_SYMLINK = "absolute_symlink"

    @classmethod
    def parse(cls, text: str) -> "ActionType":
        """Parse an action name or alias (hard, relsym, abssym).

        Raises:
            ValueError: If the name is not recognised.
        """
        action = _ACTION_ALIASES.get(text.strip().lower())
        if action is None:
            raise ValueError(
                f"Invalid action {text!r}. Possible values are "
                "move, copy, hardlink, relative_symlink, absolute_symlink"
            )
        return action

    @property
    def label(self) -> str:
        """Short label used in outcome lines."""
        return _ACTION_LABELS[self]

    def __str__(self) -> str:
        return self.value


_ACTION_ALIASES = {
    "move": ActionType.MOVE,
    "copy": ActionType.COPY,
    "hardlink": ActionType.HARDLINK,
    "hard": ActionType.HARDLINK,
    "relative_symlink": ActionType.RELATIVE_SYMLINK,
    "relsym": ActionType.RELATIVE_SYMLINK,
    "absolute_symlink": ActionType.ABSOLUTE_SYMLINK,
    "abssym": ActionType.ABSOLUTE_SYMLINK,
}

_ACTION_LABELS = {
    ActionType.MOVE: "Move",
    ActionType.COPY: "Copy",
    ActionType.HARDLINK: "Hardlink",
    ActionType.RELATIVE_SYMLINK: "RelSymlink",
    ActionType.ABSOLUTE_SYMLINK: "AbsSymlink",
}


def normalize_extensions(extensions: Iterable[str]) -> Tuple[str, ...]:
    """Lower-case extensions and strip leading dots and blanks.

    Example:
        >>> normalize_extensions([".JPG", " png", ""])
        ('jpg', 'png')
    """
    result = []
    for ext in extensions:
        ext = ext.strip().lstrip(".").lower()
        if ext and ext not in result:
            result.append(ext)
    return tuple(result)


@dataclass(frozen=True)
class SorterSettings:
    """Everything a sorting run needs to know.

    nodate_file_format falls back to file_format when not given. Files whose
    extension is in neither list are ignored unless unknown_file_format is set.
    """

    source_dirs: Tuple[str, ...]
    target_dir: str
    recursive: bool = False
    file_format: str = DEFAULT_FILE_FORMAT
    nodate_file_format: Optional[str] = None
    unknown_file_format: Optional[str] = None
    bracketed_file_format: Optional[str] = None
    date_format: str = DEFAULT_DATE_FORMAT
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    video_extensions: Tuple[str, ...] = DEFAULT_VIDEO_EXTENSIONS
    analysis_mode: AnalysisMode = AnalysisMode.EXIF_THEN_NAME
    action: ActionType = ActionType.MOVE
    dry_run: bool = False
    mkdir: bool = False
    threads: Optional[int] = None

    def __post_init__(self):
        # Accept lists and single strings from library callers.
        if isinstance(self.source_dirs, str):
            object.__setattr__(self, "source_dirs", (self.source_dirs,))
        else:
            object.__setattr__(self, "source_dirs", tuple(self.source_dirs))
        object.__setattr__(self, "extensions", normalize_extensions(self.extensions))
        object.__setattr__(self, "video_extensions", normalize_extensions(self.video_extensions))

    @property
    def effective_nodate_format(self) -> str:
        return self.nodate_file_format or self.file_format

    @property
    def workers(self) -> int:
        """Worker pool size; 1 means sequential processing."""
        return max(1, self.threads or 1)

    def validate(self) -> None:
        """Check the settings for errors that must stop the run.

        Raises:
            ConfigurationError: On the first problem found.
        """
        if not self.source_dirs:
            raise ConfigurationError("At least one source directory is required")
        for source in self.source_dirs:
            if not os.path.isdir(source):
                raise ConfigurationError(f"Source directory {source!r} does not exist")
        if not self.target_dir:
            raise ConfigurationError("A target directory is required")
        if os.path.exists(self.target_dir) and not os.path.isdir(self.target_dir):
            raise ConfigurationError(f"Target {self.target_dir!r} exists but is not a directory")

        overlap = set(self.extensions) & set(self.video_extensions)
        if overlap:
            raise ConfigurationError(
                "File has both photo and video extensions. Do not include the same "
                f"extension in both settings: {', '.join(sorted(overlap))}"
            )
        if self.threads is not None and self.threads < 1:
            raise ConfigurationError("Thread count must be at least 1")
