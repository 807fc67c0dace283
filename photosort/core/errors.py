"""Exception types for PhotoSort."""

from typing import Optional


class PhotoSortError(Exception):
    """Base error for the project."""


class ConfigurationError(PhotoSortError):
    """Invalid settings; raised before any file is touched."""


class TemplateSyntaxError(PhotoSortError):
    """A format string could not be compiled.

    Attributes:
        template: The offending format string.
        position: Character offset of the problem, if known.
    """

    def __init__(self, message: str, template: str = "", position: Optional[int] = None):
        self.template = template
        self.position = position
        if template:
            where = f" at position {position}" if position is not None else ""
            message = f"{message}{where} in format string {template!r}"
        super().__init__(message)


class MetadataUnavailable(PhotoSortError):
    """Embedded metadata could not be read for a file."""


class DuplicatePathExhausted(PhotoSortError):
    """No free destination could be found for a skeleton."""


class FilesystemOperationError(PhotoSortError):
    """A per-file filesystem operation failed.

    Attributes:
        path: Path the operation failed on.
        cause: Underlying OSError, if any.
    """

    def __init__(self, message: str, path: str = "", cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        super().__init__(message)


class MissingParentDirectory(FilesystemOperationError):
    """The destination's parent directory does not exist and mkdir is off."""

    def __init__(self, path: str):
        super().__init__(
            f"Target directory does not exist (use --mkdir to create it): {path}",
            path=path,
        )
