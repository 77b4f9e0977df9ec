"""Error kinds raised by qimage.

Every failure carries an :class:`ErrorKind` so callers can branch on the kind
without matching message text. Tool diagnostics are kept verbatim (collapsed
to one line) in ``diagnostic``.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(Enum):
    """Kind of failure."""

    CONFIGURATION = "configuration"
    NOT_FOUND = "not-found"
    EXTERNAL_TOOL = "external-tool"
    MALFORMED_OUTPUT = "malformed-output"
    SNAPSHOT_LOOKUP = "snapshot-lookup"


class QImageError(Exception):
    """Base exception for all qimage errors."""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.message = message
        self.diagnostic = diagnostic


class ConfigurationError(QImageError, ValueError):
    """Raised when an image configuration is invalid or incomplete.

    ``descriptor`` holds the descriptor that was built before the problem was
    detected, if any.
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(self, message: str, descriptor: Optional[Any] = None):
        super().__init__(message)
        self.descriptor = descriptor


class NotFoundError(QImageError, FileNotFoundError):
    """Raised when an image or backing file does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class ExternalToolError(QImageError):
    """Raised when qemu-img exits with a non-zero status."""

    kind = ErrorKind.EXTERNAL_TOOL

    def __init__(
        self,
        operation: str,
        diagnostic: str,
        returncode: Optional[int] = None,
    ):
        super().__init__(f"'qemu-img {operation}' output: {diagnostic}", diagnostic)
        self.operation = operation
        self.returncode = returncode


class MalformedOutputError(QImageError):
    """Raised when qemu-img output does not have the expected shape."""

    kind = ErrorKind.MALFORMED_OUTPUT


class SnapshotLookupError(QImageError, LookupError):
    """Raised when a named snapshot cannot be found."""

    kind = ErrorKind.SNAPSHOT_LOOKUP

    def __init__(self, message: str, name: str = ""):
        super().__init__(message)
        self.name = name
