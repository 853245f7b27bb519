"""
Exception hierarchy for tarslayer.

Everything raised while decoding an archive inherits from ``TarError`` so a
caller can handle the whole error surface with a single ``except`` clause.
Each error carries the archive byte offset of the block that failed, when
known.
"""

from typing import Optional


class TarError(Exception):
    """Base exception for all archive decoding failures."""

    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.offset = offset

    def __str__(self) -> str:
        if self.offset is None:
            return self.message
        return f"{self.message} (at byte offset {self.offset})"


# =============================================================================
# Stream errors
# =============================================================================

class ArchiveIOError(TarError):
    """The underlying byte source failed or ended before the archive did."""


class TruncatedArchiveError(ArchiveIOError):
    """Fewer than 512 bytes were available for a block."""


# =============================================================================
# Header decode errors
# =============================================================================

class HeaderDecodeError(TarError):
    """A 512-byte header block could not be decoded."""


class InvalidMagicError(HeaderDecodeError):
    """Magic field is neither ``ustar\\0`` nor ``ustar ``."""


class InvalidTextError(HeaderDecodeError):
    """A text field has no NUL terminator or is not valid UTF-8."""

    def __init__(self, field: str, offset: Optional[int] = None):
        super().__init__(f"invalid text in header field '{field}'", offset)
        self.field = field


class InvalidSizeError(HeaderDecodeError):
    """The size field does not hold ASCII octal digits."""


class InvalidTypeFlagError(HeaderDecodeError):
    """The type flag byte is not a known entry type."""


class ChecksumMismatchError(HeaderDecodeError):
    """Stored header checksum differs from the recomputed one."""


# =============================================================================
# Destination errors
# =============================================================================

class DestinationError(TarError):
    """Base for failures reported by a destination."""


class DestinationOpenError(DestinationError):
    """The destination refused or failed to open an entry."""


class DestinationWriteError(DestinationError):
    """Appending content to an open entry failed."""


class DestinationCommitError(DestinationError):
    """Committing an open entry failed."""
