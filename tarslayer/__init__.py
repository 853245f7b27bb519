"""
tarslayer - streaming ustar archive decoder.

Decodes tar archives block by block and hands every entry to a destination:
a directory on disk, an in-memory capture, or a null sink for listings.
"""

from tarslayer.modules.errors import (
    TarError,
    ArchiveIOError,
    TruncatedArchiveError,
    HeaderDecodeError,
    InvalidMagicError,
    InvalidTextError,
    InvalidSizeError,
    InvalidTypeFlagError,
    ChecksumMismatchError,
    DestinationError,
    DestinationOpenError,
    DestinationWriteError,
    DestinationCommitError,
)
from tarslayer.modules.finders.tar_parser import (
    EntryType,
    TarHeader,
    TarEntryFields,
    decode_header,
    parse_tar_header,
)
from tarslayer.modules.finders.block_reader import BlockReader
from tarslayer.modules.finders.decoder import DecodeResult, parse_tar, list_files_in_tar
from tarslayer.modules.keepers import (
    FileSystemDestination,
    MemoryDestination,
    NullDestination,
)

__version__ = "0.1.0"
