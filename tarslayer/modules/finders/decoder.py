# decoder.py
# Streaming ustar decode loop
#
# Pulls 512-byte blocks from a BlockReader, decodes each header, and streams
# the entry body to a destination one block at a time. Memory use stays at
# one block no matter how large an entry is.

from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Iterator, Optional

from tarslayer.modules.errors import ArchiveIOError, DestinationError
from tarslayer.modules.finders.block_reader import BlockReader
from tarslayer.modules.finders.tar_parser import BLOCK_SIZE, is_zero_block, parse_tar_header
from tarslayer.modules.keepers.destinations import Destination, NullDestination


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class DecodeResult:
    """Outcome of one parse_tar() call."""
    entries_committed: int = 0
    bytes_read: int = 0
    # Destination errors skipped over when strict=False
    errors: list[DestinationError] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "entries_committed": self.entries_committed,
            "bytes_read": self.bytes_read,
            "errors": [str(e) for e in self.errors],
        }


def body_block_count(size: int) -> int:
    """Blocks occupied by an entry body of the given declared size."""
    return (size + BLOCK_SIZE - 1) // BLOCK_SIZE


# =============================================================================
# Decode loop
# =============================================================================

def parse_tar(
    source: BinaryIO,
    destination: Destination,
    strict: bool = True,
    verify_checksum: bool = False,
    progress_callback: Optional[Callable[[str, int, int], None]] = None,
) -> DecodeResult:
    """
    Decode a ustar archive from source into destination.

    Stops after two consecutive all-zero blocks. Header errors always abort
    the whole decode; there is no resynchronisation to a later header.
    Entries committed before an error stay committed.

    Destinations may also define abort(handle), called for a handle that will
    never be committed, and finish(), called once after the end-of-archive
    marker.

    Args:
        source: Readable byte stream positioned at the first header
        destination: Object implementing open()/commit() (see destinations.py)
        strict: Abort on the first destination error. When False the error is
            recorded in the result, the rest of that entry's body is skipped
            and decoding continues with the next header.
        verify_checksum: Reject headers whose stored checksum does not match
        progress_callback: Optional callback(message, entries_committed, bytes_read)

    Returns:
        DecodeResult with entry count and stream position
    """
    reader = BlockReader(source)
    result = DecodeResult()

    while True:
        block = reader.next_block()
        if block is None:
            raise ArchiveIOError(
                "unexpected end of stream before end-of-archive marker",
                reader.offset,
            )

        if is_zero_block(block):
            if reader.is_archive_end():
                break
            continue

        header_offset = reader.last_block_offset
        header, fields = parse_tar_header(block, header_offset, verify_checksum)

        handle = None
        failed = False
        try:
            handle = destination.open(fields, header)
        except DestinationError as e:
            _annotate(e, header_offset)
            if strict:
                raise
            result.errors.append(e)
            failed = True

        remaining = fields.size
        try:
            for _ in range(body_block_count(fields.size)):
                body = reader.read_block()
                chunk = body[:min(BLOCK_SIZE, remaining)]
                remaining = max(remaining - BLOCK_SIZE, 0)
                if failed:
                    continue
                try:
                    handle.append(chunk)
                except DestinationError as e:
                    _annotate(e, reader.last_block_offset)
                    if strict:
                        raise
                    result.errors.append(e)
                    _abort(destination, handle)
                    failed = True
        except BaseException:
            # Handle never reaches commit; let the destination release it
            if not failed:
                _abort(destination, handle)
            raise

        if failed:
            continue

        try:
            destination.commit(handle)
        except DestinationError as e:
            _annotate(e, header_offset)
            if strict:
                raise
            result.errors.append(e)
            continue

        result.entries_committed += 1
        result.bytes_read = reader.offset
        if progress_callback:
            progress_callback(fields.name, result.entries_committed, reader.offset)

    result.bytes_read = reader.offset
    finish = getattr(destination, "finish", None)
    if finish is not None:
        try:
            finish()
        except DestinationError as e:
            if strict:
                raise
            result.errors.append(e)
    return result


def _annotate(error: DestinationError, offset: int) -> None:
    if error.offset is None:
        error.offset = offset


def _abort(destination: Destination, handle) -> None:
    """Release a handle that will never be committed (abort() is optional)."""
    abort = getattr(destination, "abort", None)
    if abort is not None and handle is not None:
        abort(handle)


# =============================================================================
# Enumeration
# =============================================================================

def list_files_in_tar(
    source: BinaryIO,
    strict: bool = True,
    verify_checksum: bool = False,
) -> Iterator[str]:
    """
    Names of every entry in archive order.

    The whole stream is decoded into a NullDestination first (errors surface
    here, not during iteration); names are then produced one at a time.
    Each call decodes from the stream's current position.
    """
    destination = NullDestination()
    parse_tar(source, destination, strict=strict, verify_checksum=verify_checksum)
    return _iter_names(destination)


def _iter_names(destination: NullDestination) -> Iterator[str]:
    index = 0
    while True:
        entry = destination.entry_at(index)
        if entry is None:
            return
        yield entry.name
        index += 1
