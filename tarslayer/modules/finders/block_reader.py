# block_reader.py
# Fixed 512-byte block reads over any readable byte source

from typing import BinaryIO, Optional

from tarslayer.modules.errors import ArchiveIOError, TruncatedArchiveError
from tarslayer.modules.finders.tar_parser import BLOCK_SIZE, is_zero_block


class BlockReader:
    """
    Reads whole 512-byte blocks and tracks the end-of-archive sentinel.

    Usage:
        reader = BlockReader(stream)
        while True:
            block = reader.next_block()
            if block is None:
                break  # end of stream, or archive end already reached
            if is_zero_block(block):
                if reader.is_archive_end():
                    break
                continue
            # decode header...
    """

    SENTINEL_BLOCKS = 2

    def __init__(self, source: BinaryIO):
        self.source = source
        self.offset = 0             # Byte offset of the next read
        self.last_block_offset = 0  # Offset of the block most recently returned
        self.zero_blocks = 0        # Consecutive all-zero header blocks seen

    def _read_exact(self) -> Optional[bytes]:
        """
        Read exactly one block, looping over short reads.

        Returns None at a clean end of stream (no bytes at all).
        """
        chunks = []
        remaining = BLOCK_SIZE
        while remaining > 0:
            try:
                data = self.source.read(remaining)
            except OSError as e:
                raise ArchiveIOError(f"read failed: {e}", self.offset) from e
            if not data:
                break
            chunks.append(data)
            remaining -= len(data)

        if remaining == BLOCK_SIZE:
            return None
        if remaining > 0:
            raise TruncatedArchiveError(
                f"short read: got {BLOCK_SIZE - remaining} of {BLOCK_SIZE} bytes",
                self.offset,
            )

        self.last_block_offset = self.offset
        self.offset += BLOCK_SIZE
        return b"".join(chunks)

    def next_block(self) -> Optional[bytes]:
        """
        Read the next header position block and update the sentinel counter.

        Returns None at end of stream. Never reads past the terminator.
        """
        if self.is_archive_end():
            return None
        block = self._read_exact()
        if block is None:
            return None
        if is_zero_block(block):
            self.zero_blocks += 1
        else:
            self.zero_blocks = 0
        return block

    def read_block(self) -> bytes:
        """Read one body block; the stream must not end here."""
        block = self._read_exact()
        if block is None:
            raise TruncatedArchiveError("archive ended inside an entry body", self.offset)
        return block

    def is_archive_end(self) -> bool:
        return self.zero_blocks >= self.SENTINEL_BLOCKS
