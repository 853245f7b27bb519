# tar_parser.py
# ustar header decoding
#
# Decodes a single 512-byte tar header block into a TarHeader view and the
# typed TarEntryFields the rest of the pipeline works with.

from dataclasses import dataclass
from enum import Enum

from tarslayer.modules.errors import (
    ChecksumMismatchError,
    HeaderDecodeError,
    InvalidMagicError,
    InvalidSizeError,
    InvalidTextError,
    InvalidTypeFlagError,
)


BLOCK_SIZE = 512

# POSIX writes "ustar\0" + "00", old GNU tar writes "ustar " + " \0"
POSIX_MAGIC = b"ustar\x00"
GNU_MAGIC = b"ustar "
ACCEPTED_MAGIC = (POSIX_MAGIC, GNU_MAGIC)

ZERO_BLOCK = bytes(BLOCK_SIZE)

# Field name -> (start, end) byte offsets within the header block
#
# Tar header structure (POSIX ustar):
# - 0-99: filename (100 bytes, null-terminated)
# - 100-107: mode (8 bytes octal)
# - 108-115: uid (8 bytes octal)
# - 116-123: gid (8 bytes octal)
# - 124-135: size (12 bytes octal)
# - 136-147: mtime (12 bytes octal)
# - 148-155: checksum (8 bytes)
# - 156: typeflag (1 byte)
# - 157-256: linkname (100 bytes)
# - 257-262: magic "ustar\0" or "ustar " (6 bytes)
# - 263-264: version
# - 265-296: uname (32 bytes)
# - 297-328: gname (32 bytes)
# - 329-336: devmajor
# - 337-344: devminor
# - 345-499: prefix (155 bytes, for long filenames)
# - 500-511: padding
FIELDS = {
    "name": (0, 100),
    "mode": (100, 108),
    "uid": (108, 116),
    "gid": (116, 124),
    "size": (124, 136),
    "mtime": (136, 148),
    "chksum": (148, 156),
    "typeflag": (156, 157),
    "linkname": (157, 257),
    "magic": (257, 263),
    "version": (263, 265),
    "uname": (265, 297),
    "gname": (297, 329),
    "devmajor": (329, 337),
    "devminor": (337, 345),
    "prefix": (345, 500),
}

_OCTAL_DIGITS = b"01234567"


class EntryType(Enum):
    """Entry kinds, keyed by the type flag character."""
    REGULAR_FILE = "0"
    HARD_LINK = "1"
    SYMLINK = "2"
    CHAR_DEVICE = "3"
    BLOCK_DEVICE = "4"
    DIRECTORY = "5"
    FIFO = "6"
    CONTIGUOUS_FILE = "7"
    EXTENDED_HEADER = "x"
    GLOBAL_EXTENDED_HEADER = "g"

    @classmethod
    def from_flag(cls, flag: int) -> "EntryType":
        """Map the raw type flag byte; legacy NUL means regular file."""
        if flag == 0:
            return cls.REGULAR_FILE
        try:
            return cls(chr(flag))
        except ValueError:
            raise InvalidTypeFlagError(f"invalid typeflag byte {flag:#04x}") from None


# =============================================================================
# Field helpers
# =============================================================================

def _cstring(data: bytes, field: str) -> str:
    """Decode a NUL-terminated text field strictly."""
    end = data.find(b"\x00")
    if end < 0:
        raise InvalidTextError(field)
    try:
        return data[:end].decode("utf-8")
    except UnicodeDecodeError:
        raise InvalidTextError(field) from None


def _loose_string(data: bytes) -> str:
    """Decode a text field that may fill its whole width."""
    return data.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def _parse_size(data: bytes) -> int:
    """Parse the 12-byte size field as ASCII octal."""
    if data[:1] and data[0] & 0x80:
        raise InvalidSizeError("base-256 size fields are not supported")
    end = data.find(b"\x00")
    digits = (data if end < 0 else data[:end]).strip(b" ")
    if not digits or any(c not in _OCTAL_DIGITS for c in digits):
        raise InvalidSizeError(f"size field is not octal: {data!r}")
    return int(digits, 8)


def _parse_octal(data: bytes, default: int = 0) -> int:
    """Parse octal bytes to integer, handling edge cases."""
    if data[:1] and data[0] == 0x80:
        # GNU base-256 for numbers too large for octal
        return int.from_bytes(data[1:], "big")
    try:
        stripped = data.split(b"\x00", 1)[0].strip()
        if not stripped:
            return default
        return int(stripped, 8)
    except (ValueError, TypeError):
        return default


def is_zero_block(block: bytes) -> bool:
    """True for an all-zero sentinel block."""
    return block == ZERO_BLOCK


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class TarEntryFields:
    """Validated, string-decoded view of one header."""
    name: str
    uname: str
    gname: str
    size: int
    entry_type: EntryType
    # Metadata below is parsed leniently and never fails a decode
    mode: int = 0
    uid: int = 0
    gid: int = 0
    mtime: int = 0
    linkname: str = ""
    prefix: str = ""

    @property
    def path(self) -> str:
        """Full member path, joining the ustar prefix when present."""
        if self.prefix:
            return f"{self.prefix}/{self.name}"
        return self.name

    @property
    def is_dir(self) -> bool:
        return self.entry_type is EntryType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.entry_type is EntryType.SYMLINK

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "path": self.path,
            "uname": self.uname,
            "gname": self.gname,
            "size": self.size,
            "typeflag": self.entry_type.value,
            "mode": self.mode,
            "uid": self.uid,
            "gid": self.gid,
            "mtime": self.mtime,
            "linkname": self.linkname,
        }


@dataclass(frozen=True)
class TarHeader:
    """One raw 512-byte ustar header block."""
    raw: bytes

    def __post_init__(self):
        if len(self.raw) != BLOCK_SIZE:
            raise ValueError(f"tar header must be {BLOCK_SIZE} bytes, got {len(self.raw)}")

    def field(self, name: str) -> bytes:
        start, end = FIELDS[name]
        return self.raw[start:end]

    # --- strict accessors ---

    def name(self) -> str:
        return _cstring(self.field("name"), "name")

    def uname(self) -> str:
        return _cstring(self.field("uname"), "uname")

    def gname(self) -> str:
        return _cstring(self.field("gname"), "gname")

    def size(self) -> int:
        return _parse_size(self.field("size"))

    def entry_type(self) -> EntryType:
        return EntryType.from_flag(self.raw[156])

    # --- lenient accessors ---

    @property
    def magic(self) -> bytes:
        return self.field("magic")

    @property
    def version(self) -> bytes:
        return self.field("version")

    @property
    def mode(self) -> int:
        return _parse_octal(self.field("mode"))

    @property
    def uid(self) -> int:
        return _parse_octal(self.field("uid"))

    @property
    def gid(self) -> int:
        return _parse_octal(self.field("gid"))

    @property
    def mtime(self) -> int:
        return _parse_octal(self.field("mtime"))

    @property
    def chksum(self) -> int:
        return _parse_octal(self.field("chksum"), -1)

    @property
    def devmajor(self) -> int:
        return _parse_octal(self.field("devmajor"))

    @property
    def devminor(self) -> int:
        return _parse_octal(self.field("devminor"))

    @property
    def linkname(self) -> str:
        return _loose_string(self.field("linkname"))

    @property
    def prefix(self) -> str:
        return _loose_string(self.field("prefix"))

    # --- validation ---

    def validate_magic(self) -> None:
        if self.magic not in ACCEPTED_MAGIC:
            raise InvalidMagicError(f"invalid magic bytes {self.magic!r}")

    def compute_checksums(self) -> tuple[int, int]:
        """
        Recompute the header checksum with the chksum field read as spaces.

        Returns (unsigned, signed); historic writers summed signed chars.
        """
        blanked = self.raw[:148] + b" " * 8 + self.raw[156:]
        unsigned = sum(blanked)
        signed = sum(b - 256 if b > 127 else b for b in blanked)
        return unsigned, signed

    def validate_checksum(self) -> None:
        stored = self.chksum
        if stored not in self.compute_checksums():
            raise ChecksumMismatchError(
                f"header checksum mismatch: stored {stored}, "
                f"computed {self.compute_checksums()[0]}"
            )

    def casted_fields(self) -> TarEntryFields:
        """Decode the typed fields; raises HeaderDecodeError subclasses."""
        return TarEntryFields(
            name=self.name(),
            uname=self.uname(),
            gname=self.gname(),
            size=self.size(),
            entry_type=self.entry_type(),
            mode=self.mode,
            uid=self.uid,
            gid=self.gid,
            mtime=self.mtime,
            linkname=self.linkname,
            prefix=self.prefix,
        )


# =============================================================================
# Header decoding
# =============================================================================

def parse_tar_header(
    block: bytes,
    offset: int = 0,
    verify_checksum: bool = False,
) -> tuple[TarHeader, TarEntryFields]:
    """
    Decode a 512-byte header block.

    Magic is validated before any field is cast. The stored checksum is only
    compared when verify_checksum is set.

    Args:
        block: Exactly 512 bytes
        offset: Archive byte offset of the block, attached to errors
        verify_checksum: Reject headers whose checksum does not match

    Returns:
        (header, fields)
    """
    header = TarHeader(bytes(block))
    try:
        header.validate_magic()
        if verify_checksum:
            header.validate_checksum()
        fields = header.casted_fields()
    except HeaderDecodeError as e:
        e.offset = offset
        raise
    return header, fields


def decode_header(raw: bytes, offset: int = 0, verify_checksum: bool = False) -> TarEntryFields:
    """Decode only the typed fields of a header block."""
    return parse_tar_header(raw, offset, verify_checksum)[1]
