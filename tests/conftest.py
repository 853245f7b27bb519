"""
Pytest fixtures for building tar archives in memory.

Valid archives come from the standard library tarfile writer (USTAR format);
malformed headers are assembled byte by byte with make_header().
"""
import io
import tarfile

import pytest


BLOCK = 512

LOREM = (
    b"Lorem ipsum dolor sit amet, consectetur adipiscing elit, sed do eiusmod\n"
    b"tempor incididunt ut labore et dolore magna aliqua.\n" * 20
    + b"END OF STRING\n"
)
DATA = b"nested data file\n"
SMALL = b"small\n"

SAMPLE_NAMES = [
    "./archive/",
    "./archive/lorem.txt",
    "./archive/nested/",
    "./archive/nested/data.txt",
    "./archive/small.txt",
]


def build_archive(members, fmt=tarfile.USTAR_FORMAT) -> bytes:
    """
    Build an archive from (name, content) pairs.

    content None makes a directory; bytes make a regular file. A TarInfo may
    be passed instead of a name for full control over the header.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w", format=fmt) as tar:
        for member, content in members:
            if isinstance(member, tarfile.TarInfo):
                info = member
            else:
                info = tarfile.TarInfo(member)
                info.mtime = 1700000000
                info.uname = "alice"
                info.gname = "staff"
                if content is None:
                    info.type = tarfile.DIRTYPE
                    info.mode = 0o755
                else:
                    info.mode = 0o644
            if content is None:
                tar.addfile(info)
            else:
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


def make_header(
    name=b"file.txt",
    size=b"00000000000\x00",
    typeflag=b"0",
    magic=b"ustar\x00",
    version=b"00",
    uname=b"alice\x00",
    gname=b"staff\x00",
    mode=b"0000644\x00",
    linkname=b"",
    prefix=b"",
) -> bytes:
    """Assemble a raw 512-byte header with a correct checksum."""
    header = bytearray(BLOCK)

    def put(offset, width, value):
        value = value[:width]
        header[offset:offset + len(value)] = value

    put(0, 100, name)
    put(100, 8, mode)
    put(108, 8, b"0001750\x00")
    put(116, 8, b"0001750\x00")
    put(124, 12, size)
    put(136, 12, b"14524360400\x00")
    put(156, 1, typeflag)
    put(157, 100, linkname)
    put(257, 6, magic)
    put(263, 2, version)
    put(265, 32, uname)
    put(297, 32, gname)
    put(345, 155, prefix)

    header[148:156] = b" " * 8
    checksum = sum(header)
    header[148:156] = b"%06o\x00 " % checksum
    return bytes(header)


def octal_size(n: int) -> bytes:
    return b"%011o\x00" % n


def padded(content: bytes) -> bytes:
    """Content followed by zero padding to a whole block."""
    remainder = len(content) % BLOCK
    return content + bytes(BLOCK - remainder if remainder else 0)


END = bytes(2 * BLOCK)


class RecordingDestination:
    """Destination that records every call it receives."""

    class Handle:
        def __init__(self, name):
            self.name = name
            self.chunks = []

        def append(self, data):
            self.chunks.append(bytes(data))

    def __init__(self):
        self.calls = []
        self.committed = []

    def open(self, fields, header):
        self.calls.append(("open", fields.name))
        return self.Handle(fields.name)

    def commit(self, handle):
        self.calls.append(("commit", handle.name))
        self.committed.append(handle)


@pytest.fixture
def sample_archive_bytes():
    """Archive with a directory tree: two dirs, three files."""
    return build_archive([
        ("./archive/", None),
        ("./archive/lorem.txt", LOREM),
        ("./archive/nested/", None),
        ("./archive/nested/data.txt", DATA),
        ("./archive/small.txt", SMALL),
    ])


@pytest.fixture
def sample_archive(sample_archive_bytes):
    return io.BytesIO(sample_archive_bytes)


@pytest.fixture
def sample_archive_file(tmp_path, sample_archive_bytes):
    path = tmp_path / "archive.tar"
    path.write_bytes(sample_archive_bytes)
    return path


@pytest.fixture
def recording_destination():
    return RecordingDestination()
