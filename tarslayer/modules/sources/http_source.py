# http_source.py
# Readable byte stream over HTTP Range requests
#
# Lets an archive be decoded straight from a URL: parse_tar() pulls 512-byte
# blocks through read(), which fetches the blob chunk by chunk as needed.

import sys
from typing import BinaryIO, Iterator, Optional, Union

import requests

from tarslayer.config import DEFAULT_CHUNK_SIZE, HTTP_TIMEOUT
from tarslayer.modules.errors import ArchiveIOError


class HttpArchiveSource:
    """
    Fetches an archive in chunks using HTTP Range requests.

    Servers that ignore Range and answer 200 are read as a single streamed
    response instead.

    Usage:
        with HttpArchiveSource(url) as source:
            parse_tar(source, destination)
    """

    def __init__(
        self,
        url: str,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        timeout: int = HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.chunk_size = chunk_size
        self.timeout = timeout
        self.session = session or requests.Session()
        self._owns_session = session is None
        self.current_offset = 0
        self.bytes_downloaded = 0
        self.total_size = 0  # Set after first request from Content-Range
        self.exhausted = False
        self._buffer = b""
        self._stream: Optional[requests.Response] = None
        self._stream_iter: Optional[Iterator[bytes]] = None

    def fetch_chunk(self) -> bytes:
        """
        Fetch the next chunk of data. Returns empty bytes once exhausted.

        Raises ArchiveIOError on transport or HTTP errors.
        """
        if self.exhausted:
            return b""
        if self._stream_iter is not None:
            return self._next_streamed()

        end_offset = self.current_offset + self.chunk_size - 1
        headers = {"Range": f"bytes={self.current_offset}-{end_offset}"}

        try:
            resp = self.session.get(self.url, headers=headers, stream=True, timeout=self.timeout)

            # 416 means range not satisfiable (past end of file)
            if resp.status_code == 416:
                resp.close()
                self.exhausted = True
                return b""

            resp.raise_for_status()

            if resp.status_code == 200:
                if self.current_offset:
                    resp.close()
                    raise ArchiveIOError(
                        "server stopped honouring range requests", self.current_offset
                    )
                self._stream = resp
                self._stream_iter = resp.iter_content(self.chunk_size)
                return self._next_streamed()

            # Content-Range format: "bytes 0-65535/12345678"
            content_range = resp.headers.get("Content-Range", "")
            if "/" in content_range:
                total = content_range.split("/")[-1]
                if total.isdigit():
                    self.total_size = int(total)

            data = resp.content
            resp.close()
        except requests.RequestException as e:
            raise ArchiveIOError(f"error fetching {self.url}: {e}", self.current_offset) from e

        if not data:
            self.exhausted = True
            return b""

        self.bytes_downloaded += len(data)
        self.current_offset += len(data)

        if self.total_size and self.current_offset >= self.total_size:
            self.exhausted = True

        return data

    def _next_streamed(self) -> bytes:
        try:
            data = next(self._stream_iter, b"")
        except requests.RequestException as e:
            raise ArchiveIOError(f"error reading {self.url}: {e}", self.current_offset) from e
        if not data:
            self.exhausted = True
            return b""
        self.bytes_downloaded += len(data)
        self.current_offset += len(data)
        return data

    def read(self, size: int = -1) -> bytes:
        """Return up to size bytes; fewer only at end of stream."""
        if size is None or size < 0:
            while not self.exhausted:
                self._buffer += self.fetch_chunk()
            data, self._buffer = self._buffer, b""
            return data

        while len(self._buffer) < size and not self.exhausted:
            self._buffer += self.fetch_chunk()
        data, self._buffer = self._buffer[:size], self._buffer[size:]
        return data

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
            self._stream_iter = None
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "HttpArchiveSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def open_archive_source(
    location: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: int = HTTP_TIMEOUT,
) -> Union[HttpArchiveSource, BinaryIO]:
    """
    Open an archive by URL, local path, or "-" for stdin.

    The caller closes the returned object (all variants are context managers).
    """
    if is_url(location):
        return HttpArchiveSource(location, chunk_size=chunk_size, timeout=timeout)
    if location == "-":
        return open(sys.stdin.fileno(), "rb", closefd=False)
    try:
        return open(location, "rb")
    except OSError as e:
        raise ArchiveIOError(f"unable to open archive {location}: {e}") from e
