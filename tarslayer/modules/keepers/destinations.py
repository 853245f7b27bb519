# destinations.py
# Where decoded entries go
#
# A destination opens a handle per entry, the decoder appends the entry body
# to it chunk by chunk, then hands it back to be committed. Any object with
# these three operations works; there is no shared base class to extend.

import threading
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Protocol

from tarslayer.modules.finders.tar_parser import TarEntryFields, TarHeader


class EntryHandle(Protocol):
    """Writable handle for one open entry."""

    def append(self, data: bytes) -> None: ...


class Destination(Protocol):
    """
    Receives decoded entries from parse_tar().

    Optional: abort(handle) for a handle that will never be committed, and
    finish() once the end-of-archive marker has been read.
    """

    def open(self, fields: TarEntryFields, header: TarHeader) -> Any: ...

    def commit(self, handle: Any) -> None: ...


# =============================================================================
# Null destination: keep headers, drop content
# =============================================================================

@dataclass
class NullFile:
    """Marker for an entry whose content is discarded."""
    header: TarHeader
    fields: TarEntryFields

    @property
    def name(self) -> str:
        return self.fields.name

    def append(self, data: bytes) -> None:
        pass


class NullDestination:
    """
    Destination that does not store file contents.

    Committed entries are kept in archive order so they can be listed.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: list[NullFile] = []

    def open(self, fields: TarEntryFields, header: TarHeader) -> NullFile:
        return NullFile(header=header, fields=fields)

    def commit(self, handle: NullFile) -> None:
        with self._lock:
            self._entries.append(handle)

    def entry_at(self, index: int) -> Optional[NullFile]:
        """Entry at index, or None past the end."""
        with self._lock:
            if index < len(self._entries):
                return self._entries[index]
            return None

    def names(self) -> list[str]:
        with self._lock:
            return [entry.name for entry in self._entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[NullFile]:
        with self._lock:
            return iter(list(self._entries))


# =============================================================================
# Memory destination: keep everything
# =============================================================================

@dataclass
class MemoryFile:
    """An entry captured in memory, content included."""
    name: str
    header: TarHeader
    fields: TarEntryFields
    data: bytearray = field(default_factory=bytearray)

    def append(self, data: bytes) -> None:
        self.data.extend(data)

    @property
    def content(self) -> bytes:
        return bytes(self.data)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization (content excluded)."""
        result = self.fields.to_dict()
        result["captured"] = len(self.data)
        return result


class MemoryDestination:
    """
    Destination that captures every entry and its content in memory.

    Trades memory for random access to decoded content. The log may be read
    from another thread while a decode is still committing into it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: list[MemoryFile] = []

    def open(self, fields: TarEntryFields, header: TarHeader) -> MemoryFile:
        return MemoryFile(name=fields.name, header=header, fields=fields)

    def commit(self, handle: MemoryFile) -> None:
        with self._lock:
            self._entries.append(handle)

    def snapshot(self) -> list[MemoryFile]:
        """Copy of the committed entries in commit order."""
        with self._lock:
            return list(self._entries)

    def get(self, name: str) -> Optional[MemoryFile]:
        """First committed entry with this name (or path)."""
        with self._lock:
            for entry in self._entries:
                if entry.name == name or entry.fields.path == name:
                    return entry
        return None

    def names(self) -> list[str]:
        with self._lock:
            return [entry.name for entry in self._entries]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[MemoryFile]:
        return iter(self.snapshot())
