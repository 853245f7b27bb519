from .destinations import (
    Destination,
    EntryHandle,
    NullDestination,
    NullFile,
    MemoryDestination,
    MemoryFile,
)
from .filesystem import FileSystemDestination, FileHandle, DirectoryHandle
