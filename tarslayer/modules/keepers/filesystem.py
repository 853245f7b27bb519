# filesystem.py
# Real filesystem destination
#
# Writes regular files and directories under a fixed base directory. Entry
# paths are confined to that directory: absolute names, ".." components and
# anything resolving outside of it are refused before touching disk.

import os
import threading
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Union

from tarslayer.modules.errors import (
    DestinationCommitError,
    DestinationOpenError,
    DestinationWriteError,
)
from tarslayer.modules.finders.tar_parser import EntryType, TarEntryFields, TarHeader


# Entry types that become regular files on disk
_FILE_TYPES = (EntryType.REGULAR_FILE, EntryType.CONTIGUOUS_FILE)


class FileHandle:
    """Open regular file being written."""

    def __init__(self, path: Path, fp: BinaryIO, fields: TarEntryFields):
        self.path = path
        self.fp = fp
        self.fields = fields

    def append(self, data: bytes) -> None:
        try:
            self.fp.write(data)
        except OSError as e:
            self.fp.close()
            raise DestinationWriteError(f"write to {self.path} failed: {e}") from e


class DirectoryHandle:
    """Directory entry; already created at open time, takes no content."""

    def __init__(self, path: Path, fields: TarEntryFields):
        self.path = path
        self.fields = fields

    def append(self, data: bytes) -> None:
        raise DestinationWriteError(f"unable to write content to directory {self.path}")


class FileSystemDestination:
    """
    Extracts entries below base_dir.

    Usage:
        dest = FileSystemDestination("./out")
        parse_tar(stream, dest)
    """

    def __init__(self, base_dir: Union[str, Path], use_metadata: bool = False):
        """
        Args:
            base_dir: Directory everything is extracted into (created if missing)
            use_metadata: Apply the archive's owner, group and mtime to created
                files and directories. Ownership is only changed when running
                as root. False keeps the invoking process's identity.
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.base_dir = self.base_dir.resolve()
        self.use_metadata = use_metadata
        self._lock = threading.Lock()
        self._directories: list[DirectoryHandle] = []

    def _target_path(self, name: str) -> Path:
        """Map an entry name to a path inside base_dir, or refuse it."""
        posix = PurePosixPath(name)
        if not name or posix.is_absolute() or ".." in posix.parts:
            raise DestinationOpenError(f"unsafe entry path: {name!r}")

        target = (self.base_dir.joinpath(*posix.parts)).resolve()
        common = os.path.commonpath([str(self.base_dir), str(target)])
        if common != str(self.base_dir):
            raise DestinationOpenError(f"entry path escapes {self.base_dir}: {name!r}")
        return target

    def open(self, fields: TarEntryFields, header: TarHeader) -> Union[FileHandle, DirectoryHandle]:
        target = self._target_path(fields.path)

        if fields.entry_type is EntryType.DIRECTORY:
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise DestinationOpenError(f"unable to create directory {target}: {e}") from e
            return DirectoryHandle(target, fields)

        if fields.entry_type in _FILE_TYPES:
            if target == self.base_dir:
                raise DestinationOpenError(f"entry has no file name: {fields.path!r}")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                fp = open(target, "wb")
            except OSError as e:
                raise DestinationOpenError(f"unable to create file {target}: {e}") from e
            return FileHandle(target, fp, fields)

        raise DestinationOpenError(
            f"unable to create {fields.entry_type.name.lower()} entry "
            f"{fields.path!r}: only files and directories are supported"
        )

    def commit(self, handle: Union[FileHandle, DirectoryHandle]) -> None:
        if isinstance(handle, DirectoryHandle):
            # Applied in finish(); later entries would reset the mtime and a
            # read-only mode would block writing them
            with self._lock:
                self._directories.append(handle)
            return

        try:
            with handle.fp:
                handle.fp.flush()
            self._apply_metadata(handle.path, handle.fields)
        except OSError as e:
            raise DestinationCommitError(f"unable to finalize {handle.path}: {e}") from e

    def abort(self, handle: Union[FileHandle, DirectoryHandle]) -> None:
        """Close a file that will not be committed; the partial file stays."""
        if isinstance(handle, FileHandle):
            handle.fp.close()

    def finish(self) -> None:
        """Apply mode (and metadata) to extracted directories, deepest first."""
        with self._lock:
            directories, self._directories = self._directories, []
        directories.sort(key=lambda h: len(h.path.parts), reverse=True)
        for handle in directories:
            try:
                self._apply_metadata(handle.path, handle.fields)
            except OSError as e:
                raise DestinationCommitError(f"unable to finalize {handle.path}: {e}") from e

    def _apply_metadata(self, path: Path, fields: TarEntryFields) -> None:
        if fields.mode:
            # Special bits only survive when archive metadata is trusted
            mask = 0o7777 if self.use_metadata else 0o777
            os.chmod(path, fields.mode & mask)
        if self.use_metadata:
            # Same rule as tarfile: only root may give files away
            if hasattr(os, "geteuid") and os.geteuid() == 0:
                uid, gid = self._resolve_owner(fields)
                os.chown(path, uid, gid)
            os.utime(path, (fields.mtime, fields.mtime))

    def _resolve_owner(self, fields: TarEntryFields) -> tuple[int, int]:
        """Prefer the archive's user/group names, fall back to numeric ids."""
        uid, gid = fields.uid, fields.gid
        try:
            import grp
            import pwd
        except ImportError:
            return uid, gid

        if fields.uname:
            try:
                uid = pwd.getpwnam(fields.uname).pw_uid
            except KeyError:
                pass
        if fields.gname:
            try:
                gid = grp.getgrnam(fields.gname).gr_gid
            except KeyError:
                pass
        return uid, gid
