"""
Tests for the null, memory and filesystem destinations.
"""
import io
import os
import stat
import threading
import time
from unittest.mock import patch

import pytest

from tarslayer.modules.errors import (
    DestinationOpenError,
    DestinationWriteError,
    TruncatedArchiveError,
)
from tarslayer.modules.finders.decoder import parse_tar
from tarslayer.modules.finders.tar_parser import parse_tar_header
from tarslayer.modules.keepers import (
    DirectoryHandle,
    FileSystemDestination,
    MemoryDestination,
    NullDestination,
)
from tests.conftest import DATA, END, LOREM, SMALL, make_header, octal_size, padded


def fields_for(**kwargs):
    return parse_tar_header(make_header(**kwargs))


class TestNullDestination:

    def test_keeps_headers_only(self, sample_archive):
        destination = NullDestination()
        parse_tar(sample_archive, destination)
        entries = list(destination)
        assert len(entries) == 5
        assert entries[1].fields.size == len(LOREM)
        assert not hasattr(entries[1], "data")

    def test_append_is_noop(self):
        header, fields = fields_for()
        destination = NullDestination()
        handle = destination.open(fields, header)
        handle.append(b"ignored")
        destination.commit(handle)
        assert destination.names() == ["file.txt"]

    def test_entry_at(self):
        header, fields = fields_for()
        destination = NullDestination()
        destination.commit(destination.open(fields, header))
        assert destination.entry_at(0).name == "file.txt"
        assert destination.entry_at(1) is None


class TestMemoryDestination:

    def test_captures_content(self, sample_archive):
        destination = MemoryDestination()
        parse_tar(sample_archive, destination)
        assert destination.get("./archive/nested/data.txt").content == DATA
        assert destination.get("./archive/small.txt").content == SMALL
        assert destination.get("missing") is None

    def test_directories_have_no_content(self, sample_archive):
        destination = MemoryDestination()
        parse_tar(sample_archive, destination)
        assert destination.get("./archive/").content == b""

    def test_raw_header_retained(self):
        raw = make_header(name=b"keep.txt\x00", size=octal_size(2)) + padded(b"ok") + END
        destination = MemoryDestination()
        parse_tar(io.BytesIO(raw), destination)
        assert destination.get("keep.txt").header.raw == raw[:512]

    def test_snapshot_is_a_copy(self):
        header, fields = fields_for()
        destination = MemoryDestination()
        snapshot = destination.snapshot()
        destination.commit(destination.open(fields, header))
        assert snapshot == []
        assert len(destination) == 1

    def test_reader_thread_while_committing(self):
        destination = MemoryDestination()
        header, fields = fields_for()
        seen = []
        done = threading.Event()

        def watch():
            while not done.is_set():
                seen.append(len(destination.snapshot()))
                time.sleep(0.001)

        watcher = threading.Thread(target=watch)
        watcher.start()
        for _ in range(200):
            destination.commit(destination.open(fields, header))
        done.set()
        watcher.join()

        assert len(destination) == 200
        assert seen == sorted(seen)

    def test_to_dict(self):
        header, fields = fields_for(size=octal_size(3))
        handle = MemoryDestination().open(fields, header)
        handle.append(b"abc")
        assert handle.to_dict()["captured"] == 3


class TestFileSystemDestination:

    def test_extracts_tree(self, tmp_path, sample_archive):
        parse_tar(sample_archive, FileSystemDestination(tmp_path))

        files = sorted(
            os.path.relpath(os.path.join(root, name), tmp_path).split(os.sep)
            for root, _, names in os.walk(tmp_path)
            for name in names
        )
        assert files == [
            ["archive", "lorem.txt"],
            ["archive", "nested", "data.txt"],
            ["archive", "small.txt"],
        ]
        assert (tmp_path / "archive" / "lorem.txt").read_bytes() == LOREM

    def test_round_trip_truncates_to_declared_size(self, tmp_path):
        raw = make_header(name=b"exact.bin\x00", size=octal_size(5)) + b"12345" + b"X" * 507 + END
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert (tmp_path / "exact.bin").read_bytes() == b"12345"

    def test_creates_base_dir(self, tmp_path):
        base = tmp_path / "not" / "yet"
        FileSystemDestination(base)
        assert base.is_dir()

    def test_missing_parents_created(self, tmp_path):
        raw = make_header(name=b"a/b/c.txt\x00", size=octal_size(1)) + padded(b"c") + END
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert (tmp_path / "a" / "b" / "c.txt").read_bytes() == b"c"

    def test_permission_bits_applied(self, tmp_path):
        raw = make_header(name=b"run.sh\x00", mode=b"0000750\x00", size=octal_size(2)) + padded(b"#!") + END
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert stat.S_IMODE((tmp_path / "run.sh").stat().st_mode) == 0o750

    def test_setuid_dropped_without_metadata(self, tmp_path):
        raw = make_header(name=b"suid\x00", mode=b"0004755\x00") + END
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert stat.S_IMODE((tmp_path / "suid").stat().st_mode) == 0o755

    def test_use_metadata_applies_owner_and_mtime(self, tmp_path):
        raw = make_header(name=b"owned\x00", uname=b"\x00", gname=b"\x00") + END
        destination = FileSystemDestination(tmp_path, use_metadata=True)
        with patch("tarslayer.modules.keepers.filesystem.os.geteuid", return_value=0, create=True), \
                patch("tarslayer.modules.keepers.filesystem.os.chown") as chown:
            parse_tar(io.BytesIO(raw), destination)
        chown.assert_called_once_with(destination.base_dir / "owned", 0o1750, 0o1750)
        assert int((tmp_path / "owned").stat().st_mtime) == 0o14524360400

    def test_default_does_not_chown(self, tmp_path):
        raw = make_header(name=b"mine\x00") + END
        with patch("tarslayer.modules.keepers.filesystem.os.chown") as chown:
            parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        chown.assert_not_called()

    @pytest.mark.parametrize("name", [
        b"../escape.txt\x00",
        b"a/../../escape.txt\x00",
        b"/etc/passwd\x00",
        b"//abs.txt\x00",
    ])
    def test_path_traversal_refused(self, tmp_path, name):
        base = tmp_path / "base"
        raw = make_header(name=name, size=octal_size(4)) + padded(b"evil") + END
        with pytest.raises(DestinationOpenError):
            parse_tar(io.BytesIO(raw), FileSystemDestination(base))
        assert not (tmp_path / "escape.txt").exists()
        assert list(base.iterdir()) == []

    def test_symlinked_directory_escape_refused(self, tmp_path):
        base = tmp_path / "base"
        outside = tmp_path / "outside"
        base.mkdir()
        outside.mkdir()
        (base / "link").symlink_to(outside, target_is_directory=True)
        raw = make_header(name=b"link/payload\x00", size=octal_size(1)) + padded(b"x") + END
        with pytest.raises(DestinationOpenError):
            parse_tar(io.BytesIO(raw), FileSystemDestination(base))
        assert list(outside.iterdir()) == []

    @pytest.mark.parametrize("flag", [b"1", b"2", b"3", b"4", b"6", b"x", b"g"])
    def test_unsupported_types(self, tmp_path, flag):
        header, fields = fields_for(typeflag=flag, name=b"special\x00")
        with pytest.raises(DestinationOpenError, match="only files and directories"):
            FileSystemDestination(tmp_path).open(fields, header)

    def test_directory_handle_rejects_content(self, tmp_path):
        header, fields = fields_for(typeflag=b"5", name=b"dir/\x00")
        handle = FileSystemDestination(tmp_path).open(fields, header)
        assert isinstance(handle, DirectoryHandle)
        assert (tmp_path / "dir").is_dir()
        with pytest.raises(DestinationWriteError):
            handle.append(b"data")

    def test_existing_directory_is_fine(self, tmp_path):
        (tmp_path / "dir").mkdir()
        raw = make_header(name=b"dir/\x00", typeflag=b"5") + END
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert (tmp_path / "dir").is_dir()

    def test_file_handle_closed_after_commit(self, tmp_path):
        header, fields = fields_for(name=b"closed.txt\x00")
        destination = FileSystemDestination(tmp_path)
        handle = destination.open(fields, header)
        handle.append(b"")
        destination.commit(handle)
        assert handle.fp.closed

    def test_chown_skipped_when_not_root(self, tmp_path):
        raw = make_header(name=b"owned\x00") + END
        destination = FileSystemDestination(tmp_path, use_metadata=True)
        with patch("tarslayer.modules.keepers.filesystem.os.geteuid", return_value=1000, create=True), \
                patch("tarslayer.modules.keepers.filesystem.os.chown") as chown:
            result = parse_tar(io.BytesIO(raw), destination)
        chown.assert_not_called()
        assert result.entries_committed == 1
        assert int((tmp_path / "owned").stat().st_mtime) == 0o14524360400

    def test_directory_mode_applied(self, tmp_path):
        raw = make_header(name=b"dir/\x00", typeflag=b"5", mode=b"0000750\x00") + END
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert stat.S_IMODE((tmp_path / "dir").stat().st_mode) == 0o750

    def test_directory_mtime_applied_after_children(self, tmp_path):
        raw = (
            make_header(name=b"dir/\x00", typeflag=b"5", mode=b"0000755\x00")
            + make_header(name=b"dir/inner.txt\x00", size=octal_size(2)) + padded(b"in")
            + END
        )
        with patch("tarslayer.modules.keepers.filesystem.os.chown"):
            parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path, use_metadata=True))
        assert int((tmp_path / "dir").stat().st_mtime) == 0o14524360400

    def test_read_only_directory_still_receives_children(self, tmp_path):
        raw = (
            make_header(name=b"ro/\x00", typeflag=b"5", mode=b"0000555\x00")
            + make_header(name=b"ro/file.txt\x00", size=octal_size(2)) + padded(b"ok")
            + END
        )
        parse_tar(io.BytesIO(raw), FileSystemDestination(tmp_path))
        assert (tmp_path / "ro" / "file.txt").read_bytes() == b"ok"
        assert stat.S_IMODE((tmp_path / "ro").stat().st_mode) == 0o555
        os.chmod(tmp_path / "ro", 0o755)

    def test_truncated_body_closes_file(self, tmp_path):
        destination = FileSystemDestination(tmp_path)
        handles = []
        original_open = destination.open

        def tracking_open(fields, header):
            handle = original_open(fields, header)
            handles.append(handle)
            return handle

        destination.open = tracking_open
        raw = make_header(name=b"big.bin\x00", size=octal_size(2000)) + b"x" * 512
        with pytest.raises(TruncatedArchiveError):
            parse_tar(io.BytesIO(raw), destination)
        assert handles[0].fp.closed

    def test_abort_closes_file(self, tmp_path):
        header, fields = fields_for(name=b"partial.txt\x00")
        destination = FileSystemDestination(tmp_path)
        handle = destination.open(fields, header)
        handle.append(b"half")
        destination.abort(handle)
        assert handle.fp.closed
