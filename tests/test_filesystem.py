"""
Tests for the filesystem facade.

End-to-end behaviour of create/open/mkdirs/delete/rename/list over the
in-memory Swift server, including working-directory resolution.
"""
from __future__ import annotations

import os
import tempfile

import pytest

from swiftfs.errors import (
    SwiftNotFound,
    SwiftOperationFailed,
    SwiftPartialRename,
    SwiftUnsupportedFeature,
)
from swiftfs.filesystem import SwiftFileSystem

from tests.fakes.fake_swift import FakeSwiftServer


def _write(fs, path, data, **kwargs):
    with fs.create(path, **kwargs) as out:
        out.write(data)


def _paths(statuses):
    return sorted(status.path for status in statuses)


class TestConstruction:
    """Test binding and working directory."""

    def test_initialize_from_configuration(self, swift_server):
        conf = {
            "fs.swift.service.local.auth.url": FakeSwiftServer.auth_url,
            "fs.swift.service.local.username": "user",
            "fs.swift.service.local.password": "secret",
        }
        with SwiftFileSystem.initialize("swift://local/", conf, transport=swift_server.transport()) as fs:
            assert fs.uri == "swift://local"
            assert fs.working_directory == "/user/user"
            assert fs.list_status("/") == []

    def test_from_env(self, swift_server):
        with SwiftFileSystem.from_env("swift://local/", transport=swift_server.transport()) as fs:
            assert fs.settings.username == "user"

    def test_relative_paths_use_working_directory(self, fs, swift_server):
        _write(fs, "notes.txt", b"n")
        assert swift_server.get_object("local", "user/user/notes.txt").data == b"n"

        fs.set_working_directory("/projects")
        assert fs.make_absolute("a/b") == "/projects/a/b"

    def test_unsafe_path_rejected(self, fs):
        with pytest.raises(ValueError, match="unsafe path"):
            fs.get_file_status("/../etc/passwd")


class TestEndToEnd:
    """Walk a file through create, rename, stat and delete."""

    def test_create_rename_delete(self, fs, swift_server):
        _write(fs, "/a/b/c", b"hello")
        assert fs.is_directory("/a")
        assert fs.is_directory("/a/b")
        assert fs.is_file("/a/b/c")

        assert fs.rename("/a/b", "/a/d") is True
        status = fs.get_file_status("/a/d/c")
        assert status.length == 5
        assert not fs.exists("/a/b")
        assert not fs.exists("/a/b/c")

        with fs.open("/a/d/c") as source:
            assert source.read() == b"hello"

        assert fs.delete("/a/d", recursive=True) is True
        assert fs.list_status("/a") == []
        assert swift_server.keys("local") == ["a"]


class TestCreateAndOpen:
    """Test file creation and reads."""

    def test_create_makes_parents(self, fs, swift_server):
        _write(fs, "/x/y/z.txt", b"data")
        assert swift_server.keys("local") == ["x", "x/y", "x/y/z.txt"]

    def test_create_existing_without_overwrite(self, fs):
        _write(fs, "/a.txt", b"1")
        with pytest.raises(SwiftOperationFailed, match="already exists"):
            fs.create("/a.txt")

    def test_create_with_overwrite(self, fs):
        _write(fs, "/a.txt", b"first")
        _write(fs, "/a.txt", b"second", overwrite=True)
        with fs.open("/a.txt") as source:
            assert source.read() == b"second"

    def test_create_over_directory(self, fs):
        fs.mkdirs("/dir")
        with pytest.raises(SwiftOperationFailed, match="directory"):
            fs.create("/dir", overwrite=True)

    def test_multipart_file_round_trip(self, fs):
        data = b"0123456789" * 50
        _write(fs, "/big.bin", data, part_size=64)
        assert fs.get_file_status("/big.bin").length == len(data)
        with fs.open("/big.bin", window_size=100) as source:
            source.seek(250)
            assert source.read(20) == data[250:270]

    def test_open_missing(self, fs):
        with pytest.raises(SwiftNotFound):
            fs.open("/missing.txt")

    def test_open_directory(self, fs):
        fs.mkdirs("/dir")
        with pytest.raises(SwiftOperationFailed):
            fs.open("/dir")

    def test_append_unsupported(self, fs):
        with pytest.raises(SwiftUnsupportedFeature):
            fs.append("/a.txt")

    def test_statistics(self, fs):
        _write(fs, "/a.txt", b"12345")
        with fs.open("/a.txt") as source:
            source.read()
        assert fs.statistics.bytes_written == 5
        assert fs.statistics.bytes_read == 5

    def test_staging_defaults_to_temp_dir(self, settings, swift_server, tmp_path, monkeypatch):
        """Without a buffer dir, writes stage in the system temp directory."""
        monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
        with SwiftFileSystem(settings, transport=swift_server.transport()) as fs:
            out = fs.create("/a.txt")
            assert os.path.dirname(out.staging_file) == str(tmp_path)
            out.write(b"x")
            out.close()
        assert swift_server.get_object("local", "a.txt").data == b"x"


class TestDirectories:
    """Test mkdirs, listing and status."""

    def test_mkdirs_creates_ancestors(self, fs, swift_server):
        assert fs.mkdirs("/a/b/c") is True
        assert swift_server.keys("local") == ["a", "a/b", "a/b/c"]
        assert fs.mkdirs("/a/b/c") is True

    def test_mkdirs_over_file(self, fs):
        _write(fs, "/a/file", b"x")
        with pytest.raises(SwiftOperationFailed, match="it is a file"):
            fs.mkdirs("/a/file/sub")

    def test_list_status(self, fs):
        fs.mkdirs("/a/sub")
        _write(fs, "/a/f.txt", b"abc")
        statuses = fs.list_status("/a")
        assert _paths(statuses) == ["/a/f.txt", "/a/sub"]

    def test_list_status_of_file(self, fs):
        _write(fs, "/a.txt", b"abc")
        [status] = fs.list_status("/a.txt")
        assert status.path == "/a.txt"
        assert status.length == 3

    def test_list_status_of_missing_path(self, fs):
        assert fs.list_status("/nothing/here") == []

    def test_get_file_status_missing(self, fs):
        with pytest.raises(SwiftNotFound):
            fs.get_file_status("/missing")
        assert not fs.exists("/missing")
        assert not fs.is_file("/missing")
        assert not fs.is_directory("/missing")


class TestDelete:
    """Test file and directory deletion."""

    def test_delete_missing(self, fs):
        assert fs.delete("/missing") is False

    def test_delete_file(self, fs, swift_server):
        _write(fs, "/a.txt", b"x")
        assert fs.delete("/a.txt") is True
        assert swift_server.keys("local") == []

    def test_delete_non_empty_directory_requires_recursive(self, fs):
        _write(fs, "/d/a.txt", b"x")
        with pytest.raises(SwiftOperationFailed, match="not empty"):
            fs.delete("/d")
        assert fs.exists("/d/a.txt")

    def test_delete_empty_directory(self, fs, swift_server):
        fs.mkdirs("/d")
        assert fs.delete("/d") is True
        assert swift_server.keys("local") == []

    def test_delete_multipart_file_removes_parts(self, fs, swift_server):
        _write(fs, "/big.bin", b"x" * 50, part_size=20)
        assert len(swift_server.keys("local")) == 4

        assert fs.delete("/big.bin") is True
        assert swift_server.keys("local") == []


class TestRename:
    """Test rename outcomes."""

    def test_rename_file(self, fs):
        _write(fs, "/a.txt", b"x")
        assert fs.rename("/a.txt", "/b.txt") is True
        assert fs.is_file("/b.txt")
        assert not fs.exists("/a.txt")

    def test_rename_onto_itself(self, fs):
        _write(fs, "/a.txt", b"x")
        assert fs.rename("/a.txt", "/a.txt") is False
        assert fs.is_file("/a.txt")

    def test_rename_directory_onto_itself(self, fs, swift_server):
        _write(fs, "/a/b/c.txt", b"c")
        _write(fs, "/a/d.txt", b"d")
        before = swift_server.keys("local")

        assert fs.rename("/a", "/a") is False
        assert swift_server.keys("local") == before
        with fs.open("/a/b/c.txt") as source:
            assert source.read() == b"c"

    def test_rename_directory_onto_file_in_destination(self, fs, swift_server):
        """A file named like the source inside the destination is not replaced."""
        fs.mkdirs("/x/foo")
        _write(fs, "/x/foo/a.txt", b"a")
        fs.mkdirs("/y")
        _write(fs, "/y/foo", b"precious")

        assert fs.rename("/x/foo", "/y") is False
        assert swift_server.get_object("local", "y/foo").data == b"precious"
        assert fs.is_file("/x/foo/a.txt")

    def test_rename_multipart_file(self, fs, swift_server):
        _write(fs, "/m/big", b"0123456789", part_size=4)

        assert fs.rename("/m/big", "/m/moved") is True
        assert swift_server.keys("local") == ["m", "m/moved"]
        assert not fs.exists("/m/big")
        with fs.open("/m/moved") as source:
            assert source.read() == b"0123456789"

    def test_rename_directory_with_multipart_file(self, fs, swift_server):
        _write(fs, "/src/big", b"0123456789", part_size=4)
        _write(fs, "/src/small.txt", b"s")

        assert fs.rename("/src", "/dst") is True
        assert swift_server.keys("local") == ["dst", "dst/big", "dst/small.txt"]
        assert fs.get_file_status("/dst/big").length == 10
        with fs.open("/dst/big") as source:
            assert source.read() == b"0123456789"

    def test_rename_missing_source(self, fs):
        assert fs.rename("/missing", "/other") is False

    def test_rename_into_descendant(self, fs):
        fs.mkdirs("/a")
        assert fs.rename("/a", "/a/b") is False

    def test_rename_into_existing_directory(self, fs):
        _write(fs, "/a.txt", b"x")
        fs.mkdirs("/dir")
        assert fs.rename("/a.txt", "/dir") is True
        assert fs.is_file("/dir/a.txt")

    def test_partial_rename_propagates(self, fs, swift_server):
        _write(fs, "/src/a.txt", b"a")
        _write(fs, "/src/b.txt", b"b")
        swift_server.override_status("COPY", "src/b.txt", 500)

        with pytest.raises(SwiftPartialRename):
            fs.rename("/src", "/dst")


class TestBlockLocations:
    """Test host lookup for files."""

    def test_hosts_for_file(self, fs):
        _write(fs, "/a.txt", b"x")
        assert fs.get_file_block_locations("/a.txt") == ["node1.test", "node2.test"]

    def test_hosts_for_multipart_file(self, fs):
        _write(fs, "/big.bin", b"x" * 30, part_size=10)
        assert fs.get_file_block_locations("/big.bin") == ["node1.test", "node2.test"]

    def test_missing_file(self, fs):
        with pytest.raises(SwiftNotFound):
            fs.get_file_block_locations("/missing")
