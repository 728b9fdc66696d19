"""
Tests for the object path mapper.

Covers path -> (container, key) mapping, equality on the serialized form,
slash handling when joining, whitespace encoding and URI validation.
"""
from __future__ import annotations

import pytest
from urllib.parse import urlsplit

from swiftfs.errors import SwiftError, SwiftInternalStateError
from swiftfs.storage.object_path import SwiftObjectPath, encode_key, join_paths, path_to_uri

ENDPOINT = "http://swift.test:8080/v1/AUTH_tenant1"


class TestSwiftObjectPath:
    """Test mapping hierarchical paths to object paths."""

    def test_container_from_uri_host(self):
        path = SwiftObjectPath.from_path("swift://data/", "/logs/1.txt")
        assert path.container == "data"
        assert path.object == "/logs/1.txt"
        assert path.key == "logs/1.txt"

    def test_explicit_container_wins(self):
        path = SwiftObjectPath.from_path("swift://data/", "/logs/1.txt", container="bucket")
        assert path.container == "bucket"

    def test_full_uri_reduced_to_path(self):
        path = SwiftObjectPath.from_path("swift://data/", "swift://data/logs/1.txt")
        assert path.object == "/logs/1.txt"

    def test_auth_segment_stripped(self):
        path = SwiftObjectPath.from_path("swift://data/", "/v1/AUTH_abc123/logs/1.txt")
        assert path.object == "logs/1.txt"
        assert path.to_uri_path() == "data/logs/1.txt"

    def test_equal_when_serialized_form_matches(self):
        """Different splits that serialize identically are equal and hash equal."""
        a = SwiftObjectPath("data", "/a/b")
        b = SwiftObjectPath("data/", "a/b")
        c = SwiftObjectPath("data", "a/b")
        assert a == b == c
        assert hash(a) == hash(b) == hash(c)
        assert len({a, b, c}) == 1

    def test_not_equal_to_other_types(self):
        assert SwiftObjectPath("data", "/a") != "data/a"

    def test_repr_and_str(self):
        path = SwiftObjectPath("data", "/a")
        assert str(path) == "data/a"
        assert "container='data'" in repr(path)


class TestJoinPaths:
    """Exactly one separator between the parts, whatever either side has."""

    @pytest.mark.parametrize("left,right", [
        ("http://h/v1", "c/o"),
        ("http://h/v1/", "c/o"),
        ("http://h/v1", "/c/o"),
        ("http://h/v1/", "/c/o"),
    ])
    def test_single_separator(self, left, right):
        assert join_paths(left, right) == "http://h/v1/c/o"


class TestPathToUri:
    """Test building request URIs."""

    def test_uri_path_matches_key(self):
        """Stripping the endpoint from the URI path yields the object path."""
        path = SwiftObjectPath.from_path("swift://data/", "/dir/file.txt")
        uri = path_to_uri(path, ENDPOINT)
        assert uri == ENDPOINT + "/data/dir/file.txt"
        assert urlsplit(uri).path[len(urlsplit(ENDPOINT).path):] == "/" + path.to_uri_path()

    def test_whitespace_segments_percent_encoded(self):
        uri = path_to_uri(SwiftObjectPath("data", "/my dir/file+1.txt"), ENDPOINT)
        assert uri == ENDPOINT + "/data/my%20dir/file+1.txt"

    def test_plus_only_encoded_in_whitespace_segments(self):
        assert encode_key("data/a b+c") == "data/a%20b%2Bc"
        assert encode_key("data/a+c") == "data/a+c"

    def test_no_endpoint_raises(self):
        with pytest.raises(SwiftInternalStateError):
            path_to_uri(SwiftObjectPath("data", "/a"), None)

    def test_invalid_uri_raises(self):
        with pytest.raises(SwiftError):
            path_to_uri(SwiftObjectPath("data", "/a"), "not-a-uri")
