"""Test doubles for the Swift filesystem."""

from .fake_swift import FakeSwiftServer

__all__ = ["FakeSwiftServer"]
