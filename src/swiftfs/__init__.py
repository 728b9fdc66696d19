"""
Filesystem semantics over an OpenStack Swift object store.
"""
from .errors import SwiftError
from .filesystem import SwiftFileSystem
from .settings import Settings, bind, create_settings_from_env

__version__ = "0.1.0"

__all__ = ["SwiftFileSystem", "Settings", "SwiftError", "bind", "create_settings_from_env"]
