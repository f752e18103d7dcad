"""
Services Package

This package contains the library services: id encoding, directory
scanning, chunked upload assembly, cover page settings and the user
registry, plus the facade used by the routers for everything else.
"""

from .cover_settings_store import CoverSettingsStore
from .library_scanner import LibraryScanner
from .library_service import LibraryService
from .path_codec import PathCodec
from .upload_assembler import UploadAssembler
from .user_registry import UserRegistry

__all__ = [
    "CoverSettingsStore",
    "LibraryScanner",
    "LibraryService",
    "PathCodec",
    "UploadAssembler",
    "UserRegistry",
]
