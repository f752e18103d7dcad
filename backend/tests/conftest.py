import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from bookreader.services.cover_settings_store import CoverSettingsStore
from bookreader.services.library_scanner import LibraryScanner
from bookreader.services.library_service import LibraryService
from bookreader.services.upload_assembler import UploadAssembler
from bookreader.services.user_registry import UserRegistry


@pytest.fixture
def temp_dirs():
    """Create temporary private and shared library roots"""
    with tempfile.TemporaryDirectory() as user_dir, \
         tempfile.TemporaryDirectory() as shared_dir, \
         tempfile.TemporaryDirectory() as data_dir:
        yield {
            "user_dir": Path(user_dir),
            "shared_dir": Path(shared_dir),
            "data_dir": Path(data_dir),
        }


@pytest.fixture
def scanner(temp_dirs):
    return LibraryScanner(temp_dirs["user_dir"], temp_dirs["shared_dir"])


@pytest.fixture
def cover_store(temp_dirs):
    return CoverSettingsStore(temp_dirs["user_dir"])


@pytest.fixture
def library(scanner, cover_store):
    return LibraryService(scanner, cover_store, max_upload_bytes=10 * 1024 * 1024)


@pytest.fixture
def assembler(temp_dirs):
    return UploadAssembler(temp_dirs["user_dir"])


@pytest.fixture
def users_file(temp_dirs):
    path = temp_dirs["data_dir"] / "users.json"
    path.write_text(
        '{"users": ['
        '{"id": "u1", "username": "alice", "password": "$2b$10$hash"}, '
        '{"id": "u2", "username": "bob", "password": "$2b$10$hash"}]}'
    )
    return path


@pytest.fixture
def client(library, cover_store, assembler, users_file):
    """TestClient with services pointed at the temporary directories"""
    from main import app
    from bookreader.routers import dependencies

    app.dependency_overrides[dependencies.get_library_service] = lambda: library
    app.dependency_overrides[dependencies.get_cover_settings_store] = lambda: cover_store
    app.dependency_overrides[dependencies.get_upload_assembler] = lambda: assembler
    app.dependency_overrides[dependencies.get_user_registry] = lambda: UserRegistry(
        users_file
    )

    yield TestClient(app, headers={"X-User-Id": "u1"})

    app.dependency_overrides.clear()


@pytest.fixture
def make_file():
    """Factory writing a file and any missing parent directories"""

    def _make_file(path: Path, content: bytes = b"data") -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path

    return _make_file
