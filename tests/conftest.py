from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from file_manager.config import Settings
from file_manager.main import create_app
from file_manager.services.file_ops import FileOps


@pytest.fixture
def root(tmp_path):
    path = tmp_path / 'root'
    path.mkdir()
    return path


@pytest.fixture
def ops(root):
    return FileOps(root)


@pytest.fixture
def client(root):
    app = create_app(Settings(files_root=str(root)))
    with TestClient(app) as c:
        yield c
