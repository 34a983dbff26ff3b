from __future__ import annotations

import asyncio

from file_manager import main
from file_manager.config import Settings


def _run_lifespan_startup(app):
    async def _run():
        async with main.lifespan(app):
            pass

    asyncio.run(_run())


def test_startup_creates_files_root(tmp_path):
    root = tmp_path / 'public' / 'uploads'
    app = main.create_app(Settings(files_root=str(root)))

    _run_lifespan_startup(app)

    assert root.is_dir()


def test_create_app_threads_root_into_file_ops(tmp_path):
    app = main.create_app(Settings(files_root=str(tmp_path)))

    assert app.state.file_ops.root == tmp_path.resolve()
    assert app.state.settings.files_root == str(tmp_path)


def test_settings_read_files_root_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv('FILES_ROOT', str(tmp_path / 'from-env'))
    monkeypatch.setenv('UPLOAD_CHUNK_BYTES', '65536')

    config = Settings()

    assert config.files_root == str(tmp_path / 'from-env')
    assert config.upload_chunk_bytes == 65536
