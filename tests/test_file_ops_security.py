from __future__ import annotations

import os

import pytest

from file_manager.exceptions import InvalidPath
from file_manager.routers import download, files
from file_manager.schemas import BulkDownloadRequest, OperationRequest
from file_manager.services import file_ops


def test_validate_path_blocks_traversal(tmp_path):
    with pytest.raises(InvalidPath):
        file_ops.validate_path('../../etc/passwd', str(tmp_path))


def test_validate_path_allows_root_and_descendants(tmp_path):
    base = tmp_path.resolve()

    assert file_ops.validate_path('/', str(tmp_path)) == base
    assert file_ops.validate_path('/a/../b', str(tmp_path)) == base / 'b'
    assert file_ops.validate_path('docs/report.txt', str(tmp_path)) == base / 'docs' / 'report.txt'


def test_validate_path_rejects_sibling_with_shared_prefix(tmp_path):
    root = tmp_path / 'root'
    root.mkdir()
    (tmp_path / 'root-other').mkdir()

    with pytest.raises(InvalidPath):
        file_ops.validate_path('../root-other', str(root))


def test_validate_path_rejects_symlink_escape(root, tmp_path):
    outside = tmp_path / 'outside'
    outside.mkdir()
    os.symlink(outside, root / 'link')

    with pytest.raises(InvalidPath):
        file_ops.validate_path('/link/secret.txt', str(root))


def test_list_files_rejects_path_traversal(ops):
    with pytest.raises(InvalidPath):
        files.list_files(path='../../etc', ops=ops)


def test_operate_rejects_traversal_before_any_mutation(ops, root):
    (root / 'keep.txt').write_text('keep')

    with pytest.raises(InvalidPath):
        files.operate(OperationRequest(operation='delete', fileIds=['/keep.txt', '/../outside.txt']), ops=ops)

    assert (root / 'keep.txt').exists()


@pytest.mark.parametrize(
    'payload',
    [
        {'operation': 'copy', 'fileIds': ['/a.txt'], 'targetPath': '/../..'},
        {'operation': 'move', 'fileIds': ['/a.txt'], 'targetPath': '../elsewhere'},
        {'operation': 'rename', 'fileIds': ['/a.txt'], 'newName': '../../escaped.txt'},
        {'operation': 'create-folder', 'targetPath': '/', 'newName': '../../escaped'},
    ],
)
def test_operate_rejects_escaping_destinations(ops, root, tmp_path, payload):
    (root / 'a.txt').write_text('a')

    with pytest.raises(InvalidPath):
        files.operate(OperationRequest(**payload), ops=ops)

    assert (root / 'a.txt').read_text() == 'a'
    assert not (tmp_path / 'escaped.txt').exists()
    assert not (tmp_path / 'escaped').exists()


def test_delete_root_is_rejected(ops, root):
    (root / 'a.txt').write_text('a')

    with pytest.raises(InvalidPath):
        ops.operate('delete', ['/'])

    assert (root / 'a.txt').exists()


def test_bulk_download_rejects_path_traversal(ops):
    with pytest.raises(InvalidPath):
        download.download_bulk(BulkDownloadRequest(fileIds=['/ok.txt', '../../etc/passwd']), ops=ops)


def test_archive_rejects_symlink_escape_inside_folder(ops, root, tmp_path):
    secret = tmp_path / 'secret.txt'
    secret.write_text('secret')
    (root / 'folder').mkdir()
    os.symlink(secret, root / 'folder' / 'leak.txt')

    with pytest.raises(InvalidPath):
        ops.build_archive(['/folder'])
