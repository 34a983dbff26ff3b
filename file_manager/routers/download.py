from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse, StreamingResponse

from ..deps import get_file_ops
from ..exceptions import InvalidRequest
from ..schemas import BulkDownloadRequest
from ..services.file_ops import FileOps, media_type_for

router = APIRouter(prefix='/api/download', tags=['download'])

ARCHIVE_NAME = 'files.zip'


def _file_response(target: Path) -> FileResponse:
    return FileResponse(target, media_type=media_type_for(target), filename=target.name)


@router.get('')
def download(file_id: str = Query(..., alias='fileId'), ops: FileOps = Depends(get_file_ops)):
    return _file_response(ops.download_target(file_id))


@router.post('')
def download_bulk(payload: BulkDownloadRequest, ops: FileOps = Depends(get_file_ops)):
    if not payload.file_ids:
        raise InvalidRequest('File IDs are required')

    if len(payload.file_ids) == 1:
        target = ops.existing_path(payload.file_ids[0])
        if target.is_file():
            return _file_response(target)

    archive = ops.build_archive(payload.file_ids)
    headers = {'Content-Disposition': f'attachment; filename="{ARCHIVE_NAME}"'}
    return StreamingResponse(archive, media_type='application/zip', headers=headers)
