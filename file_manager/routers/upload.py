from __future__ import annotations

import os

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..config import Settings
from ..deps import get_file_ops, get_settings
from ..schemas import UploadResponse
from ..services.file_ops import FileOps, translate_os_errors

router = APIRouter(prefix='/api/upload', tags=['upload'])


@router.post('', response_model=UploadResponse)
async def upload(
    files: list[UploadFile] = File(...),
    path: str = Form(default='/'),
    ops: FileOps = Depends(get_file_ops),
    config: Settings = Depends(get_settings),
):
    targets = zip(files, ops.upload_targets(path, [file.filename for file in files]))

    stored = []
    for file, target in targets:
        identifier = ops.identifier(target)
        with translate_os_errors(identifier):
            with target.open('wb') as f:
                while chunk := await file.read(config.upload_chunk_bytes):
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())
            stored.append(ops.entry(target))

    return UploadResponse(
        success=True,
        files=stored,
        message=f'Successfully uploaded {len(stored)} file(s)',
    )
