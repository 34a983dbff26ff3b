from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..deps import get_file_ops
from ..schemas import ApiResponse, FileListResponse, OperationRequest
from ..services.file_ops import FileOps

router = APIRouter(prefix='/api/files', tags=['files'])


@router.get('', response_model=FileListResponse)
def list_files(path: str = Query(default='/'), ops: FileOps = Depends(get_file_ops)):
    return FileListResponse(files=ops.list_dir(path or '/'))


@router.post('', response_model=ApiResponse)
def operate(payload: OperationRequest, ops: FileOps = Depends(get_file_ops)):
    ops.operate(
        payload.operation,
        payload.file_ids,
        target_path=payload.target_path,
        new_name=payload.new_name,
    )
    return ApiResponse(success=True, message=f'{payload.operation} completed')
