from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileEntry(BaseModel):
    id: str
    name: str
    type: Literal['file', 'folder']
    size: int
    modified: datetime
    path: str
    extension: Optional[str] = None


class FileListResponse(BaseModel):
    files: list[FileEntry]


class OperationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    operation: str
    file_ids: list[str] = Field(default_factory=list, alias='fileIds')
    target_path: Optional[str] = Field(default=None, alias='targetPath')
    new_name: Optional[str] = Field(default=None, alias='newName')


class BulkDownloadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_ids: list[str] = Field(default_factory=list, alias='fileIds')


class ApiResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class UploadResponse(BaseModel):
    success: bool
    files: list[FileEntry]
    message: str
