from __future__ import annotations

from fastapi import Request

from .config import Settings
from .services.file_ops import FileOps


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_file_ops(request: Request) -> FileOps:
    return request.app.state.file_ops
