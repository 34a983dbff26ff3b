from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse

from .config import Settings, settings
from .exceptions import FileManagerError
from .routers import download, files, upload
from .services.file_ops import FileOps

logger = logging.getLogger(__name__)

_SECURITY_HEADERS = {
    'Content-Security-Policy': "default-src 'self'; frame-ancestors 'none'",
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
}

_INTERNAL_ERROR_MESSAGE = 'Internal server error. Please try again.'


def _parse_cors_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(',') if origin.strip()]


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def _apply_security_headers(response):
    for key, value in _SECURITY_HEADERS.items():
        response.headers[key] = value
    return response


async def security_middleware(request: Request, call_next):
    response = await call_next(request)
    return _apply_security_headers(response)


async def file_manager_error_handler(request: Request, exc: FileManagerError):
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s (%s)', request.method, request.url.path, exc.message, exc.details)
    else:
        logger.info('%s %s rejected: %s', request.method, request.url.path, exc.message)

    body = {'error': exc.message}
    if exc.details is not None:
        body['details'] = exc.details
    return _apply_security_headers(JSONResponse(body, status_code=exc.status_code))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    body = {'error': 'Invalid request', 'details': jsonable_encoder(exc.errors())}
    return _apply_security_headers(JSONResponse(body, status_code=422))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    if request.url.path.startswith('/api/'):
        response = JSONResponse({'error': _INTERNAL_ERROR_MESSAGE}, status_code=500)
    else:
        response = HTMLResponse('<h1>Unexpected error</h1><p>Please try again.</p>', status_code=500)
    return _apply_security_headers(response)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config: Settings = app.state.settings
    _setup_logging(config.log_level)
    Path(config.files_root).mkdir(parents=True, exist_ok=True)
    logger.info('%s serving files from %s', config.app_name, app.state.file_ops.root)
    yield
    logger.info('%s shutting down', config.app_name)


def create_app(config: Optional[Settings] = None) -> FastAPI:
    config = config or settings
    app = FastAPI(title=config.app_name, lifespan=lifespan)
    app.state.settings = config
    app.state.file_ops = FileOps(config.files_root)

    cors_origins = _parse_cors_origins(config.cors_origins)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=['GET', 'POST', 'OPTIONS'],
            allow_headers=['Content-Type'],
        )
    app.middleware('http')(security_middleware)

    app.add_exception_handler(FileManagerError, file_manager_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get('/healthz')
    def healthz():
        return {'ok': True}

    app.include_router(files.router)
    app.include_router(upload.router)
    app.include_router(download.router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        'file_manager.main:app',
        host=settings.app_host,
        port=settings.app_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == '__main__':
    run()
