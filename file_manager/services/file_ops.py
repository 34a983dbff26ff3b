from __future__ import annotations

import logging
import mimetypes
import os
import shutil
import stat
import zipfile
from contextlib import contextmanager
from datetime import datetime, timezone
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from ..exceptions import (
    InvalidPath,
    InvalidRequest,
    IOFailure,
    NotFound,
    PermissionDenied,
    UnsupportedOperation,
)
from ..schemas import FileEntry

logger = logging.getLogger(__name__)

OPERATIONS = ('delete', 'rename', 'copy', 'move', 'create-folder')
COPY_NAME_ATTEMPTS = 10_000
DEFAULT_MEDIA_TYPE = 'application/octet-stream'


def validate_path(requested_path: str, root: str | Path) -> Path:
    base = Path(root).resolve(strict=False)
    try:
        candidate = (base / requested_path.lstrip('/')).resolve(strict=False)
    except (OSError, RuntimeError, ValueError) as exc:
        raise InvalidPath('Invalid path', details=requested_path) from exc
    if base != candidate and base not in candidate.parents:
        logger.warning('Rejected path outside root: %r', requested_path)
        raise InvalidPath('Path traversal detected', details=requested_path)
    return candidate


def to_identifier(path: Path, root: Path) -> str:
    relative = path.relative_to(root).as_posix()
    return '/' if relative == '.' else '/' + relative


def media_type_for(path: Path) -> str:
    return mimetypes.guess_type(path.name)[0] or DEFAULT_MEDIA_TYPE


@contextmanager
def translate_os_errors(identifier: str) -> Iterator[None]:
    """Re-raise OS errors from filesystem calls as API error kinds."""
    try:
        yield
    except (FileNotFoundError, NotADirectoryError) as exc:
        raise NotFound(f'Not found: {identifier}') from exc
    except PermissionError as exc:
        raise PermissionDenied(f'Permission denied: {identifier}') from exc
    except FileExistsError as exc:
        raise IOFailure(f'Already exists: {identifier}') from exc
    except OSError as exc:
        raise IOFailure(f'Filesystem error on {identifier}', details=exc.strerror or str(exc)) from exc


def _require_name(new_name: Optional[str]) -> str:
    if new_name is None or not new_name.strip().strip('/'):
        raise InvalidRequest('newName is required')
    return new_name.strip()


def _split_name(name: str) -> tuple[str, str]:
    pure = PurePosixPath(name)
    return pure.stem, pure.suffix


def _unique_arcname(name: str, used: set[str]) -> str:
    candidate = name
    stem, suffix = _split_name(name)
    counter = 1
    while candidate in used:
        candidate = f'{stem} ({counter}){suffix}'
        counter += 1
    used.add(candidate)
    return candidate


class FileOps:
    """Directory listing and file operations confined to a single root.

    Every identifier is a root-relative path with a leading ``/``. All paths a
    request touches are resolved through :func:`validate_path` before the
    first mutation, so a traversal attempt never leaves partial changes.
    Batches are not transactional: the first failing item aborts the rest and
    earlier items stay applied.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()

    def safe_path(self, rel: str) -> Path:
        return validate_path(rel, self.root)

    def entry_path(self, rel: str) -> Path:
        """Like :meth:`safe_path`, but a symlink in the last component stays unresolved.

        Containment is checked on the fully resolved path; the returned path
        names the entry itself, so mutations act on a link and not its target.
        """
        target = self.safe_path(rel)
        pure = PurePosixPath(rel.lstrip('/'))
        if pure.name in ('', '..'):
            return target
        return self.safe_path(pure.parent.as_posix()) / pure.name

    def identifier(self, path: Path) -> str:
        return to_identifier(path, self.root)

    def entry(self, path: Path) -> FileEntry:
        st = path.stat()
        is_dir = stat.S_ISDIR(st.st_mode)
        identifier = self.identifier(path)
        return FileEntry(
            id=identifier,
            name=path.name,
            type='folder' if is_dir else 'file',
            size=0 if is_dir else st.st_size,
            modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            path=identifier,
            extension=None if is_dir else (path.suffix[1:].lower() or None),
        )

    def existing_path(self, rel: str) -> Path:
        target = self.entry_path(rel)
        with translate_os_errors(rel):
            target.stat()
        return target

    def list_dir(self, rel: str = '/') -> list[FileEntry]:
        target = self.entry_path(rel)
        with translate_os_errors(rel):
            if not target.is_dir():
                raise NotFound(f'Directory not found: {rel}')
            children = list(target.iterdir())

        items: list[FileEntry] = []
        with translate_os_errors(rel):
            for child in children:
                try:
                    items.append(self.entry(child))
                except FileNotFoundError:
                    # removed after iterdir, or a dangling symlink
                    logger.debug('Skipping vanished entry %s', child.name)
        return items

    def operate(
        self,
        operation: str,
        file_ids: list[str],
        target_path: Optional[str] = None,
        new_name: Optional[str] = None,
    ) -> None:
        if operation not in OPERATIONS:
            raise UnsupportedOperation(f'Unsupported operation: {operation}')
        if target_path is not None:
            self.safe_path(target_path)
        target = target_path or '/'

        if operation == 'delete':
            self.delete(file_ids)
        elif operation == 'rename':
            if len(file_ids) != 1:
                raise InvalidRequest('Rename requires exactly one file')
            self.rename(file_ids[0], _require_name(new_name))
        elif operation == 'copy':
            self.copy(file_ids, target)
        elif operation == 'move':
            self.move(file_ids, target)
        else:
            self.create_folder(target, _require_name(new_name))

    def delete(self, file_ids: list[str]) -> None:
        for rel, target in self._resolve_sources(file_ids):
            with translate_os_errors(rel):
                # lstat: a symlink is unlinked, never followed into its target
                if stat.S_ISDIR(target.lstat().st_mode):
                    shutil.rmtree(target)
                else:
                    target.unlink()
            logger.info('Deleted %s', rel)

    def rename(self, rel: str, new_name: str) -> None:
        source = self._resolve_sources([rel])[0][1]
        destination = self._join(source.parent, new_name)
        with translate_os_errors(rel):
            source.lstat()
        if destination == source:
            return
        if os.path.lexists(destination):
            raise IOFailure(f'Already exists: {self.identifier(destination)}')
        with translate_os_errors(rel):
            source.rename(destination)
        logger.info('Renamed %s to %s', rel, self.identifier(destination))

    def copy(self, file_ids: list[str], target_path: str) -> None:
        directory = self._resolve_directory(target_path)
        sources = self._resolve_sources(file_ids)
        for rel, source in sources:
            with translate_os_errors(rel):
                if stat.S_ISDIR(source.stat().st_mode):
                    raise UnsupportedOperation('Folder copy is not supported', details=rel)

        for rel, source in sources:
            destination = self.free_copy_path(directory, source.name)
            with translate_os_errors(rel):
                shutil.copy2(source, destination)
            logger.info('Copied %s to %s', rel, self.identifier(destination))

    def free_copy_path(self, directory: Path, name: str) -> Path:
        """Pick ``name``, else ``<stem> - Copy<ext>``, else ``<stem> - Copy (N)<ext>``."""
        candidate = self._join(directory, name)
        if not os.path.lexists(candidate):
            return candidate

        stem, suffix = _split_name(name)
        candidate = self._join(directory, f'{stem} - Copy{suffix}')
        for counter in range(1, COPY_NAME_ATTEMPTS + 1):
            if not os.path.lexists(candidate):
                return candidate
            candidate = self._join(directory, f'{stem} - Copy ({counter}){suffix}')
        raise IOFailure(f'No free copy name for {name}')

    def move(self, file_ids: list[str], target_path: str) -> None:
        directory = self._resolve_directory(target_path)
        plan: list[tuple[str, Path, Path]] = []
        for rel, source in self._resolve_sources(file_ids):
            destination = self._join(directory, source.name)
            if source == destination:
                continue
            if source in destination.parents:
                raise InvalidRequest('Cannot move a folder into itself', details=rel)
            plan.append((rel, source, destination))

        for rel, source, destination in plan:
            if os.path.lexists(destination):
                raise IOFailure(f'Already exists: {self.identifier(destination)}')
            with translate_os_errors(rel):
                source.rename(destination)
            logger.info('Moved %s to %s', rel, self.identifier(destination))

    def create_folder(self, target_path: str, name: str) -> Path:
        folder = self._join(self.safe_path(target_path), name)
        identifier = self.identifier(folder)
        with translate_os_errors(identifier):
            folder.mkdir(parents=True, exist_ok=True)
        logger.info('Created folder %s', identifier)
        return folder

    def upload_targets(self, rel: str, filenames: list[Optional[str]]) -> list[Path]:
        """Validate every upload name and destination, then create the directory once."""
        names = []
        for filename in filenames:
            name = PurePosixPath((filename or '').replace('\\', '/')).name
            if name in ('', '.', '..'):
                raise InvalidRequest('Invalid upload filename', details=filename)
            names.append(name)
        directory = self.safe_path(rel)
        targets = [self._join(directory, name) for name in names]
        with translate_os_errors(rel):
            directory.mkdir(parents=True, exist_ok=True)
        return targets

    def download_target(self, rel: str) -> Path:
        target = self.existing_path(rel)
        if not target.is_file():
            raise NotFound(f'File not found: {rel}')
        return target

    def build_archive(self, file_ids: list[str]) -> BytesIO:
        if not file_ids:
            raise InvalidRequest('File IDs are required')
        sources = [(rel, self.entry_path(rel)) for rel in file_ids]
        for rel, source in sources:
            with translate_os_errors(rel):
                source.stat()

        archive = BytesIO()
        used: set[str] = set()
        with zipfile.ZipFile(archive, mode='w', compression=zipfile.ZIP_DEFLATED) as zf:
            for rel, source in sources:
                with translate_os_errors(rel):
                    if source.is_dir():
                        self._archive_folder(zf, source, used)
                    else:
                        zf.write(source, arcname=_unique_arcname(source.name, used))
        archive.seek(0)
        logger.info('Built archive of %d item(s)', len(sources))
        return archive

    def _archive_folder(self, zf: zipfile.ZipFile, folder: Path, used: set[str]) -> None:
        prefix = _unique_arcname(folder.name or 'root', used)
        for dirpath, dirnames, filenames in os.walk(folder):
            current = Path(dirpath)
            dirnames.sort()
            relative = current.relative_to(folder).as_posix()
            arc_dir = prefix if relative == '.' else f'{prefix}/{relative}'
            zf.write(current, arcname=arc_dir)
            for filename in sorted(filenames):
                path = self.safe_path(self.identifier(current / filename))
                if not path.is_file():
                    continue
                zf.write(path, arcname=f'{arc_dir}/{filename}')

    def _resolve_sources(self, file_ids: list[str]) -> list[tuple[str, Path]]:
        if not file_ids:
            raise InvalidRequest('No files selected')
        resolved: list[tuple[str, Path]] = []
        for rel in file_ids:
            target = self.entry_path(rel)
            if target == self.root:
                raise InvalidPath('Operation not allowed on the root directory', details=rel)
            resolved.append((rel, target))
        return resolved

    def _resolve_directory(self, rel: str) -> Path:
        directory = self.safe_path(rel)
        with translate_os_errors(rel):
            if not directory.is_dir():
                raise NotFound(f'Directory not found: {rel}')
        return directory

    def _join(self, directory: Path, name: str) -> Path:
        relative = (directory / name.lstrip('/')).relative_to(self.root)
        return self.entry_path(relative.as_posix())
