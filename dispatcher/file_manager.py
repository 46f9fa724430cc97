import contextlib
import io
import itertools
import os
import secrets
import threading
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from zipfile import ZIP_DEFLATED, ZipFile

from . import config
from .exception import WorkspaceError
from .utils import logger

WORKSPACE_PREFIX = 'java-compiler-'


@dataclass(frozen=True)
class Workspace:
    workspace_id: str
    path: Path


class WorkspaceManager:
    """
    Allocate and tear down one private directory per submission.

    Directory names combine a random token with a process-wide counter, so
    two submissions never land in the same place even when the random part
    repeats.
    """

    def __init__(self, root: Path | str | None = None):
        self.root = Path(root or config.WORKSPACE_ROOT)
        self._counter = itertools.count()
        self._lock = threading.Lock()
        self._active: set[str] = set()

    def _next_id(self) -> str:
        with self._lock:
            n = next(self._counter)
        return f'{WORKSPACE_PREFIX}{secrets.token_hex(8)}-{n}'

    def create(self) -> Workspace:
        workspace_id = self._next_id()
        path = self.root / workspace_id
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            path.mkdir(mode=0o700)
        except OSError as exc:
            raise WorkspaceError(
                f'failed to create workspace {path}: {exc}') from exc
        with self._lock:
            self._active.add(workspace_id)
        logger().debug(f'workspace created [id={workspace_id}]')
        return Workspace(workspace_id=workspace_id, path=path)

    def destroy(self, workspace: Workspace):
        with self._lock:
            if workspace.workspace_id not in self._active:
                logger().warning(
                    f'workspace already destroyed [id={workspace.workspace_id}]'
                )
                return
            self._active.discard(workspace.workspace_id)
        _remove_tree(workspace.path)
        logger().debug(f'workspace destroyed [id={workspace.workspace_id}]')

    @contextlib.contextmanager
    def workspace(self):
        ws = self.create()
        try:
            yield ws
        finally:
            self.destroy(ws)

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    # ---------- scoped file operations ----------
    def resolve(self, workspace: Workspace, name: str | Path) -> Path:
        base = workspace.path.resolve()
        target = (base / name).resolve()
        try:
            target.relative_to(base)
        except ValueError:
            raise ValueError(f'path escapes workspace: {name}') from None
        return target

    def write_text(self, workspace: Workspace, name: str, content: str) -> Path:
        target = self.resolve(workspace, name)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding='utf-8')
        return target

    def write_bytes(self, workspace: Workspace, name: str, data: bytes) -> Path:
        target = self.resolve(workspace, name)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return target

    def read_bytes(self, workspace: Workspace, name: str) -> bytes:
        return self.resolve(workspace, name).read_bytes()

    # ---------- compiled class bundles ----------
    def pack_class_files(self, workspace: Workspace) -> bytes:
        buf = io.BytesIO()
        with ZipFile(buf, 'w', ZIP_DEFLATED) as zf:
            for class_file in sorted(workspace.path.rglob('*.class')):
                rel = class_file.relative_to(workspace.path).as_posix()
                zf.writestr(rel, class_file.read_bytes())
        return buf.getvalue()

    def unpack_class_files(self, workspace: Workspace, blob: bytes) -> int:
        count = 0
        with ZipFile(io.BytesIO(blob)) as zf:
            _check_zip_members(zf)
            for info in zf.infolist():
                if info.is_dir():
                    continue
                self.write_bytes(workspace, info.filename, zf.read(info))
                count += 1
        return count


def _check_zip_members(zf: ZipFile):
    for info in zf.infolist():
        name = PurePosixPath(info.filename)
        if name.is_absolute() or '..' in name.parts:
            raise ValueError(f'unsafe path in class bundle: {info.filename}')
        # symlink: high nibble 0xA of the unix mode
        if (info.external_attr >> 28) == 0xA:
            raise ValueError(f'symlink in class bundle: {info.filename}')


def _remove_tree(path: Path):
    if not path.exists():
        return
    for root, dirs, files in os.walk(path, topdown=False):
        for name in files:
            _remove_quietly(os.unlink, os.path.join(root, name))
        for name in dirs:
            full = os.path.join(root, name)
            if os.path.islink(full):
                _remove_quietly(os.unlink, full)
            else:
                _remove_quietly(os.rmdir, full)
    _remove_quietly(os.rmdir, str(path))


def _remove_quietly(remove, path: str):
    try:
        remove(path)
    except OSError as exc:
        logger().warning(f'failed to remove {path}: {exc}')
