import io
import threading
import zipfile

import pytest

from dispatcher import file_manager
from dispatcher.exception import WorkspaceError
from dispatcher.file_manager import WorkspaceManager


def test_create_and_destroy(workspace_manager, workspace_root):
    ws = workspace_manager.create()
    assert ws.path.is_dir()
    assert ws.path.parent == workspace_root
    assert ws.workspace_id.startswith(file_manager.WORKSPACE_PREFIX)
    assert workspace_manager.active_count() == 1

    workspace_manager.write_text(ws, 'pkg/Deep.java', 'class Deep {}')
    workspace_manager.destroy(ws)
    assert not ws.path.exists()
    assert workspace_manager.active_count() == 0


def test_destroy_twice_is_noop(workspace_manager):
    ws = workspace_manager.create()
    workspace_manager.destroy(ws)
    # second call must neither raise nor touch anything
    workspace_manager.destroy(ws)
    assert workspace_manager.active_count() == 0


def test_context_manager_cleans_up_on_error(workspace_manager):
    with pytest.raises(RuntimeError):
        with workspace_manager.workspace() as ws:
            workspace_manager.write_text(ws, 'A.java', 'class A {}')
            raise RuntimeError('boom')
    assert not ws.path.exists()
    assert workspace_manager.active_count() == 0


def test_concurrent_creates_are_distinct(workspace_manager):
    created = []
    lock = threading.Lock()

    def worker():
        for _ in range(20):
            ws = workspace_manager.create()
            with lock:
                created.append(ws)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len({ws.path for ws in created}) == len(created) == 160
    for ws in created:
        workspace_manager.destroy(ws)
    assert workspace_manager.active_count() == 0


def test_create_failure_raises_workspace_error(tmp_path):
    blocker = tmp_path / 'not-a-dir'
    blocker.write_text('x')
    manager = WorkspaceManager(blocker)
    with pytest.raises(WorkspaceError):
        manager.create()


@pytest.mark.parametrize('name', ['../escape.txt', '/etc/passwd'])
def test_resolve_rejects_escape(workspace_manager, name):
    with workspace_manager.workspace() as ws:
        with pytest.raises(ValueError):
            workspace_manager.write_text(ws, name, 'nope')


def test_read_write_bytes(workspace_manager):
    with workspace_manager.workspace() as ws:
        workspace_manager.write_bytes(ws, 'data.bin', b'\x00\x01')
        assert workspace_manager.read_bytes(ws, 'data.bin') == b'\x00\x01'


def test_pack_and_unpack_class_files(workspace_manager):
    with workspace_manager.workspace() as src:
        workspace_manager.write_bytes(src, 'Main.class', b'main')
        workspace_manager.write_bytes(src, 'Main$Inner.class', b'inner')
        workspace_manager.write_bytes(src, 'pkg/Util.class', b'util')
        workspace_manager.write_text(src, 'Main.java', 'ignored')
        blob = workspace_manager.pack_class_files(src)

    with workspace_manager.workspace() as dst:
        count = workspace_manager.unpack_class_files(dst, blob)
        assert count == 3
        assert (dst.path / 'Main$Inner.class').read_bytes() == b'inner'
        assert (dst.path / 'pkg' / 'Util.class').read_bytes() == b'util'
        assert not (dst.path / 'Main.java').exists()


def test_unpack_rejects_traversal(workspace_manager):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w') as zf:
        zf.writestr('../evil.class', b'evil')
    with workspace_manager.workspace() as ws:
        with pytest.raises(ValueError):
            workspace_manager.unpack_class_files(ws, buf.getvalue())
        assert not (ws.path.parent / 'evil.class').exists()


def test_unpack_rejects_symlink(workspace_manager):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w') as zf:
        info = zipfile.ZipInfo('link.class')
        info.external_attr = 0o120777 << 16
        zf.writestr(info, '/etc/passwd')
    with workspace_manager.workspace() as ws:
        with pytest.raises(ValueError, match='symlink'):
            workspace_manager.unpack_class_files(ws, buf.getvalue())
