import pytest

from dispatcher.artifact_cache import ArtifactCache
from dispatcher.file_manager import WorkspaceManager
from dispatcher.pipeline import CompilePipeline
from tests.fakes import FakeCompiler, FakeExecutor


@pytest.fixture
def workspace_root(tmp_path):
    root = tmp_path / 'workspaces'
    root.mkdir()
    return root


@pytest.fixture
def workspace_manager(workspace_root):
    return WorkspaceManager(workspace_root)


@pytest.fixture
def fake_compiler():
    return FakeCompiler()


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def pipeline(workspace_manager, fake_compiler, fake_executor):
    return CompilePipeline(
        workspace_manager=workspace_manager,
        cache=ArtifactCache(max_entries=10),
        compiler=fake_compiler,
        executor=fake_executor,
    )
