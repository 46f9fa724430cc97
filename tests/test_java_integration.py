import pytest

from dispatcher.artifact_cache import ArtifactCache
from dispatcher.constant import FailureKind
from dispatcher.file_manager import WorkspaceManager
from dispatcher.pipeline import CompilePipeline
from runner.compiler import JavaCompiler
from runner.executor import JavaExecutor
from tests.fakes import HELLO_WORLD, requires_jdk

pytestmark = requires_jdk


@pytest.fixture
def java_pipeline(workspace_root):
    return CompilePipeline(
        workspace_manager=WorkspaceManager(workspace_root),
        cache=ArtifactCache(max_entries=10),
        compiler=JavaCompiler(timeout=30),
        executor=JavaExecutor(timeout=5, max_heap_mb=64,
                              use_memory_probe=True),
    )


def test_hello_world_then_cached(java_pipeline, workspace_root):
    first = java_pipeline.compile_and_run(HELLO_WORLD)
    assert first.compilationSuccess, first.compilationOutput
    assert first.executionSuccess, first.executionOutput
    assert first.executionOutput == 'Hello World'
    assert first.peakMemoryBytes >= 0

    second = java_pipeline.compile_and_run(HELLO_WORLD)
    assert second.cached
    assert second.executionOutput == 'Hello World'
    assert list(workspace_root.iterdir()) == []


def test_syntax_error(java_pipeline):
    result = java_pipeline.compile_and_run(
        'public class Broken { public static void main(String[] a) { int x = } }'
    )
    assert not result.compilationSuccess
    assert 'error' in result.compilationOutput
    assert result.failureKind == FailureKind.COMPILE_FAILURE


def test_infinite_loop_times_out(java_pipeline):
    result = java_pipeline.compile_and_run(
        'public class Spin { public static void main(String[] a) '
        '{ while (true) {} } }')
    assert result.compilationSuccess
    assert not result.executionSuccess
    assert 'Execution timed out after 5 seconds.' in result.executionOutput
    assert result.failureKind == FailureKind.EXECUTE_TIMEOUT
    assert result.executionTimeMs < 15000


def test_out_of_memory_fails(java_pipeline):
    result = java_pipeline.compile_and_run(
        'import java.util.*;\n'
        'public class Hog { public static void main(String[] a) {\n'
        '  List<long[]> keep = new ArrayList<>();\n'
        '  while (true) keep.add(new long[1 << 20]);\n'
        '} }')
    assert result.compilationSuccess
    assert not result.executionSuccess
    assert 'OutOfMemoryError' in result.executionOutput
    assert result.failureKind == FailureKind.EXECUTE_FAILURE


def test_multiple_classes_and_inner_class(java_pipeline):
    source = ('class Helper { static String greet() { return "hi"; } }\n'
              'public class Multi {\n'
              '  static class Inner { int v = 2; }\n'
              '  public static void main(String[] a) {\n'
              '    System.out.println(Helper.greet() + new Inner().v);\n'
              '  }\n'
              '}\n')
    first = java_pipeline.compile_and_run(source)
    second = java_pipeline.compile_and_run(source)
    assert first.executionOutput == 'hi2'
    assert second.cached
    assert second.executionOutput == 'hi2'


def test_runtime_exception_reports_stderr(java_pipeline):
    result = java_pipeline.compile_and_run(
        'public class Crash { public static void main(String[] a) {\n'
        '  System.out.println("before");\n'
        '  throw new IllegalStateException("bad state");\n'
        '} }')
    assert not result.executionSuccess
    assert '[stdout]\nbefore' in result.executionOutput
    assert 'IllegalStateException: bad state' in result.executionOutput
    assert 'Process exited with code 1.' in result.executionOutput
    # launcher frames must not leak into the user's stack trace
    assert 'at Crash.main' in result.executionOutput
    assert '__SandboxProbe' not in result.executionOutput
    assert 'reflect.' not in result.executionOutput
