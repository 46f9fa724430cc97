import shutil

import pytest

from dispatcher.constant import StageStatus
from runner.result import StageResult

HELLO_WORLD = ('public class Hello { public static void main(String[] a){ '
               'System.out.println("Hello World"); } }')

JDK_AVAILABLE = (shutil.which('javac') is not None
                 and shutil.which('java') is not None)
requires_jdk = pytest.mark.skipif(not JDK_AVAILABLE,
                                  reason='javac/java not on PATH')


class FakeCompiler:
    """Writes a dummy class file instead of spawning javac."""

    def __init__(self, result=None):
        self.result = result or StageResult(
            status=StageStatus.SUCCESS,
            output='Compilation successful',
            elapsed_ms=120,
            exit_code=0,
        )
        self.calls = []

    def compile(self, source_file, working_dir, extra_sources=()):
        self.calls.append((source_file, working_dir, list(extra_sources)))
        if self.result.succeeded:
            class_file = working_dir / f'{source_file.stem}.class'
            class_file.write_bytes(b'\xca\xfe\xba\xbe' + source_file.stem.encode())
        return self.result


class FakeExecutor:

    use_memory_probe = False

    def __init__(self, result=None):
        self.result = result or StageResult(
            status=StageStatus.SUCCESS,
            output='Hello World',
            elapsed_ms=80,
            peak_memory_bytes=4096,
            exit_code=0,
        )
        self.calls = []

    def execute(self, class_name, working_dir):
        # class files must already be in place, compiled or restored
        self.calls.append((class_name, sorted(
            p.name for p in working_dir.glob('*.class'))))
        return self.result
