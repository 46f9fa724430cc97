import os
from pathlib import Path
from typing import Sequence

from dispatcher import config
from dispatcher.constant import StageStatus
from dispatcher.utils import logger
from runner.process import run_bounded
from runner.result import StageResult

COMPILE_SUCCESS_MESSAGE = 'Compilation successful'

# injected JVM options would also reach the compiler's own JVM
STRIPPED_ENV_VARS = (
    'JAVA_TOOL_OPTIONS',
    '_JAVA_OPTIONS',
    'JDK_JAVA_OPTIONS',
    'CLASSPATH',
)


def sanitized_env() -> dict:
    env = os.environ.copy()
    for key in STRIPPED_ENV_VARS:
        env.pop(key, None)
    return env


class JavaCompiler:

    def __init__(
        self,
        javac: str | None = None,
        timeout: int | None = None,
        output_limit: int | None = None,
    ):
        self.javac = javac or config.JAVAC_BIN
        self.timeout = timeout or config.COMPILE_TIMEOUT
        self.output_limit = output_limit or config.OUTPUT_LIMIT_BYTES

    def build_command(
        self,
        source_file: Path,
        working_dir: Path,
        extra_sources: Sequence[Path] = (),
    ) -> list[str]:
        return [
            self.javac,
            '-d',
            str(working_dir),
            '-encoding',
            'UTF-8',
            '-nowarn',
            '-g:none',
            # diagnostics in English regardless of host locale
            '-J-Duser.language=en',
            str(source_file),
            *(str(p) for p in extra_sources),
        ]

    def compile(
        self,
        source_file: Path,
        working_dir: Path,
        extra_sources: Sequence[Path] = (),
    ) -> StageResult:
        command = self.build_command(source_file, working_dir, extra_sources)
        try:
            proc = run_bounded(
                command,
                cwd=working_dir,
                timeout=self.timeout,
                env=sanitized_env(),
                merge_stderr=True,
                output_limit=self.output_limit,
            )
        except OSError as exc:
            logger().error(f'failed to start compiler: {exc}')
            return StageResult(
                status=StageStatus.ERROR,
                output=f'Compilation error: {exc}',
            )

        output = proc.stdout
        if proc.truncated:
            output += '\n[output truncated]'
        if proc.timed_out:
            logger().info(f'compilation timed out [dir={working_dir}]')
            output += (f'\nCompilation timed out after {self.timeout} seconds.'
                       '\nYour code might be too complex or contain an error.')
            return StageResult(
                status=StageStatus.TIMEOUT,
                output=output.lstrip('\n'),
                elapsed_ms=proc.elapsed_ms,
            )
        if proc.exit_code == 0:
            return StageResult(
                status=StageStatus.SUCCESS,
                output=output if output.strip() else COMPILE_SUCCESS_MESSAGE,
                elapsed_ms=proc.elapsed_ms,
                exit_code=0,
            )
        logger().info(
            f'compilation failed [dir={working_dir}, exit={proc.exit_code}]')
        return StageResult(
            status=StageStatus.FAILED,
            output=output,
            elapsed_ms=proc.elapsed_ms,
            exit_code=proc.exit_code,
        )
