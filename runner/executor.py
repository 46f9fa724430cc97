from pathlib import Path

from dispatcher import config
from dispatcher.constant import StageStatus
from dispatcher.utils import logger
from runner import memory_probe
from runner.compiler import sanitized_env
from runner.process import run_bounded
from runner.result import StageResult

NO_OUTPUT_MESSAGE = 'Program executed successfully with no output.'


def _strip_jvm_banner(text: str) -> str:
    # JVM echoes injected options on stderr, never useful to the submitter
    lines = [
        line for line in text.splitlines()
        if not line.startswith('Picked up ') and 'JAVA_TOOL_OPTIONS' not in line
    ]
    return '\n'.join(lines)


class JavaExecutor:

    def __init__(
        self,
        java: str | None = None,
        timeout: int | None = None,
        max_heap_mb: int | None = None,
        stack_size_kb: int | None = None,
        max_metaspace_mb: int | None = None,
        output_limit: int | None = None,
        use_memory_probe: bool | None = None,
        sample_interval_ms: int | None = None,
        placeholder_memory_bytes: int | None = None,
    ):
        self.java = java or config.JAVA_BIN
        self.timeout = timeout or config.EXECUTE_TIMEOUT
        self.max_heap_mb = max_heap_mb or config.MAX_HEAP_MB
        self.stack_size_kb = stack_size_kb or config.STACK_SIZE_KB
        self.max_metaspace_mb = max_metaspace_mb or config.MAX_METASPACE_MB
        self.output_limit = output_limit or config.OUTPUT_LIMIT_BYTES
        self.use_memory_probe = (config.MEMORY_PROBE
                                 if use_memory_probe is None else
                                 use_memory_probe)
        self.sample_interval_ms = (sample_interval_ms
                                   or config.MEMORY_SAMPLE_INTERVAL_MS)
        self.placeholder_memory_bytes = (
            config.PLACEHOLDER_MEMORY_BYTES
            if placeholder_memory_bytes is None else placeholder_memory_bytes)

    def _probe_available(self, working_dir: Path) -> bool:
        probe_class = working_dir / f'{memory_probe.PROBE_CLASS}.class'
        return self.use_memory_probe and probe_class.exists()

    def build_command(self, class_name: str, working_dir: Path) -> list[str]:
        command = [
            self.java,
            '-Xms8m',
            f'-Xmx{self.max_heap_mb}m',
            f'-Xss{self.stack_size_kb}k',
            '-XX:+UseSerialGC',
            f'-XX:MaxMetaspaceSize={self.max_metaspace_mb}m',
            '-XX:+DisableAttachMechanism',
            '-Djava.awt.headless=true',
            '-cp',
            str(working_dir),
        ]
        if self._probe_available(working_dir):
            command += [
                memory_probe.PROBE_CLASS,
                class_name,
                str(working_dir / memory_probe.REPORT_FILE),
                str(self.sample_interval_ms),
            ]
        else:
            command.append(class_name)
        return command

    def execute(self, class_name: str, working_dir: Path) -> StageResult:
        working_dir = Path(working_dir)
        command = self.build_command(class_name, working_dir)
        try:
            proc = run_bounded(
                command,
                cwd=working_dir,
                timeout=self.timeout,
                env=sanitized_env(),
                output_limit=self.output_limit,
            )
        except OSError as exc:
            logger().error(f'failed to start runtime: {exc}')
            return StageResult(
                status=StageStatus.ERROR,
                output=f'Execution error: {exc}',
                peak_memory_bytes=0,
            )

        stdout = proc.stdout
        stderr = _strip_jvm_banner(proc.stderr)
        if proc.truncated:
            stdout += '\n[output truncated]'

        if proc.timed_out:
            logger().info(f'execution timed out [class={class_name}]')
            output = (f'{stdout}\nExecution timed out after {self.timeout} '
                      'seconds.\nCheck for infinite loops or optimize your code.')
            return StageResult(
                status=StageStatus.TIMEOUT,
                output=output.strip(),
                elapsed_ms=proc.elapsed_ms,
                peak_memory_bytes=0,
            )

        peak = memory_probe.read_peak_memory(
            working_dir,
            max_bytes=self.max_heap_mb * 1024 * 1024,
            placeholder=self.placeholder_memory_bytes,
        )
        if proc.exit_code == 0:
            return StageResult(
                status=StageStatus.SUCCESS,
                output=stdout.strip() or NO_OUTPUT_MESSAGE,
                elapsed_ms=proc.elapsed_ms,
                peak_memory_bytes=peak,
                exit_code=0,
            )

        logger().info(
            f'execution failed [class={class_name}, exit={proc.exit_code}]')
        sections = []
        if stdout.strip():
            sections.append(f'[stdout]\n{stdout.strip()}')
        if stderr.strip():
            sections.append(f'[stderr]\n{stderr.strip()}')
        sections.append(f'Process exited with code {proc.exit_code}.')
        return StageResult(
            status=StageStatus.FAILED,
            output='\n\n'.join(sections),
            elapsed_ms=proc.elapsed_ms,
            peak_memory_bytes=peak,
            exit_code=proc.exit_code,
        )
