import time
from zipfile import BadZipFile

from . import source_analyzer
from .artifact_cache import ArtifactCache
from .constant import PipelineState, StageStatus
from .file_manager import Workspace, WorkspaceManager
from .result_factory import (
    CACHED_COMPILE_MESSAGE,
    make_input_error,
    make_no_main_message,
    make_server_error,
    make_submission_result,
)
from .snippet import SubmissionResult
from .utils import logger
from runner import memory_probe
from runner.compiler import JavaCompiler
from runner.executor import JavaExecutor
from runner.result import StageResult


class CompilePipeline:
    """
    Compile and run one Java submission inside a throw-away workspace.

    Received -> WorkspaceCreated -> (CacheHit | Compiling) -> CompileDone
    -> Executing -> Done, with Errored reachable from every step. Whatever
    path is taken, the workspace is destroyed and a SubmissionResult is
    returned; nothing is raised to the caller.
    """

    def __init__(
        self,
        workspace_manager: WorkspaceManager | None = None,
        cache: ArtifactCache | None = None,
        compiler: JavaCompiler | None = None,
        executor: JavaExecutor | None = None,
    ):
        self.workspace_manager = workspace_manager or WorkspaceManager()
        self.cache = cache or ArtifactCache()
        self.compiler = compiler or JavaCompiler()
        self.executor = executor or JavaExecutor()

    def compile_and_run(self, source_text: str) -> SubmissionResult:
        fingerprint = None
        state = PipelineState.RECEIVED
        try:
            validation = source_analyzer.validate(source_text)
            if not validation.valid:
                logger().info(f'reject submission: {validation.message}')
                return make_input_error(validation.message)
            class_name = source_analyzer.extract_class_name(source_text)
            fingerprint = source_analyzer.fingerprint(source_text)
        except Exception as exc:
            logger().error(f'failed to analyze submission: {exc}',
                           exc_info=True)
            return make_server_error(str(exc))

        workspace = None
        try:
            workspace = self.workspace_manager.create()
            state = self._transit(state, PipelineState.WORKSPACE_CREATED,
                                  fingerprint)
            return self._process(source_text, class_name, fingerprint,
                                 workspace, state)
        except Exception as exc:
            self._transit(state, PipelineState.ERRORED, fingerprint)
            logger().error(f'pipeline error [fingerprint={fingerprint}]: {exc}',
                           exc_info=True)
            return make_server_error(str(exc))
        finally:
            if workspace is not None:
                try:
                    self.workspace_manager.destroy(workspace)
                except Exception as exc:
                    logger().warning(f'workspace cleanup failed: {exc}')

    def _process(
        self,
        source_text: str,
        class_name: str,
        fingerprint: str,
        workspace: Workspace,
        state: PipelineState,
    ) -> SubmissionResult:
        source_file = self.workspace_manager.write_text(
            workspace, f'{class_name}.java', source_text)

        compile_result = None
        artifact = self.cache.get(fingerprint)
        if artifact is not None:
            state = self._transit(state, PipelineState.CACHE_HIT, fingerprint)
            try:
                compile_result = self._restore(workspace, artifact.bytecode)
            except (BadZipFile, ValueError, OSError) as exc:
                # treat an unusable entry as a miss
                logger().warning(
                    f'drop cached artifact [fingerprint={fingerprint}]: {exc}')
                self.cache.discard(fingerprint)
        if compile_result is None:
            state = self._transit(state, PipelineState.COMPILING, fingerprint)
            compile_result = self._compile(source_file, workspace)
            if compile_result.succeeded:
                self.cache.put(
                    fingerprint,
                    self.workspace_manager.pack_class_files(workspace),
                )
        state = self._transit(state, PipelineState.COMPILE_DONE, fingerprint)

        if not compile_result.succeeded:
            self._transit(state, PipelineState.DONE, fingerprint)
            return make_submission_result(compile_result)

        if not source_analyzer.has_main_method(source_text):
            self._transit(state, PipelineState.DONE, fingerprint)
            return make_submission_result(
                compile_result,
                skipped_message=make_no_main_message(class_name),
            )

        state = self._transit(state, PipelineState.EXECUTING, fingerprint)
        execute_result = self.executor.execute(class_name, workspace.path)
        self._transit(state, PipelineState.DONE, fingerprint)
        return make_submission_result(compile_result, execute_result)

    def _compile(self, source_file, workspace: Workspace) -> StageResult:
        extra_sources = []
        if self.executor.use_memory_probe:
            extra_sources.append(
                self.workspace_manager.write_text(
                    workspace,
                    memory_probe.PROBE_SOURCE_FILE,
                    memory_probe.PROBE_SOURCE,
                ))
        return self.compiler.compile(source_file, workspace.path,
                                     extra_sources)

    def _restore(self, workspace: Workspace, bytecode: bytes) -> StageResult:
        start = time.perf_counter()
        self.workspace_manager.unpack_class_files(workspace, bytecode)
        return StageResult(
            status=StageStatus.CACHED,
            output=CACHED_COMPILE_MESSAGE,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )

    @staticmethod
    def _transit(
        current: PipelineState,
        target: PipelineState,
        fingerprint: str | None,
    ) -> PipelineState:
        logger().debug(
            f'[pipeline] {current.name} -> {target.name} [fingerprint={fingerprint}]'
        )
        return target
