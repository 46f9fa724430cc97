import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from . import config
from .pipeline import CompilePipeline
from .snippet import SubmissionResult
from .utils import logger


class Dispatcher:
    """
    Bounded worker pool in front of the pipeline.

    Each submission spawns up to two JVMs, so the number of workers caps the
    subprocess load on the host, and the queue limit (running + waiting)
    pushes back on callers instead of growing without bound.
    """

    def __init__(
        self,
        dispatcher_config: str | None = None,
        pipeline: CompilePipeline | None = None,
    ):
        queue_limit, worker_limit = config.get_dispatcher_limits(
            dispatcher_config)
        self.MAX_TASK_COUNT = queue_limit
        self.MAX_WORKER_COUNT = worker_limit
        self.pipeline = pipeline or CompilePipeline()
        self.do_run = True
        self._executor = ThreadPoolExecutor(
            max_workers=self.MAX_WORKER_COUNT,
            thread_name_prefix='sandbox-worker',
        )
        self.pending_lock = threading.Lock()
        self.pending = 0

    def load(self) -> float:
        with self.pending_lock:
            return self.pending / self.MAX_TASK_COUNT

    def submit(self, source_text: str) -> 'Future[SubmissionResult]':
        if not self.do_run:
            raise RuntimeError('dispatcher is stopped')
        with self.pending_lock:
            if self.pending >= self.MAX_TASK_COUNT:
                raise queue.Full
            self.pending += 1
        try:
            future = self._executor.submit(self._run, source_text)
        except RuntimeError:
            self._done(None)
            raise
        future.add_done_callback(self._done)
        return future

    def compile_and_run(self, source_text: str) -> SubmissionResult:
        return self.submit(source_text).result()

    def stop(self, wait: bool = True):
        self.do_run = False
        self._executor.shutdown(wait=wait)
        logger().debug('dispatcher stopped')

    def _run(self, source_text: str) -> SubmissionResult:
        return self.pipeline.compile_and_run(source_text)

    def _done(self, _future):
        with self.pending_lock:
            self.pending -= 1
