"""
Factory functions for creating SubmissionResult objects.

Every exit path of the pipeline ends in one of these, so the external
result always has the same shape:
- input rejected before any workspace exists
- server-side fault
- compile / execute stage outcomes
"""

from typing import Optional

from .constant import FailureKind, StageStatus
from .snippet import SubmissionResult
from runner.result import StageResult

EXECUTION_SKIPPED_MESSAGE = 'Compilation failed, execution skipped.'
CACHED_COMPILE_MESSAGE = 'Compilation successful (cached)'


def make_input_error(message: str) -> SubmissionResult:
    """
    Build the result for a submission rejected before compilation.

    Args:
        message: Reason shown as compilation output

    Returns:
        SubmissionResult with both success flags false
    """
    return SubmissionResult(
        compilationOutput=message,
        compilationSuccess=False,
        executionOutput=EXECUTION_SKIPPED_MESSAGE,
        executionSuccess=False,
        failureKind=FailureKind.INPUT_ERROR,
    )


def make_server_error(message: str) -> SubmissionResult:
    return SubmissionResult(
        compilationOutput=f'Server error: {message}',
        compilationSuccess=False,
        executionOutput='',
        executionSuccess=False,
        failureKind=FailureKind.INFRASTRUCTURE_ERROR,
    )


def make_no_main_message(class_name: str) -> str:
    return (f'Class \'{class_name}\' compiled successfully, '
            'but no main method found.\n'
            'To run this code, add: public static void main(String[] args) {...}')


def compile_failure_kind(compile_result: StageResult) -> FailureKind:
    if compile_result.status == StageStatus.TIMEOUT:
        return FailureKind.COMPILE_TIMEOUT
    if compile_result.status == StageStatus.ERROR:
        return FailureKind.INFRASTRUCTURE_ERROR
    return FailureKind.COMPILE_FAILURE


def execute_failure_kind(execute_result: StageResult) -> FailureKind:
    if execute_result.status == StageStatus.TIMEOUT:
        return FailureKind.EXECUTE_TIMEOUT
    if execute_result.status == StageStatus.ERROR:
        return FailureKind.INFRASTRUCTURE_ERROR
    return FailureKind.EXECUTE_FAILURE


def make_submission_result(
    compile_result: StageResult,
    execute_result: Optional[StageResult] = None,
    skipped_message: str = EXECUTION_SKIPPED_MESSAGE,
) -> SubmissionResult:
    """
    Combine the two stage results into the external result.

    Args:
        compile_result: Outcome of compilation (or cache restore)
        execute_result: Outcome of execution, None when it did not run
        skipped_message: Execution output used when execute_result is None

    Returns:
        SubmissionResult
    """
    result = SubmissionResult(
        compilationOutput=compile_result.output,
        compilationSuccess=compile_result.succeeded,
        compilationTimeMs=compile_result.elapsed_ms,
        cached=compile_result.status == StageStatus.CACHED,
    )
    if not compile_result.succeeded:
        result.executionOutput = EXECUTION_SKIPPED_MESSAGE
        result.failureKind = compile_failure_kind(compile_result)
        return result
    if execute_result is None:
        result.executionOutput = skipped_message
        result.executionSuccess = True
        return result
    result.executionOutput = execute_result.output
    result.executionSuccess = execute_result.succeeded
    result.executionTimeMs = execute_result.elapsed_ms
    result.peakMemoryBytes = execute_result.peak_memory_bytes or 0
    if not execute_result.succeeded:
        result.failureKind = execute_failure_kind(execute_result)
    return result
