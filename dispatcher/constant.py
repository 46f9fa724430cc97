from enum import Enum, IntEnum


class StageStatus(IntEnum):
    SUCCESS = 0
    CACHED = 1
    SKIPPED = 2
    FAILED = 3
    TIMEOUT = 4
    ERROR = 5


class FailureKind(str, Enum):
    NONE = 'none'
    INPUT_ERROR = 'input_error'
    COMPILE_TIMEOUT = 'compile_timeout'
    COMPILE_FAILURE = 'compile_failure'
    EXECUTE_TIMEOUT = 'execute_timeout'
    EXECUTE_FAILURE = 'execute_failure'
    INFRASTRUCTURE_ERROR = 'infrastructure_error'


class PipelineState(IntEnum):
    RECEIVED = 0
    WORKSPACE_CREATED = 1
    CACHE_HIT = 2
    COMPILING = 3
    COMPILE_DONE = 4
    EXECUTING = 5
    DONE = 6
    ERRORED = 7
