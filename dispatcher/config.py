import json
import os
import tempfile
from pathlib import Path

# workspace root, every submission gets its own directory below it
WORKSPACE_ROOT = Path(os.getenv(
    'WORKSPACE_ROOT',
    tempfile.gettempdir(),
))
LOG_DIR = Path(os.getenv(
    'LOG_DIR',
    'logs',
))

# toolchain
JAVAC_BIN = os.getenv('JAVAC_BIN', 'javac')
JAVA_BIN = os.getenv('JAVA_BIN', 'java')

# ============================================================
# Stage Limits
# ============================================================
COMPILE_TIMEOUT = int(os.getenv('COMPILE_TIMEOUT', '10'))  # sec.
EXECUTE_TIMEOUT = int(os.getenv('EXECUTE_TIMEOUT', '10'))  # sec.
MAX_HEAP_MB = int(os.getenv('MAX_HEAP_MB', '128'))
STACK_SIZE_KB = int(os.getenv('STACK_SIZE_KB', '1024'))
MAX_METASPACE_MB = int(os.getenv('MAX_METASPACE_MB', '64'))
# per stream, extra output is drained and dropped
OUTPUT_LIMIT_BYTES = int(os.getenv('OUTPUT_LIMIT_BYTES', str(1024 * 1024)))
MAX_SOURCE_SIZE_KB = int(os.getenv('MAX_SOURCE_SIZE_KB', '500'))

# ============================================================
# Artifact Cache
# ============================================================
CACHE_MAX_ENTRIES = int(os.getenv('CACHE_MAX_ENTRIES', '100'))
CACHE_MAX_BYTES = int(os.getenv('CACHE_MAX_BYTES', str(64 * 1024 * 1024)))
CACHE_TTL = int(os.getenv('CACHE_TTL', '600'))  # sec.

# ============================================================
# Memory Measurement
# ============================================================
MEMORY_PROBE = os.getenv('MEMORY_PROBE', 'true').lower() == 'true'
MEMORY_SAMPLE_INTERVAL_MS = int(os.getenv('MEMORY_SAMPLE_INTERVAL_MS', '10'))
# reported when the probe gives no usable reading
PLACEHOLDER_MEMORY_BYTES = int(os.getenv('PLACEHOLDER_MEMORY_BYTES',
                                         '150000'))

_DEFAULT_DISPATCHER_CONFIG_PATH = Path(
    os.getenv('DISPATCHER_CONFIG', '.config/dispatcher.json'))


def _load_dispatcher_config(path: Path) -> dict:
    try:
        with path.open() as f:
            return json.load(f)
    except FileNotFoundError:
        return {}
    except json.JSONDecodeError:
        return {}


def get_dispatcher_limits(
        config_path: str | Path | None = None) -> tuple[int, int]:
    """Return (queue_size, worker_count); environment overrides the file."""
    path = Path(
        config_path) if config_path else _DEFAULT_DISPATCHER_CONFIG_PATH
    cfg = _load_dispatcher_config(path) if path else {}
    queue_default = cfg.get('QUEUE_SIZE', 64)
    worker_default = cfg.get('MAX_WORKERS') or os.cpu_count() or 1
    queue_size = int(os.getenv('QUEUE_SIZE', queue_default))
    worker_count = int(os.getenv('MAX_WORKERS', worker_default))
    return max(1, queue_size), max(1, worker_count)
