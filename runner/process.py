"""
Run one external process with a wall-clock limit and bounded output capture.

The child gets its own session so a timeout can SIGKILL the whole process
group, not only the direct child. Each output stream is drained by a reader
thread that keeps at most `output_limit` bytes and throws the rest away, so
a program printing forever can neither fill memory nor block on a full pipe.
"""

from __future__ import annotations

import os
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import IO, Mapping, Sequence

from dispatcher import config

_CHUNK_SIZE = 8192
# reader threads get this long to finish after the process is gone
_DRAIN_GRACE_SEC = 2.0


@dataclass
class ProcessResult:
    stdout: str
    stderr: str
    exit_code: int | None
    timed_out: bool
    truncated: bool
    elapsed_ms: int


class _BoundedReader(threading.Thread):

    def __init__(self, stream: IO[bytes], limit: int):
        super().__init__(daemon=True)
        self.stream = stream
        self.limit = limit
        self.buffer = bytearray()
        self.truncated = False

    def run(self):
        try:
            while True:
                chunk = self.stream.read1(_CHUNK_SIZE)
                if not chunk:
                    break
                room = self.limit - len(self.buffer)
                if room > 0:
                    self.buffer += chunk[:room]
                if len(chunk) > room:
                    self.truncated = True
        except (OSError, ValueError):
            # pipe closed underneath us after a kill
            pass
        finally:
            try:
                self.stream.close()
            except OSError:
                pass

    def text(self) -> str:
        return bytes(self.buffer).decode('utf-8', 'replace')


def _kill_group(proc: subprocess.Popen):
    if os.name != 'nt':
        try:
            os.killpg(proc.pid, signal.SIGKILL)
            return
        except (ProcessLookupError, PermissionError):
            pass
    try:
        proc.kill()
    except ProcessLookupError:
        pass


def _reap_group(proc: subprocess.Popen):
    if os.name == 'nt':
        return
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


def run_bounded(
    command: Sequence[str],
    cwd: str | os.PathLike,
    timeout: float,
    env: Mapping[str, str] | None = None,
    merge_stderr: bool = False,
    output_limit: int | None = None,
) -> ProcessResult:
    """
    Start `command` and block until it exits or `timeout` seconds pass.

    Raises OSError when the process cannot be started at all; every other
    outcome (non-zero exit, timeout, truncated output) is reported in the
    returned ProcessResult.
    """
    limit = output_limit or config.OUTPUT_LIMIT_BYTES
    start = time.perf_counter()
    proc = subprocess.Popen(
        list(command),
        cwd=str(cwd),
        env=dict(env) if env is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
        start_new_session=os.name != 'nt',
    )
    readers = [_BoundedReader(proc.stdout, limit)]
    if not merge_stderr:
        readers.append(_BoundedReader(proc.stderr, limit))
    for reader in readers:
        reader.start()

    timed_out = False
    try:
        proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        _kill_group(proc)
        proc.wait()
    finally:
        if proc.poll() is None:
            _kill_group(proc)
            proc.wait()
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    # anything the child left behind in its session dies with it
    _reap_group(proc)

    for reader in readers:
        reader.join(timeout=_DRAIN_GRACE_SEC)

    stdout_reader = readers[0]
    stderr_reader = readers[1] if len(readers) > 1 else None
    return ProcessResult(
        stdout=stdout_reader.text(),
        stderr=stderr_reader.text() if stderr_reader else '',
        exit_code=None if timed_out else proc.returncode,
        timed_out=timed_out,
        truncated=any(r.truncated for r in readers),
        elapsed_ms=elapsed_ms,
    )
