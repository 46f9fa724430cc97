import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

from . import config
from .utils import logger


@dataclass(frozen=True)
class CompiledArtifact:
    fingerprint: str
    bytecode: bytes


@dataclass
class _Entry:
    artifact: CompiledArtifact
    expires_at: float


class ArtifactCache:
    """
    In-memory, content-addressed cache of compiled class bundles.

    Bounded three ways: entry count (LRU), total bytes and per-entry TTL.
    A miss is always a legal answer, callers simply compile again. The lock
    only guards the dictionary, compiles never run under it.
    """

    def __init__(
        self,
        max_entries: int | None = None,
        max_bytes: int | None = None,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = (config.CACHE_MAX_ENTRIES
                            if max_entries is None else max_entries)
        self.max_bytes = (config.CACHE_MAX_BYTES
                          if max_bytes is None else max_bytes)
        self.ttl = config.CACHE_TTL if ttl is None else ttl
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._bytes = 0
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> Optional[CompiledArtifact]:
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                self._drop(fingerprint)
                logger().debug(f'artifact expired [fingerprint={fingerprint}]')
                return None
            self._entries.move_to_end(fingerprint)
            return entry.artifact

    def put(self, fingerprint: str, bytecode: bytes):
        size = len(bytecode)
        if size > self.max_bytes:
            logger().info(
                f'artifact too large to cache [fingerprint={fingerprint}, size={size}]'
            )
            return
        artifact = CompiledArtifact(fingerprint=fingerprint,
                                    bytecode=bytes(bytecode))
        with self._lock:
            if fingerprint in self._entries:
                self._drop(fingerprint)
            self._entries[fingerprint] = _Entry(
                artifact=artifact,
                expires_at=self._clock() + self.ttl,
            )
            self._bytes += size
            self._evict()

    def discard(self, fingerprint: str):
        with self._lock:
            if fingerprint in self._entries:
                self._drop(fingerprint)

    def size(self) -> int:
        with self._lock:
            return len(self._entries)

    def total_bytes(self) -> int:
        with self._lock:
            return self._bytes

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._bytes = 0

    def __contains__(self, fingerprint: str) -> bool:
        return self.get(fingerprint) is not None

    # caller holds the lock
    def _drop(self, fingerprint: str):
        entry = self._entries.pop(fingerprint)
        self._bytes -= len(entry.artifact.bytecode)

    def _evict(self):
        while (len(self._entries) > self.max_entries
               or self._bytes > self.max_bytes):
            eldest, _ = next(iter(self._entries.items()))
            self._drop(eldest)
            logger().debug(f'artifact evicted [fingerprint={eldest}]')
