from dataclasses import dataclass
from typing import Optional

from dispatcher.constant import StageStatus


@dataclass(frozen=True)
class StageResult:
    status: StageStatus
    output: str
    elapsed_ms: int = 0
    peak_memory_bytes: Optional[int] = None
    exit_code: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status in (StageStatus.SUCCESS, StageStatus.CACHED)
