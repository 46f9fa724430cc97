from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .constant import FailureKind


class SubmissionResult(BaseModel):
    compilationOutput: str = ''
    compilationSuccess: bool = False
    executionOutput: str = ''
    executionSuccess: bool = False
    compilationTimeMs: int = 0
    executionTimeMs: int = 0
    peakMemoryBytes: int = 0
    # compile output was restored from the artifact cache
    cached: bool = False
    failureKind: FailureKind = FailureKind.NONE


class CodeSnippet(BaseModel):
    id: Optional[int] = None
    title: Optional[str] = None
    sourceCode: str = ''
    language: str = 'java'
    createdAt: datetime = Field(default_factory=datetime.now)

    @field_validator('sourceCode', mode='before')
    @classmethod
    def _coerce_source(cls, v):
        # a missing/null body is reported by the pipeline as empty source
        return '' if v is None else v

    @field_validator('language')
    @classmethod
    def _only_java(cls, v):
        if v.lower() != 'java':
            raise ValueError(f'unsupported language: {v}')
        return v.lower()

    def with_result(self, result: SubmissionResult) -> dict:
        payload = self.model_dump(mode='json')
        payload.update(result.model_dump(mode='json'))
        return payload
