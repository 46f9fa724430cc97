"""
Lightweight text analysis of a Java submission.

Only what the pipeline needs before any process is spawned: the class to
name the source file after, whether there is a `main` to run, and the
fingerprint used as artifact cache key.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Optional

from . import config

PUBLIC_CLASS_PATTERN = re.compile(r'(?m)^\s*public\s+class\s+(\w+)\s*\{')
CLASS_NAME_PATTERN = re.compile(r'(?m)^\s*(?:public\s+)?class\s+(\w+)')
MAIN_METHOD_PATTERN = re.compile(
    r'public\s+static\s+void\s+main\s*\(\s*String\s*\[\s*\]')


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str


def _is_blank(source: Optional[str]) -> bool:
    return source is None or not source.strip()


def extract_class_name(source: Optional[str]) -> Optional[str]:
    if _is_blank(source):
        return None
    match = PUBLIC_CLASS_PATTERN.search(source)
    if match:
        return match.group(1)
    match = CLASS_NAME_PATTERN.search(source)
    if match:
        return match.group(1)
    return None


def has_main_method(source: Optional[str]) -> bool:
    if _is_blank(source):
        return False
    return MAIN_METHOD_PATTERN.search(source) is not None


def fingerprint(source: str) -> str:
    return hashlib.sha256(source.encode('utf-8')).hexdigest()


def validate(
    source: Optional[str],
    max_size_kb: int | None = None,
) -> ValidationResult:
    max_size_kb = max_size_kb or config.MAX_SOURCE_SIZE_KB
    if _is_blank(source):
        return ValidationResult(False, 'Error: Source code cannot be empty')
    if len(source.encode('utf-8')) > max_size_kb * 1024:
        return ValidationResult(
            False,
            f'Error: Source code exceeds maximum size of {max_size_kb}KB',
        )
    if extract_class_name(source) is None:
        return ValidationResult(
            False,
            'Error: No class found in your code.\n'
            'Please ensure your code contains a class declaration like '
            '\'public class YourClassName {...}\'',
        )
    return ValidationResult(True, 'Valid')
