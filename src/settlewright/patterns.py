"""
URL pattern matching for network capture.

A pattern is either a plain string (substring containment) or a compiled
regular expression. No normalization is applied: matching is case-sensitive
and trailing slashes are significant.
"""

import re
from typing import Pattern, Union

UrlPattern = Union[str, Pattern[str]]


def matches(url: str, pattern: UrlPattern) -> bool:
    """Return True if ``url`` satisfies ``pattern``."""
    if isinstance(pattern, str):
        return pattern in url
    return pattern.search(url) is not None


def describe_pattern(pattern: UrlPattern) -> str:
    """Human readable form used in logs and error messages."""
    if isinstance(pattern, str):
        return f'"{pattern}"'
    return f"/{pattern.pattern}/"


def compile_pattern(pattern: str, regex: bool = False) -> UrlPattern:
    """Build a UrlPattern from command-line style input."""
    if regex:
        return re.compile(pattern)
    return pattern
