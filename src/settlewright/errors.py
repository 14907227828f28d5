"""
Exception types raised by settlewright.

Per-attempt failures inside the retry engine are never raised; only the
conditions below reach the caller.
"""

from typing import Any, Optional


class SettlewrightError(Exception):
    """Base class for all settlewright errors."""


class CaptureTimeoutError(SettlewrightError, TimeoutError):
    """No matching response was observed within the requested window."""

    def __init__(self, pattern: str, timeout_ms: float, observed_requests: int = 0):
        self.pattern = pattern
        self.timeout_ms = timeout_ms
        self.observed_requests = observed_requests
        message = f"Timed out after {timeout_ms}ms waiting for a response matching {pattern}"
        if observed_requests:
            message += f" ({observed_requests} matching request(s) seen without a captured response)"
        super().__init__(message)


class FillConfigurationError(SettlewrightError, ValueError):
    """The fill cannot be verified or the options are invalid. Never retried."""


class FillAssertionError(SettlewrightError, AssertionError):
    """Raised by fill_and_assert when every attempt failed."""

    def __init__(self, result, expected: Any):
        self.result = result
        self.expected = expected
        super().__init__(
            f"Form fill failed: {result.error}\n"
            f"Attempts: {result.attempts}\n"
            f'Expected: "{expected}"\n'
            f'Actual: "{result.final_value}"'
        )


def error_text(exc: BaseException, default: Optional[str] = None) -> str:
    """Render an exception for a FillResult error field."""
    text = str(exc).strip()
    if text:
        return text
    return default or exc.__class__.__name__
