"""
Retry-verify engine.

Runs a state-changing action, lets the network activity it triggered settle,
verifies the result and repeats the whole cycle when verification fails:

    attempt k = 1 .. max_retries + 1
      clear (k > 1, built-in text fill only)
      act -> wait_after_action -> wait for in-flight requests
          -> wait_before_verify -> verify
      success: return   |   failure: retry_delay, next attempt

Per-attempt failures (action errors, verification mismatches) are caught
and retried. Only FillConfigurationError escapes.
"""

import logging
import re
from contextlib import nullcontext
from dataclasses import dataclass, fields, replace
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union

from .errors import FillConfigurationError, error_text
from .events import InFlightCounter, wait_for_quiescence

logger = logging.getLogger(__name__)

CLEAR_SETTLE_MS = 100

FillAction = Callable[[Any, Any], Awaitable[None]]
VerifyAction = Callable[[Any, Any], Awaitable[bool]]

# Legacy option names accepted by RetryConfig.from_dict
OPTION_ALIASES = {
    "wait_after_blur": "wait_after_action",
    "wait_for_requests": "track_requests",
    "request_timeout": "request_quiescence_timeout",
    "clear_on_retry": "clear_before_retry",
    "fill_action": "action",
    "verify_action": "verify",
}


def _snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


@dataclass
class RetryConfig:
    """
    Configuration for one retry-verify invocation. Durations are in milliseconds.

    ``debug`` raises the attempt logs from DEBUG to INFO on the
    ``settlewright`` logger. They are only shown once a handler is installed
    (``configure_logging()``, or pytest's log capture); Python's fallback
    handler drops anything below WARNING.
    """
    max_retries: int = 3
    retry_delay: float = 500
    wait_after_action: float = 300  # let blur/change handlers fire
    wait_before_verify: float = 200  # let the DOM catch up
    track_requests: bool = True
    request_quiescence_timeout: float = 3000
    clear_before_retry: bool = True
    action: Optional[FillAction] = None
    verify: Optional[VerifyAction] = None
    debug: bool = False

    def __post_init__(self):
        if self.max_retries < 0:
            raise FillConfigurationError(f"max_retries must be >= 0, got {self.max_retries}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @staticmethod
    def normalize_options(options: Mapping[str, Any]) -> Dict[str, Any]:
        """Map snake_case, camelCase and legacy option names onto field names."""
        known = {f.name for f in fields(RetryConfig)}
        normalized = {}
        for key, value in options.items():
            name = _snake_case(key)
            name = OPTION_ALIASES.get(name, name)
            if name not in known:
                raise FillConfigurationError(f"Unknown fill option: {key}")
            normalized[name] = value
        return normalized

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "RetryConfig":
        """Create RetryConfig from an options dictionary."""
        return cls(**cls.normalize_options(options))

    @classmethod
    def merge(
        cls,
        base: Union["RetryConfig", Mapping[str, Any], None],
        overrides: Union["RetryConfig", Mapping[str, Any], None],
    ) -> "RetryConfig":
        """
        Combine a global config with per-field options.

        Only keys present in a mapping override ``base``. A RetryConfig given
        as ``overrides`` is taken as a complete config and wins outright.
        """
        if isinstance(overrides, RetryConfig):
            return overrides
        if base is None:
            config = cls()
        elif isinstance(base, RetryConfig):
            config = base
        else:
            config = cls.from_dict(base)
        if overrides:
            config = replace(config, **cls.normalize_options(overrides))
        return config


@dataclass(frozen=True)
class FillResult:
    """Outcome of one fill_with_retry call."""
    success: bool
    attempts: int
    final_value: Any
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "attempts": self.attempts,
            "final_value": self.final_value,
            "error": self.error,
        }


class RetryVerifier:
    """
    Executes the attempt loop for one target.

    The strategy supplies the field-specific parts (see form_fill):
    ``validate``, ``perform``, ``verify``, ``can_clear``, ``clear``,
    ``read_value`` and ``final_value``.

    Usage:
        verifier = RetryVerifier(locator.page, RetryConfig(max_retries=2))
        result = await verifier.run(locator, "hello", TextFill())
    """

    def __init__(self, page, config: Optional[RetryConfig] = None):
        self.page = page
        self.config = config or RetryConfig()

    def _log(self, message: str, *args):
        logger.log(logging.INFO if self.config.debug else logging.DEBUG, message, *args)

    async def _sleep(self, ms: float):
        await self.page.wait_for_timeout(ms)

    async def _safe_read(self, strategy, target, default: Any) -> Any:
        try:
            return await strategy.read_value(target)
        except Exception:
            return default

    async def _attempt(self, target, value, strategy, attempt: int) -> Optional[str]:
        """Run one cycle. Returns None on success, else a mismatch description."""
        config = self.config
        tracker = InFlightCounter(self.page) if config.track_requests else nullcontext()
        with tracker as counter:
            if attempt > 1 and config.clear_before_retry and strategy.can_clear(value):
                self._log("  - clearing field")
                await strategy.clear(target)
                await self._sleep(CLEAR_SETTLE_MS)

            self._log("  - performing action")
            await strategy.perform(target, value)

            self._log("  - waiting %sms after action", config.wait_after_action)
            await self._sleep(config.wait_after_action)

            if counter is not None and counter.active > 0:
                self._log("  - waiting for %d request(s) to finish", counter.active)
                settled = await wait_for_quiescence(self.page, counter, config.request_quiescence_timeout)
                if settled:
                    self._log("  - all requests finished")
                else:
                    self._log("  - request wait timed out, %d still in flight", counter.active)

            await self._sleep(config.wait_before_verify)

            self._log("  - verifying")
            if await strategy.verify(target, value):
                return None

        actual = await self._safe_read(strategy, target, "(unreadable)")
        return f'Value mismatch: expected "{value}", actual "{actual}"'

    async def run(self, target, value, strategy) -> FillResult:
        """
        Act on ``target`` until ``strategy.verify`` accepts ``value``.

        Returns:
            FillResult; never raises for exhausted retries.

        Raises:
            FillConfigurationError: the strategy cannot verify ``value``.
        """
        config = self.config
        strategy.validate(value)

        last_error = ""
        for attempt in range(1, config.max_attempts + 1):
            self._log("Attempt %d/%d: filling %r", attempt, config.max_attempts, value)
            try:
                mismatch = await self._attempt(target, value, strategy, attempt)
            except FillConfigurationError:
                raise
            except Exception as e:
                last_error = error_text(e)
                self._log("  x action failed: %s", last_error)
            else:
                if mismatch is None:
                    try:
                        final_value = await strategy.final_value(target, value)
                    except Exception:
                        final_value = value
                    self._log("Filled after %d attempt(s)", attempt)
                    return FillResult(success=True, attempts=attempt, final_value=final_value)
                last_error = mismatch
                self._log("  x %s", last_error)

            if attempt <= config.max_retries:
                self._log("  - retrying in %sms", config.retry_delay)
                await self._sleep(config.retry_delay)

        self._log("Fill failed after %d attempt(s)", config.max_attempts)
        return FillResult(
            success=False,
            attempts=config.max_attempts,
            final_value=await self._safe_read(strategy, target, ""),
            error=last_error or "Unknown error",
        )
