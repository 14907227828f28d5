"""
Form filling with retry and network settle detection.

Many forms validate or autosave on blur: the value is sent to the server and
the field may be rewritten, disabled or reset while the request is in
flight. These helpers fill a field, wait for that traffic to settle, verify
the value actually stuck and retry otherwise.

Usage:
    # Text input, default settings (3 retries, 500ms apart)
    await fill_and_assert(page.locator("#username"), "testuser")

    # Select
    await fill_with_retry(
        page.locator("#country"),
        "CN",
        fill_action=lambda loc, v: loc.select_option(v),
        verify_action=select_has_value,
    )

    # Checkbox
    await fill_and_assert(
        page.locator("#agree"),
        True,
        fill_action=lambda loc, v: loc.set_checked(v),
        verify_action=checkbox_is,
    )

    # Several fields, in order, without stopping at the first failure
    results = await fill_multiple(
        [FieldSpec(page.locator("#name"), "Zhang San"), FieldSpec(page.locator("#email"), "z@example.com")],
        {"max_retries": 2},
    )
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .errors import FillAssertionError, FillConfigurationError
from .retry import FillAction, FillResult, RetryConfig, RetryVerifier, VerifyAction

logger = logging.getLogger(__name__)

ConfigLike = Union[RetryConfig, Mapping[str, Any], None]


async def text_value_matches(locator, expected: str) -> bool:
    """Default predicate: exact input value and the field is not disabled (loading)."""
    if await locator.input_value() != expected:
        return False
    try:
        disabled = await locator.is_disabled()
    except Exception:
        disabled = False
    return not disabled


async def select_has_value(locator, expected: str) -> bool:
    return await locator.input_value() == expected


async def checkbox_is(locator, expected: bool) -> bool:
    return await locator.is_checked() == expected


class TextFill:
    """Built-in strategy for text inputs: ``fill`` then read ``input_value`` back."""

    def validate(self, value: Any):
        if not isinstance(value, str):
            raise FillConfigurationError(
                f"Non-string value {value!r} needs a custom verify action"
            )

    async def perform(self, locator, value: str):
        await locator.fill(value)

    async def verify(self, locator, value: str) -> bool:
        return await text_value_matches(locator, value)

    def can_clear(self, value: Any) -> bool:
        return isinstance(value, str)

    async def clear(self, locator):
        await locator.clear()

    async def read_value(self, locator) -> Any:
        return await locator.input_value()

    async def final_value(self, locator, value: Any) -> Any:
        return await locator.input_value()


@dataclass(frozen=True)
class CustomFill(TextFill):
    """
    Strategy built from user callbacks.

    A missing action falls back to ``fill`` for strings (and does nothing for
    other values); a missing verify falls back to the text predicate, which
    only works for strings.
    """
    action: Optional[FillAction] = None
    verify_action: Optional[VerifyAction] = None

    def validate(self, value: Any):
        if self.verify_action is None:
            super().validate(value)

    async def perform(self, locator, value: Any):
        if self.action is not None:
            await self.action(locator, value)
        elif isinstance(value, str):
            await locator.fill(value)

    async def verify(self, locator, value: Any) -> bool:
        if self.verify_action is not None:
            return bool(await self.verify_action(locator, value))
        return await text_value_matches(locator, value)

    def can_clear(self, value: Any) -> bool:
        # Clearing is only defined for the built-in fill
        return self.action is None and isinstance(value, str)

    async def final_value(self, locator, value: Any) -> Any:
        if self.verify_action is not None:
            return value
        return await locator.input_value()


def strategy_for(config: RetryConfig):
    """Pick the fill strategy for a config."""
    if config.action is None and config.verify is None:
        return TextFill()
    return CustomFill(action=config.action, verify_action=config.verify)


def _resolve_config(config: ConfigLike, options: Mapping[str, Any]) -> RetryConfig:
    if isinstance(config, RetryConfig) and not options:
        return config
    if isinstance(config, RetryConfig):
        return RetryConfig.merge(config, options)
    merged: Dict[str, Any] = dict(config or {})
    merged.update(options)
    return RetryConfig.from_dict(merged)


async def fill_with_retry(locator, value: Any, config: ConfigLike = None, **options) -> FillResult:
    """
    Fill a field and verify it, retrying the whole cycle on failure.

    Args:
        locator: Playwright locator for the field
        value: Value to fill; non-strings need ``verify_action``
        config: RetryConfig or options mapping
        **options: Individual options, override ``config``

    Returns:
        FillResult; a failed fill is reported, not raised.

    Raises:
        FillConfigurationError: invalid options, or a non-string value
            without a verify action
    """
    config = _resolve_config(config, options)
    verifier = RetryVerifier(locator.page, config)
    return await verifier.run(locator, value, strategy_for(config))


async def fill_and_assert(locator, value: Any, config: ConfigLike = None, **options) -> None:
    """Like fill_with_retry, but raises FillAssertionError when every attempt fails."""
    result = await fill_with_retry(locator, value, config, **options)
    if not result.success:
        raise FillAssertionError(result, value)


@dataclass
class FieldSpec:
    """One field for fill_multiple."""
    locator: Any
    value: Any
    options: Dict[str, Any] = field(default_factory=dict)


async def fill_multiple(
    fields: Iterable[FieldSpec],
    global_config: ConfigLike = None,
) -> List[FillResult]:
    """
    Fill fields one after another.

    Fields run sequentially because later fields often depend on earlier
    ones (validation, dependent selects). A failed field does not stop the
    batch; there is one result per field, in input order.

    Raises:
        FillConfigurationError: a field has invalid options or a value its
            strategy cannot handle. Every field is checked before the first
            one is filled, so the page is left untouched.
    """
    base = RetryConfig.merge(None, global_config)
    plan = []
    for spec in fields:
        config = RetryConfig.merge(base, spec.options)
        strategy = strategy_for(config)
        strategy.validate(spec.value)
        plan.append((spec, config, strategy))

    results = []
    for spec, config, strategy in plan:
        result = await RetryVerifier(spec.locator.page, config).run(spec.locator, spec.value, strategy)
        results.append(result)
        if not result.success and base.debug:
            logger.warning("Field fill failed: %s", result.error)
    return results
