"""Tests for the form filling API."""

import logging

import pytest

from fakes import FakeLocator
from settlewright.errors import FillAssertionError, FillConfigurationError
from settlewright.form_fill import (
    CustomFill,
    FieldSpec,
    TextFill,
    checkbox_is,
    fill_and_assert,
    fill_multiple,
    fill_with_retry,
    select_has_value,
    strategy_for,
)
from settlewright.retry import RetryConfig

FAST = {"retry_delay": 0, "wait_after_action": 0, "wait_before_verify": 0}


async def set_checked(locator, value):
    await locator.set_checked(value)


class TestStrategies:
    """Strategy selection from config."""

    def test_text_fill_by_default(self):
        assert isinstance(strategy_for(RetryConfig()), TextFill)
        assert not isinstance(strategy_for(RetryConfig()), CustomFill)

    def test_custom_fill_with_callbacks(self):
        strategy = strategy_for(RetryConfig(action=set_checked, verify=checkbox_is))
        assert isinstance(strategy, CustomFill)
        assert strategy.action is set_checked
        assert strategy.verify_action is checkbox_is

    def test_non_string_needs_verify(self):
        with pytest.raises(FillConfigurationError):
            CustomFill(action=set_checked).validate(True)
        CustomFill(action=set_checked, verify_action=checkbox_is).validate(True)

    def test_only_builtin_fill_clears(self):
        assert TextFill().can_clear("x")
        assert CustomFill(verify_action=checkbox_is).can_clear("x")
        assert not CustomFill(action=set_checked).can_clear("x")
        assert not CustomFill(verify_action=checkbox_is).can_clear(True)


class TestFillWithRetry:
    """Single-field filling."""

    @pytest.mark.asyncio
    async def test_text_input(self, locator):
        result = await fill_with_retry(locator, "testuser", FAST)
        assert result.success
        assert result.attempts == 1
        assert locator.value == "testuser"

    @pytest.mark.asyncio
    async def test_keyword_options_override_config(self, locator):
        locator.drop_fills = 100
        result = await fill_with_retry(locator, "x", RetryConfig(max_retries=3, **FAST), maxRetries=1)
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_verify_only_still_fills_strings(self, locator):
        result = await fill_with_retry(locator, "China", FAST, verify_action=select_has_value)
        assert result.success
        assert locator.fill_calls == ["China"]

    @pytest.mark.asyncio
    async def test_custom_action_and_verify(self, locator):
        selected = []

        async def select_option(loc, value):
            selected.append(value)
            loc.value = value

        result = await fill_with_retry(
            locator, "CN", FAST, fill_action=select_option, verify_action=select_has_value
        )
        assert result.success
        assert result.final_value == "CN"
        assert selected == ["CN"]
        assert locator.fill_calls == []

    @pytest.mark.asyncio
    async def test_non_string_without_verify_raises(self, locator):
        with pytest.raises(FillConfigurationError):
            await fill_with_retry(locator, True, FAST, fill_action=set_checked)
        assert locator.fill_calls == []

    @pytest.mark.asyncio
    async def test_unknown_option_raises(self, locator):
        with pytest.raises(FillConfigurationError):
            await fill_with_retry(locator, "x", waitForever=True)

    @pytest.mark.asyncio
    async def test_debug_logs_attempts(self, locator, caplog):
        locator.drop_fills = 1
        with caplog.at_level(logging.INFO, logger="settlewright"):
            result = await fill_with_retry(locator, "x", FAST, debug=True)
        assert result.attempts == 2
        assert "Attempt 1/4" in caplog.text
        assert "Value mismatch" in caplog.text


class TestFillAndAssert:
    """Assert-style filling."""

    @pytest.mark.asyncio
    async def test_checkbox(self, locator):
        await fill_and_assert(locator, True, FAST, fill_action=set_checked, verify_action=checkbox_is)
        assert locator.checked is True

    @pytest.mark.asyncio
    async def test_raises_with_diagnostics(self, locator):
        locator.drop_fills = 100
        locator.value = "old"
        with pytest.raises(FillAssertionError) as exc_info:
            await fill_and_assert(locator, "new", FAST, max_retries=1, clear_on_retry=False)

        error = exc_info.value
        assert isinstance(error, AssertionError)
        assert error.result.attempts == 2
        assert error.expected == "new"
        message = str(error)
        assert "Attempts: 2" in message
        assert 'Expected: "new"' in message
        assert 'Actual: "old"' in message
        assert 'expected "new", actual "old"' in message


class TestFillMultiple:
    """Batch filling."""

    @pytest.mark.asyncio
    async def test_fail_soft(self, page):
        """A failing middle field does not stop the batch."""
        first, second, third = FakeLocator(page), FakeLocator(page), FakeLocator(page)
        second.drop_fills = 100

        results = await fill_multiple(
            [
                FieldSpec(first, "Zhang San"),
                FieldSpec(second, "21331"),
                FieldSpec(third, "zhangsan@example.com"),
            ],
            {"max_retries": 1, **FAST},
        )

        assert len(results) == 3
        assert results[0].success is True
        assert results[1].success is False
        assert results[2].success is True
        assert results[1].attempts == 2
        assert third.value == "zhangsan@example.com"

    @pytest.mark.asyncio
    async def test_runs_in_order(self, page):
        order = []

        def recorder(name):
            async def on_fill(loc, value):
                order.append(name)

            return on_fill

        fields = []
        for name in ("a", "b", "c"):
            loc = FakeLocator(page)
            loc.on_fill = recorder(name)
            fields.append(FieldSpec(loc, name))

        await fill_multiple(fields, RetryConfig(**FAST))
        assert order == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_per_field_options_win(self, page):
        checkbox, text = FakeLocator(page), FakeLocator(page)
        text.drop_fills = 100

        results = await fill_multiple(
            [
                FieldSpec(checkbox, True, {"fillAction": set_checked, "verifyAction": checkbox_is}),
                FieldSpec(text, "x", {"max_retries": 2}),
            ],
            {"max_retries": 0, **FAST},
        )

        assert results[0].success
        assert checkbox.checked
        assert results[1].attempts == 3

    @pytest.mark.asyncio
    async def test_debug_logs_failures(self, page, caplog):
        loc = FakeLocator(page)
        loc.drop_fills = 100
        with caplog.at_level(logging.WARNING, logger="settlewright"):
            results = await fill_multiple([FieldSpec(loc, "x")], {"max_retries": 0, "debug": True, **FAST})
        assert not results[0].success
        assert "Field fill failed" in caplog.text

    @pytest.mark.asyncio
    async def test_misconfigured_field_rejected_before_any_fill(self, page):
        first, bad, third = FakeLocator(page), FakeLocator(page), FakeLocator(page)

        with pytest.raises(FillConfigurationError, match="True"):
            await fill_multiple(
                [FieldSpec(first, "a"), FieldSpec(bad, True), FieldSpec(third, "c")],
                FAST,
            )

        assert first.fill_calls == []
        assert third.fill_calls == []
        assert first.value == ""

    @pytest.mark.asyncio
    async def test_unknown_field_option_rejected_before_any_fill(self, page):
        first, second = FakeLocator(page), FakeLocator(page)
        with pytest.raises(FillConfigurationError):
            await fill_multiple(
                [FieldSpec(first, "a"), FieldSpec(second, "b", {"retries": 2})],
                FAST,
            )
        assert first.fill_calls == []

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        assert await fill_multiple([]) == []
