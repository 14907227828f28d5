"""
settlewright - Network capture and settle-aware form filling for Playwright

Two helpers for E2E tests against pages that talk to a backend:
1. HTTP capture: record the request/response pairs whose URL matches a
   pattern and wait for them with a timeout
2. Retry-verify form filling: fill a field, wait for the requests it
   triggered to finish, check the value stuck, retry if it did not

Quick Start:
    ```python
    from playwright.async_api import async_playwright
    from settlewright import HttpCapture, FieldSpec, checkbox_is, fill_and_assert, fill_multiple

    async with async_playwright() as p:
        browser = await p.chromium.launch()
        page = await browser.new_page()
        await page.goto("http://localhost:8888/profile")

        # Capture the request a button sends
        async with HttpCapture(page, "/update-user-info") as capture:
            await fill_and_assert(page.locator("#user_name"), "Zhang San")
            await page.click("button.btn-post")
            data = await capture.wait_for_next_capture(10000)

        assert data.response.status == 200
        assert data.request.post_data["user_name"] == "Zhang San"

        # Fill a form, one field after another
        results = await fill_multiple([
            FieldSpec(page.locator("#email"), "zhangsan@example.com"),
            FieldSpec(
                page.locator("#agree"),
                True,
                {"fill_action": lambda loc, v: loc.set_checked(v), "verify_action": checkbox_is},
            ),
        ])
        assert all(r.success for r in results)

        await browser.close()
    ```
"""

from .capture import (
    CapturedPair,
    CapturedRequest,
    CapturedResponse,
    HttpCapture,
    HttpCaptureSync,
    setup_http_capture,
    wait_for_http_capture,
)
from .errors import (
    CaptureTimeoutError,
    FillAssertionError,
    FillConfigurationError,
    SettlewrightError,
)
from .events import (
    InFlightCounter,
    Subscription,
    poll_until,
    subscribe,
)
from .form_fill import (
    CustomFill,
    FieldSpec,
    TextFill,
    checkbox_is,
    fill_and_assert,
    fill_multiple,
    fill_with_retry,
    select_has_value,
)
from .patterns import UrlPattern, matches
from .retry import FillResult, RetryConfig, RetryVerifier

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    # Capture
    "HttpCapture",
    "HttpCaptureSync",
    "CapturedPair",
    "CapturedRequest",
    "CapturedResponse",
    "setup_http_capture",
    "wait_for_http_capture",
    # Form filling
    "fill_with_retry",
    "fill_and_assert",
    "fill_multiple",
    "FieldSpec",
    "TextFill",
    "CustomFill",
    "checkbox_is",
    "select_has_value",
    # Retry engine
    "RetryConfig",
    "RetryVerifier",
    "FillResult",
    # Events
    "Subscription",
    "subscribe",
    "InFlightCounter",
    "poll_until",
    # Patterns
    "UrlPattern",
    "matches",
    # Errors
    "SettlewrightError",
    "CaptureTimeoutError",
    "FillConfigurationError",
    "FillAssertionError",
]
