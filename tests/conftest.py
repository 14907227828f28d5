"""
Pytest configuration and shared fixtures for settlewright tests.

Unit tests run against the in-memory fakes in ``fakes.py``; the browser
fixtures launch a real Chromium and skip when it is not installed.
"""

import pytest
import pytest_asyncio

from fakes import FakeLocator, FakePage, FakeSyncPage
from settlewright.retry import RetryConfig


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (real timeouts)")
    config.addinivalue_line("markers", "browser: marks tests that drive a real Chromium")


@pytest.fixture
def page() -> FakePage:
    return FakePage()


@pytest.fixture
def sync_page() -> FakeSyncPage:
    return FakeSyncPage()


@pytest.fixture
def locator(page) -> FakeLocator:
    return FakeLocator(page)


@pytest.fixture
def fast_config() -> RetryConfig:
    """Retry config without the real-world waits."""
    return RetryConfig(
        retry_delay=0,
        wait_after_action=0,
        wait_before_verify=0,
        request_quiescence_timeout=500,
    )


@pytest_asyncio.fixture
async def browser_page():
    """Fresh page in a real headless Chromium."""
    from playwright.async_api import async_playwright

    async with async_playwright() as p:
        try:
            browser = await p.chromium.launch(headless=True)
        except Exception as e:
            pytest.skip(f"Chromium not available: {e}")
        page = await browser.new_page()
        yield page
        await browser.close()
