"""
Driver event subscriptions and cooperative wait helpers.

Everything here runs on the same event loop as the Playwright driver, so
waits are short sleeps through ``page.wait_for_timeout`` with a deadline
check instead of blocking primitives. Event handlers get a chance to run
at every one of those sleeps.
"""

import logging
import time
from typing import Any, Callable

logger = logging.getLogger(__name__)

# Playwright page event names
REQUEST = "request"
RESPONSE = "response"
REQUEST_FINISHED = "requestfinished"
REQUEST_FAILED = "requestfailed"

QUIESCENCE_POLL_MS = 50


class Subscription:
    """
    Handle for one listener registered on a driver event emitter.

    Usage:
        with subscribe(page, "response", on_response):
            await page.click("#submit")
        # listener removed here, even if click raised
    """

    def __init__(self, emitter: Any, event: str, handler: Callable[..., Any]):
        self.emitter = emitter
        self.event = event
        self.handler = handler
        self._active = True
        emitter.on(event, handler)

    @property
    def active(self) -> bool:
        return self._active

    def close(self):
        """Remove the listener. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self.emitter.remove_listener(self.event, self.handler)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def subscribe(emitter: Any, event: str, handler: Callable[..., Any]) -> Subscription:
    """Register ``handler`` for ``event`` and return its subscription handle."""
    return Subscription(emitter, event, handler)


class InFlightCounter:
    """
    Counts requests the page has started but not yet finished or failed.

    Listeners live only between ``__enter__`` and ``__exit__`` so that a
    counter scoped to one attempt never leaks into the next one.
    """

    def __init__(self, page):
        self.page = page
        self.active = 0
        self.started = 0
        self.settled = 0
        self._subscriptions = []

    def _on_request(self, request):
        self.active += 1
        self.started += 1

    def _on_settled(self, request):
        self.settled += 1
        if self.active > 0:
            self.active -= 1

    def __enter__(self) -> "InFlightCounter":
        self._subscriptions = [
            subscribe(self.page, REQUEST, self._on_request),
            subscribe(self.page, REQUEST_FINISHED, self._on_settled),
            subscribe(self.page, REQUEST_FAILED, self._on_settled),
        ]
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []
        return False


def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.monotonic()`` timestamp."""
    return (time.monotonic() - start) * 1000


async def poll_until(
    page,
    condition: Callable[[], bool],
    timeout_ms: float,
    interval_ms: float,
) -> bool:
    """
    Wait until ``condition()`` is true.

    Args:
        page: Playwright page providing ``wait_for_timeout``
        condition: Cheap synchronous check, evaluated between sleeps
        timeout_ms: Give up once at least this much time has elapsed
        interval_ms: Sleep between checks

    Returns:
        True as soon as the condition holds, False on timeout.
    """
    start = time.monotonic()
    while True:
        if condition():
            return True
        if elapsed_ms(start) >= timeout_ms:
            return False
        await page.wait_for_timeout(interval_ms)


async def wait_for_quiescence(page, counter: InFlightCounter, timeout_ms: float) -> bool:
    """
    Wait for every tracked request to finish.

    The timeout is advisory: on expiry this returns False and the caller
    carries on. A True result only means the counter reached zero, not
    that the page state is fresh.
    """
    settled = await poll_until(page, lambda: counter.active <= 0, timeout_ms, QUIESCENCE_POLL_MS)
    if not settled:
        logger.debug(
            "Gave up waiting for requests after %sms, %d still in flight",
            timeout_ms,
            counter.active,
        )
    return settled
