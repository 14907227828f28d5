"""
HTTP capture for E2E tests.

Listens to page network events and records every response whose URL
matches a pattern, together with the request that produced it:
- Request: URL, method, headers, query parameters, body (JSON parsed when possible)
- Response: status, status text, headers, body (JSON parsed by content type)

Usage:
    capture = await setup_http_capture(page, "/api/submit")
    try:
        await page.click("button#submit")
        data = await capture.wait_for_next_capture()
        assert data.response.status == 200
    finally:
        capture.stop_capture()

Captures are correlated from the response side: the request is read from
``response.request``, so a request without a response is never recorded.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlsplit

from .errors import CaptureTimeoutError
from .events import REQUEST, RESPONSE, Subscription, elapsed_ms, poll_until, subscribe
from .patterns import UrlPattern, describe_pattern, matches

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30000
POLL_INTERVAL_MS = 100


@dataclass
class CapturedRequest:
    """The request half of a capture."""
    url: str
    method: str
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    post_data: Any = None
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def body(self) -> Any:
        return self.post_data

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "method": self.method,
            "headers": self.headers,
            "query_params": self.query_params,
            "post_data": self.post_data,
        }


@dataclass
class CapturedResponse:
    """The response half of a capture."""
    url: str
    status: int
    status_text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status,
            "status_text": self.status_text,
            "headers": self.headers,
            "body": self.body,
        }


@dataclass
class CapturedPair:
    """A matched request/response pair."""
    request: CapturedRequest
    response: CapturedResponse
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
            "timestamp": self.timestamp.isoformat(),
        }


def parse_query_params(url: str) -> Dict[str, str]:
    """Flatten the query string of ``url``; the last value of a repeated key wins."""
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


def parse_post_data(data: Optional[bytes]) -> Any:
    """Decode a request body, parsing JSON when it parses. No body gives None, an empty one ""."""
    if data is None:
        return None
    text = data.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


def parse_response_body(headers: Dict[str, str], text: str) -> Any:
    """Parse ``text`` as JSON only when the content type says so."""
    content_type = ""
    for name, value in headers.items():
        if name.lower() == "content-type":
            content_type = value.lower()
            break
    if "json" in content_type:
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


def capture_request(request) -> CapturedRequest:
    """Build a CapturedRequest from a Playwright request."""
    url = request.url
    return CapturedRequest(
        url=url,
        method=request.method,
        headers=dict(request.headers),
        query_params=parse_query_params(url),
        post_data=parse_post_data(request.post_data_buffer),
        raw=request,
    )


def build_response(response, body: Any) -> CapturedResponse:
    return CapturedResponse(
        url=response.url,
        status=response.status,
        status_text=response.status_text,
        headers=dict(response.headers),
        body=body,
        raw=response,
    )


class _Slot:
    """Position in the buffer, taken when a response is observed and filled once its body is read."""

    __slots__ = ("pair",)

    def __init__(self):
        self.pair: Optional[CapturedPair] = None


class _CaptureBuffer:
    """Pattern, buffer and bookkeeping shared by the async and sync capture classes."""

    def __init__(self, page, url_pattern: UrlPattern):
        self.page = page
        self.url_pattern = url_pattern
        self.observed_requests = 0
        # Arrival order; a slot stays empty while its body is being read
        self._slots: List[_Slot] = []
        self._cursor = 0
        self._subscriptions: List[Subscription] = []

    @property
    def is_capturing(self) -> bool:
        return bool(self._subscriptions)

    @property
    def _captured(self) -> List[CapturedPair]:
        return [slot.pair for slot in self._slots if slot.pair is not None]

    def _on_request(self, request):
        if matches(request.url, self.url_pattern):
            self.observed_requests += 1

    def _reserve(self) -> _Slot:
        slot = _Slot()
        self._slots.append(slot)
        return slot

    def _fill(self, slot: _Slot, pair: CapturedPair):
        # A slot reserved before clear() or a restart belongs to a dropped buffer
        slot.pair = pair
        logger.debug(
            "Captured %s %s -> %s",
            pair.request.method,
            pair.request.url,
            pair.response.status,
        )

    def _release(self, slot: _Slot):
        # The body read was cancelled; the cursor never passes an empty slot
        if slot.pair is None and slot in self._slots:
            self._slots.remove(slot)

    def _subscribe(self, on_response):
        self._slots = []
        self._cursor = 0
        self.observed_requests = 0
        self._subscriptions = [
            subscribe(self.page, REQUEST, self._on_request),
            subscribe(self.page, RESPONSE, on_response),
        ]
        logger.debug("Started capturing %s", describe_pattern(self.url_pattern))

    def stop_capture(self):
        """Remove the listeners. Captured data is kept."""
        if not self._subscriptions:
            return
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions = []
        logger.debug(
            "Stopped capturing %s (%d captured)",
            describe_pattern(self.url_pattern),
            len(self._captured),
        )

    def get_all_captured_data(self) -> List[CapturedPair]:
        """Snapshot of every capture in arrival order."""
        return list(self._captured)

    def clear(self):
        """Drop captured data without touching the listeners."""
        self._slots = []
        self._cursor = 0

    def _has_capture(self) -> bool:
        return any(slot.pair is not None for slot in self._slots)

    def _latest(self) -> Optional[CapturedPair]:
        for slot in reversed(self._slots):
            if slot.pair is not None:
                return slot.pair
        return None

    def _has_unread(self) -> bool:
        # FIFO: the oldest unread slot must be filled, even if later ones already are
        return self._cursor < len(self._slots) and self._slots[self._cursor].pair is not None

    def _take_unread(self) -> Optional[CapturedPair]:
        if self._has_unread():
            pair = self._slots[self._cursor].pair
            self._cursor += 1
            return pair
        return None

    def _timeout(self, timeout_ms: float) -> CaptureTimeoutError:
        return CaptureTimeoutError(
            describe_pattern(self.url_pattern),
            timeout_ms,
            observed_requests=self.observed_requests,
        )

    def save(self, filepath: str):
        """Write every capture to ``filepath`` as JSON."""
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w") as f:
            json.dump(
                [pair.to_dict() for pair in self._captured],
                f,
                indent=2,
                ensure_ascii=False,
                default=str,
            )

    def __len__(self) -> int:
        return len(self._captured)


class HttpCapture(_CaptureBuffer):
    """
    Records request/response pairs for URLs matching a pattern.

    Usage:
        async with HttpCapture(page, re.compile(r"/api/user/\\d+")) as capture:
            await page.click("#load-user")
            data = await capture.wait_for_next_capture(10000)

        capture.get_all_captured_data()  # still available after stop
    """

    async def start_capture(self):
        """Start listening. A no-op while already capturing; resets the buffer otherwise."""
        if self.is_capturing:
            return
        self._subscribe(self._on_response)

    async def _on_response(self, response):
        if not matches(response.url, self.url_pattern):
            return
        captured_request = capture_request(response.request)
        # Take the position now so a slow body read cannot reorder captures
        slot = self._reserve()
        try:
            try:
                text = await response.text()
                body = parse_response_body(response.headers, text)
            except Exception as e:
                # Body already consumed or the page went away
                logger.debug("Could not read body of %s: %s", response.url, e)
                body = None
            self._fill(slot, CapturedPair(request=captured_request, response=build_response(response, body)))
        finally:
            self._release(slot)

    async def wait_for_next_capture(self, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> CapturedPair:
        """
        Return the most recent capture, waiting for one if the buffer is empty.

        Note this is *not* a queue: if several responses already landed, only
        the latest is returned and earlier ones are skipped. Use
        ``next_unread`` to see each capture exactly once.

        Raises:
            CaptureTimeoutError: nothing matched within ``timeout_ms``. The
                listeners stay registered; call ``stop_capture``.
        """
        if await poll_until(self.page, self._has_capture, timeout_ms, POLL_INTERVAL_MS):
            return self._latest()
        raise self._timeout(timeout_ms)

    async def next_unread(self, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> CapturedPair:
        """Return the oldest capture not yet returned by this method (FIFO by arrival)."""
        if await poll_until(self.page, self._has_unread, timeout_ms, POLL_INTERVAL_MS):
            return self._take_unread()
        raise self._timeout(timeout_ms)

    async def __aenter__(self) -> "HttpCapture":
        await self.start_capture()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.stop_capture()
        return False


async def setup_http_capture(page, url_pattern: UrlPattern) -> HttpCapture:
    """
    Create and start a capture.

    Start it *before* triggering the request. A response that arrives before
    the listener is registered is not seen.
    """
    capture = HttpCapture(page, url_pattern)
    await capture.start_capture()
    return capture


async def wait_for_http_capture(
    page,
    url_pattern: UrlPattern,
    timeout_ms: float = DEFAULT_TIMEOUT_MS,
) -> CapturedPair:
    """
    Capture a single matching request/response.

    Example:
        click = asyncio.ensure_future(page.click("button#submit"))
        data = await wait_for_http_capture(page, "/api/submit")
        await click
    """
    capture = await setup_http_capture(page, url_pattern)
    try:
        return await capture.wait_for_next_capture(timeout_ms)
    finally:
        capture.stop_capture()


class HttpCaptureSync(_CaptureBuffer):
    """
    Synchronous version of HttpCapture for ``playwright.sync_api`` pages.

    The sync driver dispatches events while it is inside a call such as
    ``page.wait_for_timeout``, which is what the waits below rely on.
    """

    def start_capture(self):
        if self.is_capturing:
            return
        self._subscribe(self._on_response)

    def _on_response(self, response):
        if not matches(response.url, self.url_pattern):
            return
        captured_request = capture_request(response.request)
        try:
            body = parse_response_body(response.headers, response.text())
        except Exception as e:
            logger.debug("Could not read body of %s: %s", response.url, e)
            body = None
        self._fill(self._reserve(), CapturedPair(request=captured_request, response=build_response(response, body)))

    def _poll(self, condition, timeout_ms: float) -> bool:
        # Same loop as events.poll_until, driven by the blocking wait_for_timeout
        start = time.monotonic()
        while True:
            if condition():
                return True
            if elapsed_ms(start) >= timeout_ms:
                return False
            self.page.wait_for_timeout(POLL_INTERVAL_MS)

    def wait_for_next_capture(self, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> CapturedPair:
        if self._poll(self._has_capture, timeout_ms):
            return self._latest()
        raise self._timeout(timeout_ms)

    def next_unread(self, timeout_ms: float = DEFAULT_TIMEOUT_MS) -> CapturedPair:
        if self._poll(self._has_unread, timeout_ms):
            return self._take_unread()
        raise self._timeout(timeout_ms)

    def __enter__(self) -> "HttpCaptureSync":
        self.start_capture()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_capture()
        return False
