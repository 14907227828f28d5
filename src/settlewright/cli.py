"""
Command-line interface for settlewright.

Provides a command for capturing the HTTP traffic a page produces.
"""

import argparse
import json
import sys

from .config import get_settings
from .errors import CaptureTimeoutError
from .logger import configure_logging
from .patterns import compile_pattern, describe_pattern


def print_capture(pair):
    """Print a one-capture summary."""
    request, response = pair.request, pair.response
    print(f"  {request.method} {request.url}")
    if request.query_params:
        print(f"    query: {json.dumps(request.query_params, ensure_ascii=False)}")
    if request.post_data is not None:
        print(f"    body:  {json.dumps(request.post_data, ensure_ascii=False, default=str)[:200]}")
    print(f"  -> {response.status} {response.status_text}")
    if response.body is not None:
        print(f"    body:  {json.dumps(response.body, ensure_ascii=False, default=str)[:200]}")


def resolve_timeout(args, settings) -> int:
    """--timeout when given (0 included), else the configured default."""
    if args.timeout is not None:
        return args.timeout
    return settings.capture_timeout_ms


def capture_command(args):
    """Open a URL and wait for a response matching the pattern."""
    from playwright.sync_api import sync_playwright

    from .capture import HttpCaptureSync

    settings = get_settings()
    timeout = resolve_timeout(args, settings)
    pattern = compile_pattern(args.pattern, regex=args.regex)

    print("🔍 settlewright capture")
    print(f"Target: {args.url}")
    print(f"Pattern: {describe_pattern(pattern)}")
    print(f"Timeout: {timeout}ms")
    print()

    with sync_playwright() as p:
        browser = p.chromium.launch(headless=args.headless)
        page = browser.new_page()

        with HttpCaptureSync(page, pattern) as capture:
            page.goto(args.url)
            if args.click:
                page.click(args.click)
            try:
                latest = capture.wait_for_next_capture(timeout)
            except CaptureTimeoutError as e:
                print(f"❌ {e}")
                browser.close()
                sys.exit(1)

        browser.close()

    captures = capture.get_all_captured_data() if args.all else [latest]
    print(f"✅ Captured {len(capture)} matching response(s)")
    for pair in captures:
        print_capture(pair)

    if args.output:
        capture.save(args.output)
        print()
        print(f"📊 Captures saved to: {args.output}")


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="settlewright - network capture and settle-aware form filling for Playwright",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Capture the first response under /api/ while a page loads
  settlewright capture http://localhost:8888 --pattern /api/

  # Click a button and capture the request it sends
  settlewright capture http://localhost:8888/profile \\
      --pattern /update-user-info \\
      --click "button.btn-post" \\
      --output captures.json

  # Regular expression pattern
  settlewright capture http://localhost:8888 --regex --pattern "/api/user/\\d+"
        """,
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: LOG_LEVEL env var or info)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Capture command
    capture_parser = subparsers.add_parser(
        "capture", help="Capture requests/responses whose URL matches a pattern"
    )
    capture_parser.add_argument("url", help="URL to open (e.g., http://localhost:8888)")
    capture_parser.add_argument("--pattern", required=True, help="URL substring (or regex with --regex)")
    capture_parser.add_argument(
        "--regex", action="store_true", help="Treat --pattern as a regular expression"
    )
    capture_parser.add_argument("--click", help="CSS selector to click after the page loads")
    capture_parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Milliseconds to wait for a match (default: CAPTURE_TIMEOUT_MS or 30000)",
    )
    capture_parser.add_argument(
        "--all", action="store_true", help="Print every capture instead of only the latest"
    )
    capture_parser.add_argument("--output", help="Write all captures to this JSON file")
    capture_parser.add_argument(
        "--headless",
        action="store_true",
        default=True,
        help="Run browser in headless mode (default: True)",
    )
    capture_parser.add_argument(
        "--headed",
        action="store_false",
        dest="headless",
        help="Run browser in headed mode (show browser window)",
    )
    capture_parser.set_defaults(func=capture_command)

    # Parse args
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(level=args.log_level)

    # Run command
    args.func(args)


if __name__ == "__main__":
    main()
