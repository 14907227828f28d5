"""
Example: Fill a profile form and check what it sends

Fills a form whose fields autosave on blur, waits for each autosave to
settle, then clicks Save and inspects the captured request/response.

Usage:
    python examples/profile_form.py http://localhost:8888/profile
"""

import asyncio
import sys

from playwright.async_api import async_playwright

from settlewright import FieldSpec, HttpCapture, checkbox_is, fill_multiple
from settlewright.logger import configure_logging


async def set_checked(locator, value):
    await locator.set_checked(value)


async def main():
    url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8888/profile"
    configure_logging()

    print(f"Filling profile form at: {url}")
    print("=" * 60)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=False)
        page = await browser.new_page()
        await page.goto(url)

        results = await fill_multiple(
            [
                FieldSpec(page.locator("#user_id"), "21331"),
                FieldSpec(page.locator("#user_name"), "Zhang San"),
                FieldSpec(page.locator("#user_email"), "zhangsan@example.com"),
                FieldSpec(
                    page.locator("#agree"),
                    True,
                    {"fill_action": set_checked, "verify_action": checkbox_is},
                ),
            ],
            {"max_retries": 2, "debug": True},
        )

        for result in results:
            status = "OK  " if result.success else "FAIL"
            print(f"  [{status}] {result.final_value!r} after {result.attempts} attempt(s)")
            if result.error:
                print(f"         {result.error}")

        async with HttpCapture(page, "/update-user-info") as capture:
            await page.click("button.btn-post")
            data = await capture.wait_for_next_capture(10000)

        print()
        print(f"Request:  {data.request.method} {data.request.url}")
        print(f"Sent:     {data.request.post_data}")
        print(f"Response: {data.response.status} {data.response.body}")

        capture.save("reports/profile_form_captures.json")
        await browser.close()


if __name__ == "__main__":
    asyncio.run(main())
