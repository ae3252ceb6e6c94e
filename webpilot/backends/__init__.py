"""
Browser driver abstractions for webpilot.

The agent loops talk to the browser only through `BrowserDriver`:

    driver = MyMcpDriver(...)
    await driver.ensure_connection()
    tree = (await driver.call_tool("take_snapshot", {"verbose": False})).joined_text()
    screenshot_b64 = await capture_screenshot(driver)
"""

from .protocol import BrowserDriver, DialogAction, ScrollDirection
from .screenshot import capture_screenshot, update_border_overlay

__all__ = [
    "BrowserDriver",
    "DialogAction",
    "ScrollDirection",
    "capture_screenshot",
    "update_border_overlay",
]
