from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocol import BrowserDriver

logger = logging.getLogger(__name__)


async def update_border_overlay(driver: BrowserDriver, *, active: bool, capturing: bool) -> None:
    """
    Best-effort: toggle the in-page border overlay, if the driver has one.
    """
    update = getattr(driver, "update_border_overlay", None)
    if update is None:
        return
    try:
        await update(active=active, capturing=capturing)
    except Exception as e:
        logger.debug(f"Border overlay update failed: {e}")


async def capture_screenshot(driver: BrowserDriver) -> str:
    """
    Capture the current page as a base64 PNG.

    Returns an empty string when capture fails; callers treat a missing
    screenshot as "no image" rather than an error.
    """
    try:
        page = await driver.get_page()
        await page.bring_to_front()

        await update_border_overlay(driver, active=True, capturing=True)
        buffer = await page.screenshot()
        await update_border_overlay(driver, active=True, capturing=False)

        return base64.b64encode(buffer).decode("ascii")
    except Exception as e:
        logger.warning(f"Screenshot capture failed: {e}")
        return ""
