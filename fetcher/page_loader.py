"""
Rendering of council registration pages with a headless Chromium.

Many council sites build their fee tables client-side or sit behind bot
checks, so pages are loaded in a real browser context (desktop user agent,
en-GB locale) and read only after the network goes idle. Every call launches
and closes its own browser.
"""

import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from playwright.sync_api import sync_playwright, Page, TimeoutError as PlaywrightTimeoutError
from pydantic import BaseModel, Field

from utils.timeutils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class PageContent(BaseModel):
    """A rendered source page."""
    url: str
    html: str
    title: str = ""
    fetched_at: datetime = Field(default_factory=utcnow)
    load_time_ms: float = 0.0
    screenshot_path: Optional[str] = None


def load_page(
    url: str,
    headless: bool = True,
    timeout_ms: int = 30000,
    wait_for_state: str = "networkidle",
    user_agent: str = DEFAULT_USER_AGENT,
    screenshot_dir: Optional[str] = None,
) -> PageContent:
    """
    Render a source page and return its final DOM.

    Args:
        url: Source page URL
        headless: Run Chromium without a window
        timeout_ms: Budget for navigation and every page action
        wait_for_state: Load state that counts as "rendered"
        user_agent: User agent presented to the council site
        screenshot_dir: Where to keep a screenshot of a failed load (None to skip)

    Raises:
        PlaywrightTimeoutError: Navigation exceeded timeout_ms
        playwright.sync_api.Error: Any other browser or network failure
    """
    started = time.time()

    with sync_playwright() as playwright:
        browser = playwright.chromium.launch(headless=headless, args=CHROMIUM_ARGS)
        page = None
        try:
            context = browser.new_context(
                user_agent=user_agent,
                viewport={"width": 1920, "height": 1080},
                locale="en-GB",
            )
            page = context.new_page()
            page.set_default_timeout(timeout_ms)

            logger.info(f"Rendering {url}")
            page.goto(url, wait_until=wait_for_state, timeout=timeout_ms)

            content = PageContent(
                url=page.url or url,
                html=page.content(),
                title=page.title(),
                load_time_ms=(time.time() - started) * 1000,
            )
            logger.info(f"Rendered {url} in {content.load_time_ms:.0f}ms ({len(content.html)} bytes)")
            return content

        except PlaywrightTimeoutError:
            logger.error(f"Gave up on {url} after {timeout_ms}ms")
            if screenshot_dir and page is not None:
                capture_screenshot(page, url, "timeout", screenshot_dir)
            raise

        except Exception as e:
            logger.error(f"Browser error on {url}: {e}")
            if screenshot_dir and page is not None:
                capture_screenshot(page, url, "error", screenshot_dir)
            raise

        finally:
            browser.close()


def capture_screenshot(page: Page, url: str, reason: str, screenshot_dir: str) -> Optional[str]:
    """Best-effort full-page screenshot of a failed load; returns its path."""
    slug = _UNSAFE_FILENAME_CHARS.sub("_", re.sub(r"^https?://", "", url)).strip("_")[:60]
    path = Path(screenshot_dir) / f"{slug}_{reason}_{utcnow():%Y%m%d_%H%M%S}.png"
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        page.screenshot(path=str(path), full_page=True)
    except Exception as e:
        # The page may already be closed or crashed
        logger.warning(f"Could not capture screenshot for {url}: {e}")
        return None

    logger.info(f"Screenshot saved: {path}")
    return str(path)
