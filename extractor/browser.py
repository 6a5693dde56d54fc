"""
Browser-backed extractor: renders the page with Playwright, then runs the
heuristic passes over the rendered DOM.
"""

import logging
from typing import Callable, Optional

from playwright.sync_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from core.config import Settings, get_settings
from core.exceptions import ExtractionFailure
from extractor.heuristic import HeuristicExtractor
from fetcher.page_loader import PageContent, load_page
from schemas.facts import ScrapedFacts

logger = logging.getLogger(__name__)


class PlaywrightExtractor:
    """
    Extractor implementation used by the scrape sweep.

    Safe to call from several worker threads at once: every call launches and
    closes its own browser.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        parser: Optional[HeuristicExtractor] = None,
        page_loader: Callable[..., PageContent] = load_page,
    ):
        self.settings = settings or get_settings()
        self.parser = parser or HeuristicExtractor()
        self.page_loader = page_loader

    def extract(self, url: str) -> ScrapedFacts:
        try:
            page = self.page_loader(
                url,
                headless=self.settings.BROWSER_HEADLESS,
                timeout_ms=self.settings.SCRAPE_TIMEOUT_MS,
                user_agent=self.settings.BROWSER_USER_AGENT,
                screenshot_dir=self.settings.SCREENSHOT_DIR if self.settings.SCREENSHOT_ON_ERROR else None,
            )
        except PlaywrightTimeoutError as e:
            raise ExtractionFailure(
                f"Timed out after {self.settings.SCRAPE_TIMEOUT_MS}ms loading {url}",
                error_code="EXTRACT_001",
                details={"url": url, "error": str(e)},
            ) from e
        except PlaywrightError as e:
            raise ExtractionFailure(
                f"Navigation failed for {url}: {e.message}",
                error_code="EXTRACT_002",
                details={"url": url},
            ) from e
        except Exception as e:
            raise ExtractionFailure(
                f"Browser error loading {url}: {e}",
                error_code="EXTRACT_002",
                details={"url": url},
            ) from e

        return self.parser.extract_from_html(page.html, url)
