"""
Extractor interface.

The change detector and classifier only ever see ScrapedFacts, so the way a
page is fetched and mined can be swapped (or faked in tests) behind this
protocol without touching anything downstream.
"""

from typing import Protocol

from schemas.facts import ScrapedFacts


class Extractor(Protocol):
    """Turns a source URL into facts."""

    def extract(self, url: str) -> ScrapedFacts:
        """
        Fetch and mine one source page.

        Args:
            url: Source page URL

        Returns:
            ScrapedFacts (possibly with every field unset: no signal is not an error)

        Raises:
            ExtractionFailure: If the page could not be loaded or rendered
        """
        ...
