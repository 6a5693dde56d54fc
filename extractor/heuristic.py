"""
Heuristic fact extraction from rendered source pages.

Council pages have no stable structure, so each fact is found with a bounded,
keyword-anchored pass over the visible DOM text:

- Fees: find the innermost node mentioning a fee keyword and take the first
  "£" amount inside it (climbing at most a couple of short ancestors when the
  amount sits in a sibling cell). Amounts outside 0 < fee < 10,000 are
  rejected, which filters out page numbers, postcodes and totals.
- Processing time: "N weeks" / "N days", weeks normalised to days, under 365.
- Contact: mailto:/tel: links first, then regex over visible text.

Every pass is independent and first-match-wins: keywords are tried in order
and the first one that yields an in-bounds value is used.
"""

import logging
import re
from typing import Iterator, Optional
from urllib.parse import unquote

from lxml import etree
from lxml import html as lxml_html
from lxml.etree import _Element

from core.exceptions import ExtractionFailure
from schemas.facts import ScrapedFacts
from utils.html_cleaner import collapse_whitespace, strip_invisible

logger = logging.getLogger(__name__)


FEE_KEYWORDS: dict[str, tuple[str, ...]] = {
    "registration_fee": (
        "landlord registration fee",
        "registration fee",
        "application fee",
        "landlord fee",
    ),
    "renewal_fee": (
        "renewal fee",
        "three year renewal",
        "triennial fee",
    ),
    "hmo_fee": (
        "hmo fee",
        "hmo licence fee",
        "hmo license fee",
        "hmo application fee",
        "house in multiple occupation fee",
    ),
}

PROCESSING_KEYWORDS: tuple[str, ...] = (
    "processing time",
    "to process",
    "process your application",
    "determine",
    "decision",
    "take up to",
    "within",
)

MAX_FEE = 10000
MAX_PROCESSING_DAYS = 365

# How far above the keyword node a fee may be looked for, and how long that
# ancestor's text may be before it stops counting as "the same node".
MAX_CLIMB = 2
MAX_SCOPE_CHARS = 400

MONEY_PATTERN = re.compile(r"£\s?(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?")
DURATION_PATTERN = re.compile(
    r"\b(\d{1,3})\s*(?:working\s+|calendar\s+)?(weeks?|days?)\b",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
PHONE_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"\b0\d{3}\s?\d{3}\s?\d{4}\b"),   # 0131 123 4567
    re.compile(r"\b0\d{4}\s?\d{6}\b"),           # 01234 567890
    re.compile(r"\b\d{5}\s?\d{6}\b"),            # 03000 200292
)


class HeuristicExtractor:
    """
    Pull ScrapedFacts out of a rendered HTML document.
    """

    def extract_from_html(self, html: str, url: Optional[str] = None) -> ScrapedFacts:
        """
        Run every extraction pass over one document.

        Args:
            html: Rendered page HTML
            url: Page URL (recorded on the facts, used for logging)

        Returns:
            ScrapedFacts; all fields unset when nothing matched

        Raises:
            ExtractionFailure: If the document is empty or cannot be parsed
        """
        if not html or not html.strip():
            raise ExtractionFailure(
                f"Empty document returned for {url}",
                error_code="EXTRACT_003",
                details={"url": url},
            )

        try:
            doc = lxml_html.fromstring(html)
        except (etree.ParserError, ValueError) as e:
            raise ExtractionFailure(
                f"Failed to parse HTML for {url}: {e}",
                error_code="EXTRACT_003",
                details={"url": url},
            ) from e

        strip_invisible(doc)
        texts = ElementTexts(doc)

        facts = ScrapedFacts(
            registration_fee=self._extract_fee(texts, FEE_KEYWORDS["registration_fee"]),
            renewal_fee=self._extract_fee(texts, FEE_KEYWORDS["renewal_fee"]),
            hmo_fee=self._extract_fee(texts, FEE_KEYWORDS["hmo_fee"]),
            processing_time_days=self._extract_processing_time(doc, texts),
            contact_email=self._extract_email(doc),
            contact_phone=self._extract_phone(doc),
            source_url=url,
        )

        found = facts.fields_found()
        if found:
            logger.info(f"Extracted {len(found)} field(s) from {url}: {', '.join(found)}")
        else:
            logger.info(f"No tracked fields found on {url}")
        return facts

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def _extract_fee(self, texts: "ElementTexts", keywords: tuple[str, ...]) -> Optional[float]:
        for keyword in keywords:
            for node in texts.keyword_nodes(keyword):
                fee = self._fee_near(node, texts)
                if fee is not None:
                    logger.debug(f"Fee £{fee:g} found via '{keyword}'")
                    return fee
        return None

    def _fee_near(self, node: _Element, texts: "ElementTexts") -> Optional[float]:
        """First amount in the node, or in a short ancestor when the node has none."""
        scope: Optional[_Element] = node
        for _ in range(MAX_CLIMB + 1):
            if scope is None:
                return None
            text = texts.text(scope)
            if scope is not node and len(text) > MAX_SCOPE_CHARS:
                return None
            match = MONEY_PATTERN.search(text)
            if match:
                # Only the first token counts; an out-of-range value rejects the node
                fee = _parse_money(match)
                return fee if 0 < fee < MAX_FEE else None
            scope = scope.getparent()
        return None

    # ------------------------------------------------------------------
    # Processing time
    # ------------------------------------------------------------------

    def _extract_processing_time(self, doc: _Element, texts: "ElementTexts") -> Optional[int]:
        for keyword in PROCESSING_KEYWORDS:
            for node in texts.keyword_nodes(keyword):
                days = _first_duration(texts.text(node))
                if days is not None:
                    return days

        for text in _visible_texts(doc):
            days = _first_duration(text)
            if days is not None:
                return days
        return None

    # ------------------------------------------------------------------
    # Contact details
    # ------------------------------------------------------------------

    def _extract_email(self, doc: _Element) -> Optional[str]:
        for href in _link_targets(doc, "mailto:"):
            address = href.split("?", 1)[0].strip()
            if EMAIL_PATTERN.fullmatch(address):
                return address

        for text in _visible_texts(doc):
            match = EMAIL_PATTERN.search(text)
            if match:
                return match.group(0).rstrip(".")
        return None

    def _extract_phone(self, doc: _Element) -> Optional[str]:
        for href in _link_targets(doc, "tel:"):
            number = href.strip()
            if number:
                return number

        for text in _visible_texts(doc):
            for pattern in PHONE_PATTERNS:
                match = pattern.search(text)
                if match:
                    return match.group(0).strip()
        return None


def _text_of(element: _Element) -> str:
    return collapse_whitespace(element.text_content())


class ElementTexts:
    """Collapsed (and lowercased) text of every element, built once per document."""

    def __init__(self, doc: _Element):
        self._text: dict[_Element, str] = {}
        self._lower: dict[_Element, str] = {}
        for element in doc.iter():
            if not isinstance(element.tag, str):
                continue  # comments, processing instructions
            text = _text_of(element)
            self._text[element] = text
            self._lower[element] = text.lower()

    def text(self, element: _Element) -> str:
        text = self._text.get(element)
        return _text_of(element) if text is None else text

    def keyword_nodes(self, keyword: str) -> Iterator[_Element]:
        """Innermost elements (document order) whose text contains the keyword."""
        keyword = keyword.lower()
        for element, lowered in self._lower.items():
            if keyword not in lowered:
                continue
            if any(keyword in self._lower.get(child, "") for child in element):
                continue
            yield element


def _visible_texts(doc: _Element) -> Iterator[str]:
    for raw in doc.xpath("//text()"):
        text = collapse_whitespace(str(raw))
        if text:
            yield text


def _link_targets(doc: _Element, scheme: str) -> Iterator[str]:
    for href in doc.xpath("//a/@href"):
        href = str(href).strip()
        if href.lower().startswith(scheme):
            yield unquote(href[len(scheme):])


def _parse_money(match: re.Match) -> float:
    whole = int(match.group(1).replace(",", ""))
    pence = match.group(2)
    if pence:
        return whole + int(pence.ljust(2, "0")) / 100
    return float(whole)


def _first_duration(text: str) -> Optional[int]:
    for match in DURATION_PATTERN.finditer(text):
        days = int(match.group(1))
        if match.group(2).lower().startswith("week"):
            days *= 7
        if 0 < days < MAX_PROCESSING_DAYS:
            return days
    return None

