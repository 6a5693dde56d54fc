"""
HTML cleaning and text normalization utilities.
"""

import re
import logging

from lxml import html as lxml_html

logger = logging.getLogger(__name__)

# Elements whose text is never visible to a reader
INVISIBLE_TAGS = ("script", "style", "noscript", "template", "head")

_WHITESPACE = re.compile(r"\s+")


def strip_invisible(doc) -> None:
    """
    Remove non-visible elements from a parsed lxml document in place.
    
    Args:
        doc: lxml.html root element
    """
    xpath = "|".join(f"//{tag}" for tag in INVISIBLE_TAGS)
    removed = 0
    for element in doc.xpath(xpath):
        element.drop_tree()
        removed += 1
    logger.debug(f"Dropped {removed} invisible elements")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace (including non-breaking spaces) to one space."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.replace("\xa0", " ")).strip()


def sanitize_for_db(text: str) -> str:
    """
    Sanitize text for database storage.
    
    - Remove null bytes
    - Normalize line endings
    """
    text = text.replace('\x00', '')
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return text


def html_to_text(html: str) -> str:
    """
    Plain-text rendering of an HTML fragment (multipart email fallback).

    Block elements become line breaks; invisible elements are dropped.
    """
    if not html or not html.strip():
        return ""
    doc = lxml_html.fromstring(html)
    strip_invisible(doc)
    for element in doc.iter("br", "p", "div", "h1", "h2", "h3", "li", "tr"):
        element.tail = "\n" + (element.tail or "")
    lines = (collapse_whitespace(line) for line in doc.text_content().splitlines())
    return "\n".join(line for line in lines if line)
