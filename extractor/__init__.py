"""
Extractor module initialization.
"""

from extractor.base import Extractor
from extractor.heuristic import HeuristicExtractor
from extractor.browser import PlaywrightExtractor

__all__ = [
    "Extractor",
    "HeuristicExtractor",
    "PlaywrightExtractor",
]
