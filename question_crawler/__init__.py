"""Crawler utilities for collecting reader questions from the magazine archive."""

from .enrich import SubtitleEnricher, enrich
from .traversal import ArchiveCrawler, crawl

__all__ = ["ArchiveCrawler", "SubtitleEnricher", "crawl", "enrich"]
