"""Walkers for the archive's index pages (years, editions, issues, articles)."""

from __future__ import annotations

import re
from typing import Iterable

from ..config import DEFAULT_BASE_URL, MarkerConfig
from . import ArticleEntry, IssueEntry, YearEntry, iter_row_cards, load_markup

_DEFAULT_MARKERS = MarkerConfig()


def parse_year_index(
    html: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    markers: MarkerConfig = _DEFAULT_MARKERS,
) -> list[YearEntry]:
    """Return one entry per card whose label carries a four digit year.

    Cards without a link are kept with ``url=None``.
    """

    pattern = re.compile(markers.year_pattern)
    years: list[YearEntry] = []
    for card in iter_row_cards(load_markup(html), base_url):
        match = pattern.search(card.title)
        if not match:
            continue
        year = match.group(1)
        if not re.fullmatch(r"\d{4}", year):
            continue
        years.append(YearEntry(year=year, url=card.url))
    return years


def find_research_edition_url(
    html: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    markers: MarkerConfig = _DEFAULT_MARKERS,
) -> str | None:
    research_url: str | None = None
    for card in iter_row_cards(load_markup(html), base_url):
        if markers.research_edition in card.title:
            research_url = card.url
    return research_url


def _linked_cards(html: str, base_url: str) -> Iterable[tuple[str, str]]:
    for card in iter_row_cards(load_markup(html), base_url):
        if card.title and card.url:
            yield card.title, card.url


def parse_monthly_issues(html: str, *, base_url: str = DEFAULT_BASE_URL) -> list[IssueEntry]:
    return [IssueEntry(title=title, url=url) for title, url in _linked_cards(html, base_url)]


def parse_fifteenth_day_issues(
    html: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    markers: MarkerConfig = _DEFAULT_MARKERS,
) -> list[IssueEntry]:
    return [
        IssueEntry(title=title, url=url)
        for title, url in _linked_cards(html, base_url)
        if markers.fifteenth_day in title
    ]


def parse_article_list(html: str, *, base_url: str = DEFAULT_BASE_URL) -> list[ArticleEntry]:
    return [ArticleEntry(title=title, url=url) for title, url in _linked_cards(html, base_url)]


def is_question_article(title: str, markers: MarkerConfig = _DEFAULT_MARKERS) -> bool:
    return markers.reader in title and markers.question in title


def filter_question_articles(
    articles: Iterable[ArticleEntry],
    markers: MarkerConfig = _DEFAULT_MARKERS,
) -> list[ArticleEntry]:
    return [article for article in articles if is_question_article(article.title, markers)]
