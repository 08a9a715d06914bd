"""Page walkers and the typed descriptors they produce."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterator
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..config import DEFAULT_BASE_URL

ROW_CARD_SELECTOR = 'li.row.card[role="presentation"]'
CARD_TITLE_SELECTOR = ".cardTitleBlock"


class ParsingError(RuntimeError):
    """Raised when a page cannot be treated as markup at all."""


@dataclass(slots=True)
class YearEntry:
    year: str
    url: str | None

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> "YearEntry":
        return cls(year=str(payload["year"]), url=payload.get("url"))


@dataclass(slots=True)
class IssueEntry:
    title: str
    url: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> "IssueEntry":
        return cls(title=payload["title"], url=payload["url"])


@dataclass(slots=True)
class ArticleEntry:
    title: str
    url: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> "ArticleEntry":
        return cls(title=payload["title"], url=payload["url"])


@dataclass(slots=True)
class QuestionContent:
    title: str
    question: str
    answer: str

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> "QuestionContent":
        return cls(
            title=payload.get("title", ""),
            question=payload.get("question", ""),
            answer=payload.get("answer", ""),
        )


@dataclass(slots=True)
class RowCard:
    """One labelled link in the archive's repeated card layout."""

    title: str
    url: str | None


def load_markup(html: str) -> BeautifulSoup:
    if not isinstance(html, str):
        raise ParsingError(f"Expected page markup, got {type(html).__name__}")
    return BeautifulSoup(html, "html.parser")


def iter_row_cards(soup: BeautifulSoup, base_url: str = DEFAULT_BASE_URL) -> Iterator[RowCard]:
    for card in soup.select(ROW_CARD_SELECTOR):
        yield RowCard(title=_card_title(card), url=_card_url(card, base_url))


def _card_title(card: Tag) -> str:
    title_tag = card.select_one(CARD_TITLE_SELECTOR)
    if title_tag is None:
        return ""
    return title_tag.get_text().strip()


def _card_url(card: Tag, base_url: str) -> str | None:
    anchor = card.find("a", href=True)
    if anchor is None:
        return None
    href = anchor["href"].strip()
    if not href:
        return None
    return urljoin(f"{base_url.rstrip('/')}/", href)


__all__ = [
    "ArticleEntry",
    "IssueEntry",
    "ParsingError",
    "QuestionContent",
    "RowCard",
    "YearEntry",
    "iter_row_cards",
    "load_markup",
]
