"""Walkers for individual article pages."""

from __future__ import annotations

from bs4 import BeautifulSoup

from . import QuestionContent, load_markup

_QUESTION_MARKS = ("?", "？")


class QuestionArticleParser:
    """Split a reader-question article into its question and answer.

    The split is positional: the first paragraph is the question, and the
    second paragraph joins it when the first carries no question mark.
    Everything after that is the answer.
    """

    title_selector = ".docSubtitle, .pubRefs"
    paragraph_selector = ".bodyTxt p"

    def parse(self, html: str) -> QuestionContent:
        soup = load_markup(html)
        title = self._extract_title(soup)
        question_parts, answer_parts = self._split_paragraphs(self._extract_paragraphs(soup))
        return QuestionContent(
            title=title,
            question=" ".join(question_parts).strip(),
            answer=" ".join(answer_parts).strip(),
        )

    def _extract_title(self, soup: BeautifulSoup) -> str:
        title_tag = soup.select_one(self.title_selector)
        return title_tag.get_text().strip() if title_tag else ""

    def _extract_paragraphs(self, soup: BeautifulSoup) -> list[str]:
        return [paragraph.get_text().strip() for paragraph in soup.select(self.paragraph_selector)]

    def _split_paragraphs(self, paragraphs: list[str]) -> tuple[list[str], list[str]]:
        question: list[str] = []
        answer: list[str] = []
        for index, text in enumerate(paragraphs):
            if index == 0 or (index == 1 and not _has_question_mark(question)):
                question.append(text)
            else:
                answer.append(text)
        return question, answer


def _has_question_mark(parts: list[str]) -> bool:
    return any(mark in part for part in parts for mark in _QUESTION_MARKS)


class SubtitleParser:
    """Extract the display subtitle from an article page."""

    primary_selector = "article#article .sn"
    fallback_selector = "article#article strong"

    def parse(self, html: str) -> str:
        soup = load_markup(html)
        for selector in (self.primary_selector, self.fallback_selector):
            tag = soup.select_one(selector)
            if tag is None:
                continue
            text = tag.get_text().strip()
            if text:
                return text
        return ""


def parse_question_content(html: str) -> QuestionContent:
    return QuestionArticleParser().parse(html)


def parse_subtitle(html: str) -> str:
    return SubtitleParser().parse(html)
