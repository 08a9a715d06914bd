import unittest
from pathlib import Path

from question_crawler.config import MarkerConfig
from question_crawler.parsers import ArticleEntry, IssueEntry, ParsingError, YearEntry
from question_crawler.parsers.index import (
    filter_question_articles,
    find_research_edition_url,
    is_question_article,
    parse_article_list,
    parse_fifteenth_day_issues,
    parse_monthly_issues,
    parse_year_index,
)

FIXTURE_DIR = Path(__file__).resolve().parent.parent / "fixtures"
YEAR_INDEX_FIXTURE = FIXTURE_DIR / "year_index.html"

BASE_URL = "https://wol.jw.org"


def card(title: str, href: str | None = None) -> str:
    link = f'<a href="{href}">' if href is not None else "<span>"
    close = "</a>" if href is not None else "</span>"
    return (
        '<li class="row card" role="presentation">'
        f'{link}<div class="cardTitleBlock">{title}</div>{close}'
        "</li>"
    )


def page(*cards: str) -> str:
    return f"<html><body><ul>{''.join(cards)}</ul></body></html>"


class YearIndexParserTestCase(unittest.TestCase):
    def test_parse_year_index_fixture(self) -> None:
        html = YEAR_INDEX_FIXTURE.read_text(encoding="utf-8")

        years = parse_year_index(html, base_url=BASE_URL)

        self.assertEqual(
            years,
            [
                YearEntry("2009", "https://wol.jw.org/ko/wol/lv/r8/lp-ko/0/30001"),
                YearEntry("2007", "https://wol.jw.org/ko/wol/lv/r8/lp-ko/0/30002"),
                YearEntry("1999", None),
            ],
        )

    def test_custom_year_pattern(self) -> None:
        markers = MarkerConfig(year_pattern=r"Watchtower (\d{4})")
        html = page(card("Watchtower 2015", "/en/2015"), card("파수대—2014", "/ko/2014"))

        years = parse_year_index(html, base_url=BASE_URL, markers=markers)

        self.assertEqual(years, [YearEntry("2015", "https://wol.jw.org/en/2015")])

    def test_non_markup_input_raises(self) -> None:
        with self.assertRaises(ParsingError):
            parse_year_index(None)  # type: ignore[arg-type]


class IssueListParserTestCase(unittest.TestCase):
    def test_research_edition_last_match_wins(self) -> None:
        html = page(
            card("일반용", "/ko/general"),
            card("연구용", "/ko/study-a"),
            card("연구용 (큰 활자)", "/ko/study-b"),
        )

        self.assertEqual(
            find_research_edition_url(html, base_url=BASE_URL),
            "https://wol.jw.org/ko/study-b",
        )

    def test_research_edition_missing(self) -> None:
        html = page(card("일반용", "/ko/general"))

        self.assertIsNone(find_research_edition_url(html, base_url=BASE_URL))

    def test_monthly_issues_skip_incomplete_cards(self) -> None:
        html = page(
            card("2009년 1월 15일", "/ko/issue-1"),
            card("", "/ko/untitled"),
            card("2009년 2월 15일"),
            card("2009년 3월 15일", "/ko/issue-3"),
        )

        self.assertEqual(
            parse_monthly_issues(html, base_url=BASE_URL),
            [
                IssueEntry("2009년 1월 15일", "https://wol.jw.org/ko/issue-1"),
                IssueEntry("2009년 3월 15일", "https://wol.jw.org/ko/issue-3"),
            ],
        )

    def test_fifteenth_day_issues_only(self) -> None:
        html = page(
            card("1999년 1월 1일", "/ko/1999-01-01"),
            card("1999년 1월 15일", "/ko/1999-01-15"),
            card("1999년 2월 1일", "/ko/1999-02-01"),
            card("1999년 2월 15일", "/ko/1999-02-15"),
        )

        issues = parse_fifteenth_day_issues(html, base_url=BASE_URL)

        self.assertEqual([issue.title for issue in issues], ["1999년 1월 15일", "1999년 2월 15일"])


class ArticleListParserTestCase(unittest.TestCase):
    def test_article_list_resolves_relative_links(self) -> None:
        html = page(card("독자의 질문", "../d/r8/lp-ko/2009041"), card("세계 소식", "https://example.org/news"))

        articles = parse_article_list(html, base_url="https://wol.jw.org/ko/wol/")

        self.assertEqual(
            articles,
            [
                ArticleEntry("독자의 질문", "https://wol.jw.org/ko/d/r8/lp-ko/2009041"),
                ArticleEntry("세계 소식", "https://example.org/news"),
            ],
        )

    def test_question_filter_requires_both_markers(self) -> None:
        articles = [
            ArticleEntry("독자의 질문", "https://wol.jw.org/a"),
            ArticleEntry("세계 소식", "https://wol.jw.org/b"),
            ArticleEntry("Readers Questions Extra", "https://wol.jw.org/c"),
            ArticleEntry("독자로부터", "https://wol.jw.org/d"),
            ArticleEntry("성서 질문", "https://wol.jw.org/e"),
        ]

        selected = filter_question_articles(articles)

        self.assertEqual([article.url for article in selected], ["https://wol.jw.org/a"])

    def test_question_filter_uses_configured_markers(self) -> None:
        markers = MarkerConfig(reader="Readers", question="Questions")

        self.assertTrue(is_question_article("Questions From Readers", markers))
        self.assertFalse(is_question_article("독자의 질문", markers))


if __name__ == "__main__":
    unittest.main()
