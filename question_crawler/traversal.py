"""Walk the archive from the year index down to reader-question articles."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import httpx

from .cache import (
    ResourceCache,
    articles_key,
    fifteenth_day_key,
    issue_key,
    monthly_key,
    question_key,
    research_key,
    year_key,
    years_key,
)
from .checkpoint import CheckpointStore
from .config import CrawlConfig
from .http_client import HttpFetcher
from .models import QuestionRecord, records_from_payload, records_to_payload
from .parsers import ArticleEntry, IssueEntry, QuestionContent, YearEntry
from .parsers.article import parse_question_content
from .parsers.index import (
    filter_question_articles,
    find_research_edition_url,
    parse_article_list,
    parse_fifteenth_day_issues,
    parse_monthly_issues,
    parse_year_index,
)
from .rate_limit import RateLimiter
from .units import FailureLog, UnitError, UnitResult, gather_bounded, iter_batches, run_unit

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class IssueResult:
    records: list[QuestionRecord]
    complete: bool = True
    errors: list[UnitError] = field(default_factory=list)


@dataclass(slots=True)
class YearResult:
    year: str
    records: list[QuestionRecord]
    complete: bool = True
    errors: list[UnitError] = field(default_factory=list)


@dataclass(slots=True)
class CrawlSummary:
    years_total: int = 0
    start_index: int = 0
    years_processed: int = 0
    records: int = 0
    new_records: int = 0
    failures: int = 0


class ArchiveCrawler:
    """Drive the year → issue → article walk and checkpoint after every batch.

    Workers only return results. Appending to the dataset, writing the
    checkpoint and logging failures happen in :meth:`run`, between batches.
    """

    def __init__(
        self,
        config: CrawlConfig,
        fetcher: HttpFetcher,
        cache: ResourceCache,
        store: CheckpointStore,
        *,
        failure_log: FailureLog | None = None,
        batch_limiter: RateLimiter | None = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._cache = cache
        self._store = store
        self._failures = failure_log or FailureLog(None)
        self._batch_limiter = batch_limiter or RateLimiter(
            config.rate_limit.batch_delay, config.rate_limit.batch_jitter
        )
        self._markers = config.markers
        self._base_url = config.base_url

    async def _fetch_page(self, url: str) -> str:
        LOGGER.info("Requesting %s", url)
        html, _ = await self._fetcher.fetch_html(url)
        return html

    # Year index ---------------------------------------------------------------
    async def resolve_years(self) -> list[YearEntry]:
        start_url = self._config.start_url

        async def _collect() -> list[YearEntry]:
            LOGGER.info("Collecting year list from %s", start_url)
            html = await self._fetch_page(start_url)
            years = parse_year_index(html, base_url=self._base_url, markers=self._markers)
            for entry in years:
                LOGGER.debug("Found year %s at %s", entry.year, entry.url)
            return years

        result = await run_unit(
            "index",
            "years",
            start_url,
            lambda: self._cache.get_or_fetch(
                years_key(),
                _collect,
                dump=lambda years: [entry.to_payload() for entry in years],
                load=lambda payload: [YearEntry.from_payload(item) for item in payload],
                should_store=bool,
            ),
        )
        if not result.ok:
            self._failures.record(result.error)
            return []
        LOGGER.info("Year list: %d entries", len(result.value))
        return result.value

    # Issue lists --------------------------------------------------------------
    async def locate_research_edition(self, year_url: str) -> str | None:
        async def _locate() -> str | None:
            html = await self._fetch_page(year_url)
            return find_research_edition_url(html, base_url=self._base_url, markers=self._markers)

        return await self._cache.get_or_fetch(
            research_key(year_url),
            _locate,
            should_store=lambda url: url is not None,
        )

    async def list_monthly_issues(self, research_url: str) -> list[IssueEntry]:
        async def _list() -> list[IssueEntry]:
            html = await self._fetch_page(research_url)
            return parse_monthly_issues(html, base_url=self._base_url)

        return await self._cache.get_or_fetch(
            monthly_key(research_url),
            _list,
            dump=_dump_entries,
            load=lambda payload: [IssueEntry.from_payload(item) for item in payload],
        )

    async def list_fifteenth_day_issues(self, year_url: str) -> list[IssueEntry]:
        async def _list() -> list[IssueEntry]:
            html = await self._fetch_page(year_url)
            return parse_fifteenth_day_issues(html, base_url=self._base_url, markers=self._markers)

        return await self._cache.get_or_fetch(
            fifteenth_day_key(year_url),
            _list,
            dump=_dump_entries,
            load=lambda payload: [IssueEntry.from_payload(item) for item in payload],
        )

    async def list_issues(self, entry: YearEntry) -> list[IssueEntry] | None:
        """Issues of one year, or ``None`` when the year cannot be walked."""

        if not entry.url:
            LOGGER.warning("No page URL for year %s", entry.year)
            return None

        if int(entry.year) >= self._markers.era_cutoff_year:
            research_url = await self.locate_research_edition(entry.url)
            if research_url is None:
                LOGGER.warning("No research edition found for %s", entry.year)
                return []
            return await self.list_monthly_issues(research_url)
        return await self.list_fifteenth_day_issues(entry.url)

    # Articles -----------------------------------------------------------------
    async def list_articles(self, issue_url: str) -> list[ArticleEntry]:
        async def _list() -> list[ArticleEntry]:
            html = await self._fetch_page(issue_url)
            return parse_article_list(html, base_url=self._base_url)

        return await self._cache.get_or_fetch(
            articles_key(issue_url),
            _list,
            dump=_dump_entries,
            load=lambda payload: [ArticleEntry.from_payload(item) for item in payload],
        )

    async def fetch_question(self, article_url: str) -> QuestionContent:
        async def _extract() -> QuestionContent:
            return parse_question_content(await self._fetch_page(article_url))

        return await self._cache.get_or_fetch(
            question_key(article_url),
            _extract,
            dump=QuestionContent.to_payload,
            load=QuestionContent.from_payload,
        )

    # Units --------------------------------------------------------------------
    async def process_issue(self, year: str, issue: IssueEntry) -> IssueResult:
        return await self._cache.get_or_fetch(
            issue_key(year, issue.title),
            lambda: self._collect_issue(year, issue),
            dump=lambda result: records_to_payload(result.records),
            load=lambda payload: IssueResult(records_from_payload(payload)),
            should_store=lambda result: result.complete,
        )

    async def _collect_issue(self, year: str, issue: IssueEntry) -> IssueResult:
        LOGGER.info("Processing %s %s", year, issue.title)
        articles = await self.list_articles(issue.url)
        result = IssueResult(records=[])

        for article in filter_question_articles(articles, self._markers):
            LOGGER.info("Found question article: %s", article.title)
            outcome = await run_unit(
                "article",
                f"{year} {issue.title} {article.title}",
                article.url,
                lambda url=article.url: self.fetch_question(url),
            )
            if not outcome.ok:
                result.complete = False
                result.errors.append(outcome.error)
                continue

            content = outcome.value
            record = QuestionRecord(
                year=year,
                issue=issue.title,
                title=article.title,
                url=article.url,
                question=content.question,
                answer=content.answer,
            )
            if self._config.write_record_files:
                self._store.write_record(record)
            result.records.append(record)
        return result

    async def process_year(self, entry: YearEntry) -> YearResult:
        return await self._cache.get_or_fetch(
            year_key(entry.year),
            lambda: self._collect_year(entry),
            dump=lambda result: records_to_payload(result.records),
            load=lambda payload: YearResult(entry.year, records_from_payload(payload)),
            should_store=lambda result: result.complete,
        )

    async def _collect_year(self, entry: YearEntry) -> YearResult:
        LOGGER.info("Processing year %s", entry.year)
        issues = await self.list_issues(entry)
        if issues is None:
            return YearResult(entry.year, [], complete=False)

        async def _issue_unit(issue: IssueEntry) -> UnitResult[IssueResult]:
            return await run_unit(
                "issue",
                f"{entry.year} {issue.title}",
                issue.url,
                lambda: self.process_issue(entry.year, issue),
            )

        outcomes = await gather_bounded(
            issues,
            _issue_unit,
            self._config.rate_limit.issue_batch_size,
        )

        result = YearResult(entry.year, [])
        for outcome in outcomes:
            if not outcome.ok:
                result.complete = False
                result.errors.append(outcome.error)
                continue
            result.records.extend(outcome.value.records)
            result.errors.extend(outcome.value.errors)
            result.complete = result.complete and outcome.value.complete

        LOGGER.info("Collected %d questions for %s", len(result.records), entry.year)
        return result

    async def _year_unit(self, entry: YearEntry) -> UnitResult[YearResult]:
        return await run_unit("year", entry.year, entry.url, lambda: self.process_year(entry))

    # Driver -------------------------------------------------------------------
    async def run(self) -> CrawlSummary:
        years = await self.resolve_years()
        if years:
            self._store.save_years(years)

        progress = self._store.load_progress()
        start_index = progress.last_processed_index if progress else 0
        if start_index:
            LOGGER.info("Resuming from year index %d", start_index)

        records = self._store.load_dataset()
        checkpointed = progress.total_records if progress else 0
        if len(records) > checkpointed:
            # Records past the checkpoint belong to a batch whose progress write never landed.
            LOGGER.warning(
                "Dataset holds %d questions but the checkpoint covers %d; discarding the rest",
                len(records),
                checkpointed,
            )
            del records[checkpointed:]
        if records:
            LOGGER.info("Loaded %d existing questions", len(records))

        summary = CrawlSummary(years_total=len(years), start_index=start_index, records=len(records))
        batch_size = self._config.rate_limit.batch_size
        try:
            for offset, batch in iter_batches(years, batch_size, start_index):
                LOGGER.info(
                    "Processing batch %d-%d / %d",
                    offset,
                    offset + len(batch) - 1,
                    len(years),
                )
                outcomes = await gather_bounded(batch, self._year_unit, len(batch))
                self._append_batch(records, outcomes)

                summary.years_processed += len(batch)
                self._store.save_dataset(records)
                self._store.save_progress(len(records), offset + len(batch))
                LOGGER.info("Questions collected so far: %d", len(records))

                if offset + len(batch) < len(years):
                    delay = await self._batch_limiter.wait()
                    LOGGER.debug("Paused %.1fs between year batches", delay)
        except Exception:
            LOGGER.exception("Crawl aborted after %d years", summary.years_processed)

        self._store.save_dataset(records)
        summary.new_records = len(records) - summary.records
        summary.records = len(records)
        summary.failures = self._failures.count
        LOGGER.info(
            "Saved %d questions (%d new, %d failures)",
            summary.records,
            summary.new_records,
            summary.failures,
        )
        return summary

    def _append_batch(
        self,
        records: list[QuestionRecord],
        outcomes: Sequence[UnitResult[YearResult]],
    ) -> None:
        for outcome in outcomes:
            if not outcome.ok:
                self._failures.record(outcome.error)
                continue
            for error in outcome.value.errors:
                self._failures.record(error)
            records.extend(outcome.value.records)


def _dump_entries(entries: Sequence[IssueEntry | ArticleEntry]) -> list[dict]:
    return [entry.to_payload() for entry in entries]


async def crawl(
    config: CrawlConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    batch_limiter: RateLimiter | None = None,
    **fetcher_kwargs,
) -> CrawlSummary:
    """Build the collaborators from ``config`` and run one full crawl."""

    config.ensure_directories()
    cache = ResourceCache.from_config(config)
    store = CheckpointStore(config.data_dir)
    failure_log = FailureLog(config.failure_log_path)
    async with HttpFetcher.for_crawl(config, transport=transport, **fetcher_kwargs) as fetcher:
        crawler = ArchiveCrawler(
            config,
            fetcher,
            cache,
            store,
            failure_log=failure_log,
            batch_limiter=batch_limiter,
        )
        return await crawler.run()
