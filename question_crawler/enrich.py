"""Backfill the ``subtitle`` field of already collected questions.

This pass always re-fetches article pages; it does not consult the resource
cache. It can be resumed from an arbitrary record index.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import httpx

from .checkpoint import CheckpointStore
from .collect import configure_logging
from .config import DEFAULT_DATA_DIR, CrawlConfig, delay_from_ms
from .http_client import HttpFetcher
from .models import QuestionRecord
from .parsers.article import parse_subtitle
from .rate_limit import RateLimiter
from .units import FailureLog, UnitResult, gather_bounded, iter_batches, run_unit

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class EnrichmentSummary:
    total: int = 0
    start_index: int = 0
    processed: int = 0
    updated: int = 0
    failed: int = 0


class SubtitleEnricher:
    def __init__(
        self,
        config: CrawlConfig,
        fetcher: HttpFetcher,
        store: CheckpointStore,
        *,
        record_limiter: RateLimiter | None = None,
        batch_limiter: RateLimiter | None = None,
        failure_log: FailureLog | None = None,
    ) -> None:
        settings = config.enrichment
        self._settings = settings
        self._fetcher = fetcher
        self._store = store
        self._record_limiter = record_limiter or RateLimiter(settings.record_delay, settings.record_jitter)
        self._batch_limiter = batch_limiter or RateLimiter(settings.batch_delay, settings.batch_jitter)
        self._failures = failure_log or FailureLog(None)

    async def _extract(self, url: str) -> str:
        LOGGER.info("Requesting %s", url)
        html, _ = await self._fetcher.fetch_html(url)
        subtitle = parse_subtitle(html)
        if not subtitle:
            LOGGER.info("No subtitle found: %s", url)
        return subtitle

    async def _subtitle_unit(self, item: tuple[int, QuestionRecord]) -> UnitResult[str]:
        index, record = item
        try:
            return await run_unit("record", f"#{index}", record.url, lambda: self._extract(record.url))
        finally:
            await self._record_limiter.wait()

    async def run(self, start_index: int | None = None) -> EnrichmentSummary:
        start = self._settings.start_index if start_index is None else start_index
        records = self._store.load_dataset()
        summary = EnrichmentSummary(total=len(records), start_index=start)
        if not records:
            LOGGER.warning("No collected questions found in %s", self._store.dataset_path)
            return summary

        LOGGER.info("Enriching %d records starting at index %d", len(records), start)
        batches_done = 0
        try:
            for offset, batch in iter_batches(records, self._settings.batch_size, start):
                LOGGER.info("Processing batch %d ~ %d", offset, offset + len(batch) - 1)
                indexed = list(enumerate(batch, start=offset))
                outcomes = await gather_bounded(indexed, self._subtitle_unit, len(indexed))
                self._apply(indexed, outcomes, summary)

                batches_done += 1
                if self._settings.save_every and batches_done % self._settings.save_every == 0:
                    self._store.save_dataset(records)
                    LOGGER.info("Intermediate save: %d subtitles updated", summary.updated)

                if offset + len(batch) < len(records):
                    delay = await self._batch_limiter.wait()
                    LOGGER.info("Paused %.1fs between batches", delay)
        except Exception:
            LOGGER.exception("Enrichment aborted after %d records", summary.processed)

        self._store.save_dataset(records)
        LOGGER.info("Updated %d of %d subtitles", summary.updated, summary.total)
        return summary

    def _apply(
        self,
        indexed: Sequence[tuple[int, QuestionRecord]],
        outcomes: Sequence[UnitResult[str]],
        summary: EnrichmentSummary,
    ) -> None:
        for (index, record), outcome in zip(indexed, outcomes):
            summary.processed += 1
            if not outcome.ok:
                summary.failed += 1
                self._failures.record(outcome.error)
                continue
            if outcome.value:
                record.subtitle = outcome.value
                summary.updated += 1
                LOGGER.info("[%d/%d] Updated: %s -> %s", index + 1, summary.total, record.url, outcome.value)


async def enrich(
    config: CrawlConfig,
    *,
    start_index: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs,
) -> EnrichmentSummary:
    """Build the collaborators from ``config`` and run one enrichment pass."""

    config.ensure_directories()
    store = CheckpointStore(config.data_dir)
    failure_log = FailureLog(config.failure_log_path)
    sleep = kwargs.pop("sleep", None)
    async with HttpFetcher.for_enrichment(config, transport=transport, sleep=sleep) as fetcher:
        enricher = SubtitleEnricher(config, fetcher, store, failure_log=failure_log, **kwargs)
        return await enricher.run(start_index)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Backfill subtitles for collected reader questions")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Directory holding all-questions.json (default: data)",
    )
    parser.add_argument(
        "--start-index",
        type=int,
        default=None,
        help="Record index to resume from; earlier records are left untouched (default: 0)",
    )
    parser.add_argument("--batch-size", type=int, default=None, help="Records fetched concurrently (default: 10)")
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=None,
        help="Base delay after each record request in milliseconds (default: 200)",
    )
    parser.add_argument(
        "--retry-count",
        type=int,
        default=None,
        help="Total attempts per article before it counts as failed (default: 4)",
    )
    parser.add_argument(
        "--save-every",
        type=int,
        default=None,
        help="Persist the dataset after this many batches (default: 5)",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser


def build_config(args: argparse.Namespace) -> CrawlConfig:
    config = CrawlConfig(data_dir=args.data_dir)
    settings = config.enrichment
    if args.start_index is not None:
        if args.start_index < 0:
            raise ValueError("--start-index must not be negative")
        settings.start_index = args.start_index
    if args.batch_size is not None:
        if args.batch_size <= 0:
            raise ValueError("--batch-size must be a positive integer")
        settings.batch_size = args.batch_size
    if args.retry_count is not None:
        if args.retry_count <= 0:
            raise ValueError("--retry-count must be a positive integer")
        settings.retry.max_attempts = args.retry_count
    if args.save_every is not None:
        if args.save_every < 0:
            raise ValueError("--save-every must not be negative")
        settings.save_every = args.save_every
    settings.record_delay = delay_from_ms(args.delay_ms, settings.record_delay)
    return config


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    summary = asyncio.run(enrich(config))
    LOGGER.info(
        "Enrichment finished: %d processed, %d updated, %d failed",
        summary.processed,
        summary.updated,
        summary.failed,
    )
    return 0 if summary.failed == 0 else 1


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
