"""Command-line entrypoint for collecting reader questions from the archive."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from .config import CACHE_BACKENDS, DEFAULT_DATA_DIR, DEFAULT_START_URL, CrawlConfig, delay_from_ms
from .traversal import crawl

LOGGER = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Collect reader questions into a local dataset")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DEFAULT_DATA_DIR,
        help="Directory holding the dataset, progress record and cache (default: data)",
    )
    parser.add_argument("--start-url", type=str, default=DEFAULT_START_URL, help="Year index page URL")
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Number of years processed concurrently per checkpoint (default: 3)",
    )
    parser.add_argument(
        "--issue-batch-size",
        type=int,
        default=None,
        help="Number of issues processed concurrently within a year (default: 2)",
    )
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=None,
        help="Delay before every upstream request in milliseconds (default: 500)",
    )
    parser.add_argument(
        "--batch-delay-ms",
        type=int,
        default=None,
        help="Pause between year batches in milliseconds (default: 1000)",
    )
    parser.add_argument(
        "--retry-count",
        type=int,
        default=None,
        help="Total attempts per request before the unit fails (default: 3)",
    )
    parser.add_argument(
        "--cache-backend",
        choices=CACHE_BACKENDS,
        default="json",
        help="Storage used for the resource cache (default: json)",
    )
    parser.add_argument(
        "--no-record-files",
        action="store_true",
        help="Skip writing one JSON file per collected question",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _positive(value: int | None, default: int, name: str) -> int:
    if value is None:
        return default
    if value <= 0:
        raise ValueError(f"{name} must be a positive integer")
    return value


def build_config(args: argparse.Namespace) -> CrawlConfig:
    config = CrawlConfig(
        data_dir=args.data_dir,
        start_url=args.start_url,
        cache_backend=args.cache_backend,
        write_record_files=not args.no_record_files,
    )
    config.rate_limit.batch_size = _positive(args.batch_size, config.rate_limit.batch_size, "--batch-size")
    config.rate_limit.issue_batch_size = _positive(
        args.issue_batch_size, config.rate_limit.issue_batch_size, "--issue-batch-size"
    )
    config.rate_limit.delay = delay_from_ms(args.delay_ms, config.rate_limit.delay)
    config.rate_limit.batch_delay = delay_from_ms(args.batch_delay_ms, config.rate_limit.batch_delay)
    config.retry.max_attempts = _positive(args.retry_count, config.retry.max_attempts, "--retry-count")
    return config


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = build_config(args)
    except ValueError as exc:
        parser.error(str(exc))

    LOGGER.info("Starting collection into %s", config.data_dir)
    summary = asyncio.run(crawl(config))
    LOGGER.info(
        "Collection finished: %d years processed from index %d, %d questions total",
        summary.years_processed,
        summary.start_index,
        summary.records,
    )
    return 0 if summary.failures == 0 else 1


__all__ = ["build_arg_parser", "build_config", "configure_logging", "main"]


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
