"""Delete resource cache entries so the next crawl fetches them again."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

# Ensure the repository root is importable when executing from the scripts/ directory.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from question_crawler.cache import ResourceCache
from question_crawler.config import CACHE_BACKENDS, CrawlConfig


LOGGER = logging.getLogger(__name__)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Remove cached entries whose key starts with one of the given prefixes, "
            "e.g. 'year-2023' or 'issue-'. Without --apply only lists the matches."
        )
    )
    parser.add_argument("prefixes", nargs="+", help="Cache key prefixes to purge.")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path("data"),
        help="Directory holding the cache/ folder (default: data)",
    )
    parser.add_argument(
        "--cache-backend",
        choices=CACHE_BACKENDS,
        default="json",
        help="Cache storage to purge (default: json)",
    )
    parser.add_argument("--apply", action="store_true", help="Actually delete the matching entries.")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO)")
    return parser.parse_args(argv)


def purge(cache: ResourceCache, prefixes: Sequence[str], *, apply: bool) -> list[str]:
    matched: list[str] = []
    for prefix in prefixes:
        for key in cache.keys(prefix):
            if key in matched:
                continue
            matched.append(key)
            if apply:
                cache.delete(key)
                LOGGER.info("Deleted %s", key)
            else:
                LOGGER.info("Would delete %s", key)
    return matched


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = CrawlConfig(data_dir=args.data_dir, cache_backend=args.cache_backend)
    cache = ResourceCache.from_config(config)
    matched = purge(cache, args.prefixes, apply=args.apply)
    LOGGER.info("%s %d cache entries", "Purged" if args.apply else "Matched", len(matched))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
