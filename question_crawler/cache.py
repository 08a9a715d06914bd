"""Never-expiring cache of structured results derived from archive pages.

Only parsed payloads are stored; raw markup never is. Presence of a key
means the work behind it finished and is trusted, so re-running the crawl
after an interruption turns every visited resource into a cache hit.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator, Protocol, TypeVar

from .config import CrawlConfig

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

_UNSAFE_KEY_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")


class CacheError(RuntimeError):
    """Raised when a stored cache entry cannot be read back."""


class CacheBackend(Protocol):
    def read(self, key: str) -> Any | None: ...

    def write(self, key: str, payload: Any) -> None: ...

    def delete(self, key: str) -> bool: ...

    def iter_keys(self) -> Iterator[str]: ...

    def normalize_key(self, key: str) -> str: ...


class JSONDirectoryBackend:
    """One pretty-printed JSON file per key."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    def normalize_key(self, key: str) -> str:
        """Key as it is listed back; filesystem-unsafe characters become ``_``."""

        return _UNSAFE_KEY_CHARS.sub("_", key)

    def path_for(self, key: str) -> Path:
        return self._directory / f"{self.normalize_key(key)}.json"

    def read(self, key: str) -> Any | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise CacheError(f"Corrupt cache entry {key!r} at {path}") from exc

    def write(self, key: str, payload: Any) -> None:
        path = self.path_for(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp_path.replace(path)

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True

    def iter_keys(self) -> Iterator[str]:
        for path in sorted(self._directory.glob("*.json")):
            yield path.stem


class SQLiteCacheBackend:
    """Key/value table in a single SQLite file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS cache_entries (
                    cache_key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )

    def _connect(self) -> "_SQLiteConnectionWrapper":
        conn = sqlite3.connect(self._path)
        conn.execute("PRAGMA journal_mode=WAL;")
        return _SQLiteConnectionWrapper(conn)

    def read(self, key: str) -> Any | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT payload FROM cache_entries WHERE cache_key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as exc:
            raise CacheError(f"Corrupt cache entry {key!r} in {self._path}") from exc

    def write(self, key: str, payload: Any) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO cache_entries (cache_key, payload) VALUES (?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET payload = excluded.payload,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, json.dumps(payload, ensure_ascii=False)),
            )

    def delete(self, key: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM cache_entries WHERE cache_key = ?", (key,))
            return cursor.rowcount > 0

    def normalize_key(self, key: str) -> str:
        return key

    def iter_keys(self) -> Iterator[str]:
        with self._connect() as conn:
            rows = conn.execute("SELECT cache_key FROM cache_entries ORDER BY cache_key").fetchall()
        for (key,) in rows:
            yield key


class _SQLiteConnectionWrapper:
    """Commit on success, roll back on error, always close."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def __enter__(self) -> sqlite3.Connection:
        return self._conn

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is None:
            self._conn.commit()
        else:  # pragma: no cover - failure path
            self._conn.rollback()
        self._conn.close()


class ResourceCache:
    """Single place that decides whether a logical fetch needs the network."""

    def __init__(self, backend: CacheBackend) -> None:
        self._backend = backend
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_config(cls, config: CrawlConfig) -> "ResourceCache":
        if config.cache_backend == "sqlite":
            return cls(SQLiteCacheBackend(config.cache_dir / "cache.sqlite3"))
        if config.cache_backend == "json":
            return cls(JSONDirectoryBackend(config.cache_dir))
        raise ValueError(f"Unknown cache backend {config.cache_backend!r}")

    def get(self, key: str) -> Any | None:
        return self._backend.read(key)

    def set(self, key: str, payload: Any) -> None:
        self._backend.write(key, payload)
        LOGGER.debug("Stored cache entry %s", key)

    def contains(self, key: str) -> bool:
        return self._backend.read(key) is not None

    def delete(self, key: str) -> bool:
        return self._backend.delete(key)

    def keys(self, prefix: str = "") -> list[str]:
        prefix = self._backend.normalize_key(prefix)
        return [key for key in self._backend.iter_keys() if key.startswith(prefix)]

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        dump: Callable[[T], Any] | None = None,
        load: Callable[[Any], T] | None = None,
        should_store: Callable[[T], bool] | None = None,
    ) -> T:
        """Return the cached value for ``key`` or produce, store and return it."""

        stored = self._backend.read(key)
        if stored is not None:
            self.hits += 1
            LOGGER.info("Cache hit: %s", key)
            return load(stored) if load else stored

        self.misses += 1
        value = await fetch()
        if should_store is None or should_store(value):
            self.set(key, dump(value) if dump else value)
        return value


def url_segment(url: str) -> str:
    """Last path segment of ``url``; distinguishes pages within one level."""

    return url.rstrip("/").split("/")[-1].split("?")[0]


def title_slug(title: str) -> str:
    return _WHITESPACE.sub("-", title.strip())


def years_key() -> str:
    return "years"


def research_key(year_url: str) -> str:
    return f"research-{url_segment(year_url)}"


def monthly_key(research_url: str) -> str:
    return f"monthly-{url_segment(research_url)}"


def fifteenth_day_key(year_url: str) -> str:
    return f"15thday-{url_segment(year_url)}"


def articles_key(issue_url: str) -> str:
    return f"articles-{url_segment(issue_url)}"


def question_key(article_url: str) -> str:
    return f"question-{url_segment(article_url)}"


def issue_key(year: str, issue_title: str) -> str:
    return f"issue-{year}-{title_slug(issue_title)}"


def year_key(year: str) -> str:
    return f"year-{year}"
