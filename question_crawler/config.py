"""Configuration shared by the crawl and enrichment stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BASE_URL = "https://wol.jw.org"
DEFAULT_START_URL = "https://wol.jw.org/ko/wol/lv/r8/lp-ko/0/20383"
DEFAULT_DATA_DIR = Path("data")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)

USER_AGENT_POOL: tuple[str, ...] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Edge/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPad; CPU OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
)

CACHE_BACKENDS = ("json", "sqlite")


@dataclass(slots=True)
class RateLimitConfig:
    delay: float = 0.5
    jitter: float = 0.0
    batch_size: int = 3
    issue_batch_size: int = 2
    batch_delay: float = 1.0
    batch_jitter: float = 0.0


@dataclass(slots=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 1.0
    backoff: str = "constant"

    def delay_for(self, attempt: int) -> float:
        """Return the pause after the given failed attempt (1-based)."""

        if self.backoff == "linear":
            return self.base_delay * attempt
        if self.backoff == "constant":
            return self.base_delay
        raise ValueError(f"Unknown backoff strategy {self.backoff!r}")


@dataclass(slots=True)
class TimeoutConfig:
    request_timeout: float = 15.0


@dataclass(slots=True)
class MarkerConfig:
    """Locale-specific labels used to navigate the archive."""

    year_pattern: str = r"파수대—(\d{4})"
    research_edition: str = "연구용"
    fifteenth_day: str = "15일"
    reader: str = "독자"
    question: str = "질문"
    era_cutoff_year: int = 2008


@dataclass(slots=True)
class EnrichmentConfig:
    batch_size: int = 10
    start_index: int = 0
    save_every: int = 5
    record_delay: float = 0.2
    record_jitter: float = 0.5
    batch_delay: float = 1.0
    batch_jitter: float = 2.0
    accept_language: str = "ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7"
    retry: RetryConfig = field(
        default_factory=lambda: RetryConfig(max_attempts=4, base_delay=2.0, backoff="linear")
    )


@dataclass(slots=True)
class CrawlConfig:
    base_url: str = DEFAULT_BASE_URL
    start_url: str = DEFAULT_START_URL
    data_dir: Path = DEFAULT_DATA_DIR
    user_agent: str = DEFAULT_USER_AGENT
    cache_backend: str = "json"
    write_record_files: bool = True
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    markers: MarkerConfig = field(default_factory=MarkerConfig)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)

    @property
    def cache_dir(self) -> Path:
        return self.data_dir / "cache"

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"

    @property
    def failure_log_path(self) -> Path:
        return self.log_dir / "failures.ndjson"

    def ensure_directories(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)


def delay_from_ms(value: int | None, default: float) -> float:
    """Convert a millisecond CLI option into seconds, keeping the default when unset."""

    if value is None:
        return default
    if value < 0:
        raise ValueError("Delay must not be negative")
    return value / 1000.0
