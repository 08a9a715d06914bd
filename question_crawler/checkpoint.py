"""Durable crawl state: progress record, cumulative dataset and per-record files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Sequence

from .cache import title_slug
from .models import CrawlProgress, QuestionRecord, records_from_payload, records_to_payload
from .parsers import YearEntry

LOGGER = logging.getLogger(__name__)

PROGRESS_FILE = "progress.json"
DATASET_FILE = "all-questions.json"
YEARS_FILE = "years.json"


def write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp_path.replace(path)


def _read_json(path: Path) -> Any | None:
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


class CheckpointStore:
    """Owns the on-disk copy of the crawl; the source of truth on restart."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)

    @property
    def progress_path(self) -> Path:
        return self.data_dir / PROGRESS_FILE

    @property
    def dataset_path(self) -> Path:
        return self.data_dir / DATASET_FILE

    @property
    def years_path(self) -> Path:
        return self.data_dir / YEARS_FILE

    def load_progress(self) -> CrawlProgress | None:
        payload = _read_json(self.progress_path)
        if not isinstance(payload, dict):
            return None
        return CrawlProgress.from_payload(payload)

    def save_progress(self, total_records: int, last_processed_index: int) -> CrawlProgress:
        progress = CrawlProgress.now(total_records, last_processed_index)
        write_json_atomic(self.progress_path, progress.to_payload())
        LOGGER.info("Checkpoint written: %d records, next year index %d", total_records, last_processed_index)
        return progress

    def load_dataset(self) -> list[QuestionRecord]:
        payload = _read_json(self.dataset_path)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ValueError(f"Dataset file {self.dataset_path} does not hold a list")
        return records_from_payload(payload)

    def save_dataset(self, records: Sequence[QuestionRecord]) -> None:
        write_json_atomic(self.dataset_path, records_to_payload(list(records)))

    def save_years(self, years: Sequence[YearEntry]) -> None:
        write_json_atomic(self.years_path, [entry.to_payload() for entry in years])

    def record_path(self, record: QuestionRecord) -> Path:
        name = "-".join(
            (
                "question",
                record.year,
                title_slug(record.issue),
                title_slug(record.title[:20]),
            )
        )
        return self.data_dir / f"{name.replace('/', '_')}.json"

    def write_record(self, record: QuestionRecord) -> Path:
        path = self.record_path(record)
        write_json_atomic(path, record.to_payload())
        return path
