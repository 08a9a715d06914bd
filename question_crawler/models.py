"""Records accumulated by the crawl and the progress checkpoint."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(slots=True)
class QuestionRecord:
    year: str
    issue: str
    title: str
    url: str
    question: str
    answer: str
    subtitle: str | None = None

    def to_payload(self) -> dict:
        payload = {
            "year": self.year,
            "issue": self.issue,
            "title": self.title,
            "url": self.url,
            "question": self.question,
            "answer": self.answer,
        }
        if self.subtitle is not None:
            payload["subtitle"] = self.subtitle
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "QuestionRecord":
        return cls(
            year=str(payload["year"]),
            issue=payload.get("issue", ""),
            title=payload.get("title", ""),
            url=payload.get("url", ""),
            question=payload.get("question", ""),
            answer=payload.get("answer", ""),
            subtitle=payload.get("subtitle"),
        )


def records_to_payload(records: list[QuestionRecord]) -> list[dict]:
    return [record.to_payload() for record in records]


def records_from_payload(payload: list[dict]) -> list[QuestionRecord]:
    return [QuestionRecord.from_payload(item) for item in payload]


@dataclass(slots=True)
class CrawlProgress:
    """Resume checkpoint written after every batch of years.

    Serialised with the key names used by existing ``progress.json`` files.
    """

    total_records: int
    last_processed_index: int
    timestamp: str

    @classmethod
    def now(cls, total_records: int, last_processed_index: int) -> "CrawlProgress":
        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return cls(total_records, last_processed_index, timestamp)

    def to_payload(self) -> dict:
        return {
            "count": self.total_records,
            "lastProcessedYearIndex": self.last_processed_index,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "CrawlProgress":
        return cls(
            total_records=int(payload.get("count", 0)),
            last_processed_index=int(payload.get("lastProcessedYearIndex") or 0),
            timestamp=str(payload.get("timestamp", "")),
        )
