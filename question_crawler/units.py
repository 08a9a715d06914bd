"""Unit-level failure isolation and bounded concurrency helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Generic, Iterator, Sequence, TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(slots=True)
class UnitError:
    """Why one year, issue, article or enrichment record produced nothing."""

    unit: str
    identifier: str
    url: str | None
    message: str
    error_type: str

    def describe(self) -> str:
        location = f" ({self.url})" if self.url else ""
        return f"{self.unit} {self.identifier}{location}: {self.error_type}: {self.message}"


@dataclass(slots=True)
class UnitResult(Generic[T]):
    value: T | None = None
    error: UnitError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def run_unit(
    unit: str,
    identifier: str,
    url: str | None,
    work: Callable[[], Awaitable[T]],
) -> UnitResult[T]:
    """Await ``work`` and capture any exception as a failed result."""

    try:
        return UnitResult(value=await work())
    except Exception as exc:  # noqa: BLE001 - failures are isolated per unit
        return UnitResult(
            error=UnitError(
                unit=unit,
                identifier=identifier,
                url=url,
                message=str(exc),
                error_type=type(exc).__name__,
            )
        )


async def gather_bounded(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``limit`` in flight.

    Results come back in the order of ``items`` whatever the completion order.
    """

    semaphore = asyncio.Semaphore(max(1, limit))

    async def _guarded(item: T) -> R:
        async with semaphore:
            return await worker(item)

    return list(await asyncio.gather(*(_guarded(item) for item in items)))


def iter_batches(items: Sequence[T], size: int, start: int = 0) -> Iterator[tuple[int, Sequence[T]]]:
    size = max(1, size)
    for offset in range(max(0, start), len(items), size):
        yield offset, items[offset : offset + size]


class FailureLog:
    """Append unit failures to an NDJSON file for later inspection."""

    def __init__(self, path: Path | None) -> None:
        self._path = path
        self.count = 0

    def record(self, error: UnitError) -> None:
        self.count += 1
        LOGGER.error("Failed to process %s", error.describe())
        if self._path is None:
            return
        payload = asdict(error)
        payload["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
        except OSError as file_error:  # pragma: no cover - filesystem failure path
            LOGGER.warning("Failed to record failure for %s: %s", error.identifier, file_error)
