"""Per-request stage timing."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class StageRecord:
    stage: str
    latency_ms: float
    detail: dict[str, Any] = field(default_factory=dict)


class Timer:
    """Simple context timer used by the pipeline."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


class StageTrace:
    """Collects stage latencies for one request; never shared across requests."""

    def __init__(self) -> None:
        self._records: list[StageRecord] = []

    @contextmanager
    def stage(self, name: str, **detail: Any) -> Iterator[dict[str, Any]]:
        """Time a block; callers may add to the yielded detail dict."""
        extra = dict(detail)
        with Timer() as timer:
            yield extra
        self._records.append(StageRecord(stage=name, latency_ms=timer.elapsed_ms, detail=extra))

    @property
    def records(self) -> list[StageRecord]:
        return list(self._records)

    def stages(self) -> list[str]:
        return [record.stage for record in self._records]

    def summary(self) -> dict[str, float]:
        """Total latency per stage name, rounded for logging."""
        totals: dict[str, float] = {}
        for record in self._records:
            totals[record.stage] = totals.get(record.stage, 0.0) + record.latency_ms
        return {name: round(value, 2) for name, value in totals.items()}
