"""Run tracing and per-combo summary metrics."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone

from agent_flag.types import Failure, Inquiry, Outcome, WorkflowResult


@dataclass(slots=True)
class RunRecord:
    inquiry_id: str
    user_id: str
    inquiry_type: str
    timestamp_utc: str
    success: bool
    combo: str | None
    category: str | None
    response_format: str | None
    document_count: int
    latency_ms: float
    error: str | None = None


class RunStore:
    """In-memory run storage for API-level observability.

    Records are keyed by inquiry id; a re-submitted inquiry replaces its
    earlier record.
    """

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, RunRecord] = {}
        self._max_records = max_records

    def create_record(
        self,
        inquiry: Inquiry,
        outcome: Outcome[WorkflowResult],
        *,
        latency_ms: float,
    ) -> RunRecord:
        if isinstance(outcome, Failure):
            record = RunRecord(
                inquiry_id=inquiry.id,
                user_id=inquiry.user_id,
                inquiry_type=inquiry.type,
                timestamp_utc=_utc_now(),
                success=False,
                combo=None,
                category=None,
                response_format=None,
                document_count=0,
                latency_ms=latency_ms,
                error=outcome.error.message,
            )
        else:
            result = outcome.value
            record = RunRecord(
                inquiry_id=inquiry.id,
                user_id=inquiry.user_id,
                inquiry_type=inquiry.type,
                timestamp_utc=_utc_now(),
                success=True,
                combo=result.combo,
                category=result.intent.category,
                response_format=result.response.format,
                document_count=len(result.retrieval.documents),
                latency_ms=latency_ms,
            )

        self._records.pop(inquiry.id, None)
        self._records[inquiry.id] = record
        while len(self._records) > self._max_records:
            self._records.pop(next(iter(self._records)))
        return record

    def get(self, inquiry_id: str) -> RunRecord:
        record = self._records.get(inquiry_id)
        if record is None:
            raise KeyError(f"Run not found: {inquiry_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[RunRecord]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, object]:
        """Aggregate request counts and latency, overall and per combo."""
        records = list(self._records.values())
        by_combo: dict[str, list[RunRecord]] = {}
        for record in records:
            if record.success and record.combo is not None:
                by_combo.setdefault(record.combo, []).append(record)

        return {
            "total_requests": len(records),
            "failed_requests": sum(1 for record in records if not record.success),
            **_latency_stats(records),
            "combos": {combo: {"requests": len(items), **_latency_stats(items)} for combo, items in sorted(by_combo.items())},
        }


def _latency_stats(records: list[RunRecord]) -> dict[str, float]:
    if not records:
        return {"avg_latency_ms": 0.0, "p95_latency_ms": 0.0}
    latencies = sorted(record.latency_ms for record in records)
    p95_index = max(0, int((len(latencies) * 0.95) - 1))
    return {
        "avg_latency_ms": sum(latencies) / len(latencies),
        "p95_latency_ms": latencies[p95_index],
    }


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Timer:
    """Simple context timer used by the workflow executor."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0

    def lap_ms(self) -> float:
        """Elapsed time so far, usable while the timer is still running."""
        return (time.perf_counter() - self._start) * 1000.0
