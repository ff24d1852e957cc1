"""Collection of task outcomes for one campaign batch.

Records are appended as tasks finish, so `records` is in completion order,
not input order. Duplicates for the same (player, grade) are kept; the
batch writer resolves them (last write wins).
"""

from collections import Counter
from typing import Any

from src.logger import get_logger
from src.models import FailurePolicy, Outcome, ValuationRecord

log = get_logger(__name__)


class ResultAggregator:
    """Accumulates ValuationRecords and outcome counters.

    Example:
        aggregator = ResultAggregator()
        aggregator.add(record)
        to_write = aggregator.persistable(FailurePolicy.DROP)
    """

    def __init__(self, error_ratio_alert_threshold: float = 0.30) -> None:
        self.error_ratio_alert_threshold = error_ratio_alert_threshold
        self._records: list[ValuationRecord] = []
        self._counts: Counter[Outcome] = Counter()

    def add(self, record: ValuationRecord) -> None:
        self._records.append(record)
        self._counts[record.outcome] += 1

    def extend(self, records: list[ValuationRecord]) -> None:
        for record in records:
            self.add(record)

    @property
    def records(self) -> list[ValuationRecord]:
        return list(self._records)

    @property
    def successes(self) -> list[ValuationRecord]:
        return [r for r in self._records if r.outcome is Outcome.SUCCESS]

    @property
    def errors(self) -> list[ValuationRecord]:
        return [r for r in self._records if r.is_error]

    @property
    def skipped(self) -> list[ValuationRecord]:
        return [r for r in self._records if r.is_skipped]

    @property
    def dispatched_count(self) -> int:
        """Items that were actually run (not skipped)."""
        return len(self._records) - self._counts[Outcome.SKIPPED]

    @property
    def error_ratio(self) -> float:
        dispatched = self.dispatched_count
        if dispatched == 0:
            return 0.0
        return len(self.errors) / dispatched

    def count(self, outcome: Outcome) -> int:
        return self._counts[outcome]

    def persistable(self, policy: FailurePolicy) -> list[ValuationRecord]:
        """Records the writer should persist under `policy`.

        Skipped items are never persisted. Error records are kept only
        under FailurePolicy.RECORD.
        """
        if policy is FailurePolicy.RECORD:
            return [r for r in self._records if not r.is_skipped]
        return self.successes

    def summary(self) -> dict[str, Any]:
        """Outcome counters for logging and reporting."""
        summary: dict[str, Any] = {outcome.value: self._counts[outcome] for outcome in Outcome}
        summary["total"] = len(self._records)
        summary["error_ratio"] = f"{self.error_ratio:.1%}"
        return summary

    def check_error_ratio(self) -> bool:
        """Log an alert when the error ratio exceeds the threshold.

        Per-task failures are isolated, so this never raises; a high ratio
        usually means the page layout or readiness attribute changed.

        Returns:
            True if the alert fired.
        """
        ratio = self.error_ratio
        if self.dispatched_count and ratio > self.error_ratio_alert_threshold:
            log.critical(
                "Extraction error ratio above threshold",
                error_ratio=f"{ratio:.1%}",
                threshold=f"{self.error_ratio_alert_threshold:.1%}",
                dispatched=self.dispatched_count,
            )
            return True
        return False
