"""Bounded-concurrency task pool for extraction campaigns.

The pool admits at most N units at a time through an asyncio.Semaphore.
A unit is either one (player, grade) pair or, with entity grouping, all of
one player's grades run back to back in the same slot.

Excluded players are recorded as skipped before any slot is taken, so they
never cost capacity and never reach the browser. A failure inside one item
becomes an error record; it never cancels sibling units. `run()` returns
once every item has a terminal record.
"""

import asyncio
from collections.abc import Iterable, Sequence
from enum import Enum

from src.aggregator import ResultAggregator
from src.extractor import ExtractionPipeline
from src.logger import get_logger
from src.models import Entity, Outcome, ValuationRecord, WorkItem

log = get_logger(__name__)


class Grouping(str, Enum):
    """Granularity of one pool slot."""

    GRADE = "grade"
    ENTITY = "entity"


def build_work_items(entities: Iterable[Entity], grades: Sequence[int]) -> list[WorkItem]:
    """Expand players x grades into work items, in input order."""
    return [WorkItem(entity=entity, grade=grade) for entity in entities for grade in grades]


class TaskPool:
    """Runs work items through an ExtractionPipeline with a concurrency bound.

    Attributes:
        pipeline: Per-item extraction pipeline.
        exclusions: Player ids that must never be processed.
        max_concurrency: Maximum units in flight.
        grouping: Whether a slot runs one pair or one player's grades.
    """

    def __init__(
        self,
        pipeline: ExtractionPipeline,
        exclusions: frozenset[int] = frozenset(),
        max_concurrency: int = 10,
        grouping: Grouping = Grouping.GRADE,
        error_ratio_alert_threshold: float = 0.30,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.pipeline = pipeline
        self.exclusions = exclusions
        self.max_concurrency = max_concurrency
        self.grouping = Grouping(grouping)
        self.error_ratio_alert_threshold = error_ratio_alert_threshold

    def _group(self, items: Iterable[WorkItem]) -> list[list[WorkItem]]:
        if self.grouping is Grouping.GRADE:
            return [[item] for item in items]

        units: dict[int, list[WorkItem]] = {}
        for item in items:
            units.setdefault(item.entity_id, []).append(item)
        return list(units.values())

    async def run(self, items: Iterable[WorkItem]) -> ResultAggregator:
        """Execute all items and collect their records.

        Returns:
            ResultAggregator holding one terminal record per input item.
        """
        aggregator = ResultAggregator(self.error_ratio_alert_threshold)
        dispatched: list[WorkItem] = []

        for item in items:
            if item.entity_id in self.exclusions:
                aggregator.add(ValuationRecord.skipped(item))
                continue
            dispatched.append(item)

        units = self._group(dispatched)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        log.info(
            "Task pool started",
            dispatched=len(dispatched),
            skipped=aggregator.count(Outcome.SKIPPED),
            units=len(units),
            max_concurrency=self.max_concurrency,
            grouping=self.grouping.value,
        )

        await asyncio.gather(
            *(self._run_unit(unit, semaphore, aggregator) for unit in units)
        )

        log.info("Task pool finished", **aggregator.summary())
        aggregator.check_error_ratio()
        return aggregator

    async def _run_unit(
        self,
        unit: list[WorkItem],
        semaphore: asyncio.Semaphore,
        aggregator: ResultAggregator,
    ) -> None:
        async with semaphore:
            for item in unit:
                aggregator.add(await self._run_item(item))

    async def _run_item(self, item: WorkItem) -> ValuationRecord:
        try:
            return await self.pipeline.extract(item)
        except Exception as exc:
            log.error(
                "Unhandled task failure",
                entity_id=item.entity_id,
                grade=item.grade,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ValuationRecord.failure(item, Outcome.EXTRACTION_ERROR, str(exc))
