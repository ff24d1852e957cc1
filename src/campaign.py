"""Campaign driver: search players, extract prices, write them back.

A campaign wires the query builder, task pool and batch writer together
over one acquired browser session and one document store. With
`campaign_split_by_season` enabled, each season selector is searched,
extracted and written as its own batch, so a failure late in the run does
not discard the seasons already written.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, Field

from config.settings import GlobalConfig, get_config
from src.aggregator import ResultAggregator
from src.browser import SessionManager
from src.extractor import ExtractionPipeline
from src.logger import get_logger
from src.models import Entity, FailurePolicy, Outcome, ValuationRecord
from src.pool import Grouping, TaskPool, build_work_items
from src.query import QueryBuilder, SeasonSelector, normalize_selectors
from src.writer import BatchUpsertWriter, WriteSummary

log = get_logger(__name__)


class CampaignResult(BaseModel):
    """Outcome of a full campaign run."""

    records: list[ValuationRecord] = Field(default_factory=list)
    written: int = 0
    batches: int = 0
    outcomes: dict[str, int] = Field(default_factory=dict)

    @property
    def successes(self) -> list[ValuationRecord]:
        return [r for r in self.records if r.outcome is Outcome.SUCCESS]


class Campaign:
    """One end-to-end valuation run.

    Attributes:
        config: GlobalConfig with campaign defaults and policies.
        query_builder: Player search over the report collection.
        pool: Bounded task pool driving the extraction pipeline.
        writer: Batch writer for the price collection.
        policy: Whether failed extractions are dropped or stored.
    """

    def __init__(
        self,
        store: Any,
        session: SessionManager,
        exclusions: frozenset[int] = frozenset(),
        config: GlobalConfig | None = None,
    ) -> None:
        self.config = config or get_config()
        self.query_builder = QueryBuilder(store.reports, self.config)
        self.pool = TaskPool(
            ExtractionPipeline(session, self.config),
            exclusions=exclusions,
            max_concurrency=self.config.max_concurrent_tasks,
            grouping=Grouping(self.config.grouping),
            error_ratio_alert_threshold=self.config.error_ratio_alert_threshold,
        )
        self.writer = BatchUpsertWriter(store.prices, self.config.error_marker)
        self.policy = FailurePolicy(self.config.failure_policy)

    async def collect(self, entities: Sequence[Entity], grades: Sequence[int]) -> ResultAggregator:
        """Extract prices for every player x grade pair."""
        return await self.pool.run(build_work_items(entities, grades))

    async def write(self, aggregator: ResultAggregator) -> WriteSummary:
        """Persist the aggregator's records under the configured failure policy."""
        return await self.writer.write(aggregator.persistable(self.policy))

    async def run(
        self,
        seasons: SeasonSelector | Sequence[SeasonSelector] | None = None,
        grades: Sequence[int] | None = None,
        min_rating: int | None = None,
    ) -> CampaignResult:
        """Search, extract and write, batch by batch.

        Args:
            seasons: Season selectors; defaults to `campaign_seasons`.
            grades: Grades per player; defaults to `campaign_grades`.
            min_rating: Rating floor; defaults to `campaign_min_rating`.

        Raises:
            DataStoreError: If a search or a batch write fails.
        """
        selectors = normalize_selectors(
            self.config.campaign_seasons if seasons is None else seasons
        )
        grades = list(self.config.campaign_grades if grades is None else grades)
        min_rating = self.config.campaign_min_rating if min_rating is None else min_rating

        if self.config.campaign_split_by_season and len(selectors) > 1:
            batches: list[list[SeasonSelector]] = [[s] for s in selectors]
        else:
            batches = [selectors]

        log.info(
            "Campaign started",
            seasons=selectors,
            grades=grades,
            min_rating=min_rating,
            batches=len(batches),
            failure_policy=self.policy.value,
        )

        result = CampaignResult()
        outcomes = {outcome.value: 0 for outcome in Outcome}

        for batch in batches:
            entities = await self.query_builder.search_entities(batch, min_rating)
            aggregator = await self.collect(entities, grades)
            summary = await self.write(aggregator)

            result.records.extend(aggregator.records)
            result.written += summary.records
            result.batches += 1
            for outcome in Outcome:
                outcomes[outcome.value] += aggregator.count(outcome)

            log.info(
                "Campaign batch complete",
                seasons=batch,
                players=len(entities),
                written=summary.records,
            )

        result.outcomes = outcomes
        log.info("Campaign complete", written=result.written, **outcomes)
        return result
