"""Candidate player search over the report collection.

Conditions are combined in two layers:
- a shared conjunctive set: name pattern, plus a minimum overall rating
  when the threshold is above 10;
- one id-range condition per season selector. Season N owns the ids
  [N * 1_000_000, N * 1_000_000 + 999_999], so each selector is queried on
  its own (shared AND range) and the per-season results are concatenated,
  which gives OR semantics across seasons.

Every query sorts by descending position rating, is capped at
`query_row_limit` rows and resolves the price and season-image references
held in the profile block.
"""

from collections.abc import Sequence
from typing import Any

from pymongo.errors import PyMongoError

from config.settings import GlobalConfig, get_config
from src.exceptions import DataStoreError
from src.fields import CURRENT_REPORT_FIELDS, ReportFieldTable
from src.logger import get_logger
from src.models import SEASON_ID_SPAN, Entity

log = get_logger(__name__)

RATING_THRESHOLD_FLOOR = 10

SeasonSelector = int | str


def season_number(selector: SeasonSelector) -> int:
    """Numeric season taken from the last three characters of a selector.

    >>> season_number(256)
    256
    >>> season_number("season_257")
    257
    """
    suffix = str(selector).strip()[-3:]
    if not suffix.isdigit():
        raise ValueError(f"Season selector '{selector}' has no numeric suffix")
    return int(suffix)


def season_id_range(selector: SeasonSelector) -> tuple[int, int]:
    """Inclusive player id range owned by a season."""
    base = season_number(selector) * SEASON_ID_SPAN
    return base, base + SEASON_ID_SPAN - 1


def normalize_selectors(
    seasons: SeasonSelector | Sequence[SeasonSelector] | None,
) -> list[SeasonSelector]:
    if seasons is None:
        return []
    if isinstance(seasons, (int, str)):
        seasons = [seasons]
    return [s for s in seasons if s is not None and str(s).strip() != ""]


def build_shared_conditions(
    name_pattern: str = "",
    min_rating: int = 0,
    fields: ReportFieldTable = CURRENT_REPORT_FIELDS,
) -> list[dict[str, Any]]:
    """Conditions applied to every season query."""
    conditions: list[dict[str, Any]] = [{fields.name: {"$regex": name_pattern}}]
    if min_rating and min_rating > RATING_THRESHOLD_FLOOR:
        conditions.append({fields.best_rating: {"$gte": int(min_rating)}})
    return conditions


def id_range_condition(
    selector: SeasonSelector, fields: ReportFieldTable = CURRENT_REPORT_FIELDS
) -> dict[str, Any]:
    low, high = season_id_range(selector)
    return {fields.id: {"$gte": low, "$lte": high}}


class QueryBuilder:
    """Runs season-scoped player searches against the report collection.

    Attributes:
        reports: Async pymongo collection of player reports.
        config: GlobalConfig with collection names and row limit.
        fields: Versioned report field table.
    """

    def __init__(
        self,
        reports: Any,
        config: GlobalConfig | None = None,
        fields: ReportFieldTable = CURRENT_REPORT_FIELDS,
    ) -> None:
        self.reports = reports
        self.config = config or get_config()
        self.fields = fields

    def build_pipeline(self, conditions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Aggregation stages for one query: match, order, cap, resolve refs."""
        fields = self.fields
        return [
            {"$match": {"$and": list(conditions)}},
            {"$sort": {fields.position_best_rating: -1}},
            {"$limit": self.config.query_row_limit},
            {
                "$lookup": {
                    "from": self.config.price_collection,
                    "localField": fields.price_ref,
                    "foreignField": "_id",
                    "as": "_resolved_prices",
                }
            },
            {
                "$lookup": {
                    "from": self.config.season_image_collection,
                    "localField": fields.season_image_ref,
                    "foreignField": "_id",
                    "as": "_resolved_season_image",
                }
            },
            {
                "$set": {
                    fields.price_ref: {"$arrayElemAt": ["$_resolved_prices", 0]},
                    fields.season_image_ref: {"$arrayElemAt": ["$_resolved_season_image", 0]},
                }
            },
            {"$unset": ["_resolved_prices", "_resolved_season_image"]},
        ]

    async def _query(self, conditions: list[dict[str, Any]]) -> list[dict[str, Any]]:
        pipeline = self.build_pipeline(conditions)
        try:
            cursor = await self.reports.aggregate(pipeline)
            rows = await cursor.to_list(None)
        except PyMongoError as exc:
            raise DataStoreError("aggregate", reason=str(exc)) from exc

        incomplete = sum(1 for row in rows if self.fields.missing_fields(row))
        if incomplete:
            log.warning(
                "Report rows missing expected fields",
                incomplete=incomplete,
                field_table_version=self.fields.version,
            )
        return rows

    async def search(
        self,
        seasons: SeasonSelector | Sequence[SeasonSelector] | None = None,
        min_rating: int = 0,
        name_pattern: str | None = None,
    ) -> list[dict[str, Any]]:
        """Find report rows for the given seasons.

        Args:
            seasons: One selector, a list of selectors, or None for no
                season restriction.
            min_rating: Overall rating floor; ignored unless greater than 10.
            name_pattern: Name regex; defaults to the configured pattern.

        Returns:
            Report rows, season by season in selector order.

        Raises:
            DataStoreError: If a query fails.
        """
        pattern = self.config.name_pattern if name_pattern is None else name_pattern
        conditions = build_shared_conditions(pattern, min_rating, self.fields)
        selectors = normalize_selectors(seasons)

        if not selectors:
            rows = await self._query(conditions)
            log.info("Player search complete", seasons=[], rows=len(rows))
            return rows

        results: list[dict[str, Any]] = []
        for selector in selectors:
            conditions.append(id_range_condition(selector, self.fields))
            try:
                found = await self._query(conditions)
            finally:
                conditions.pop()
            log.debug("Season query complete", season=season_number(selector), rows=len(found))
            results.extend(found)

        log.info(
            "Player search complete",
            seasons=[season_number(s) for s in selectors],
            min_rating=min_rating,
            rows=len(results),
            field_table_version=self.fields.version,
        )
        return results

    async def search_entities(
        self,
        seasons: SeasonSelector | Sequence[SeasonSelector] | None = None,
        min_rating: int = 0,
    ) -> list[Entity]:
        """Search and convert rows to Entity objects for the task pool."""
        rows = await self.search(seasons, min_rating)
        return [Entity.from_report(row) for row in rows]
