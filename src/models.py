"""Pydantic schemas for players, work items and valuation outcomes.

The crawler moves three kinds of data:
- Entity: a player row read from the report collection (read-only).
- ValuationRecord: the outcome of one (player, grade) extraction (transient).
- PriceDocument: the persisted per-player list of grade prices.

Validation happens at the boundaries only: rows coming out of the store and
documents going back in. Records produced by the pipeline are built from
already-typed values.
"""

import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

GRADE_MIN = 1
GRADE_MAX = 8

SEASON_ID_SPAN = 1_000_000

_KOREAN_UNITS = {
    "조": 1_000_000_000_000,
    "억": 100_000_000,
    "만": 10_000,
}
_UNIT_TOKEN = re.compile(r"([\d,]+(?:\.\d+)?)\s*(조|억|만)?")


class Outcome(str, Enum):
    """Terminal state of one work item."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    NAVIGATION_ERROR = "navigation_error"
    EXTRACTION_ERROR = "extraction_error"
    SKIPPED = "skipped"


class FailurePolicy(str, Enum):
    """What the writer does with failed extractions."""

    DROP = "drop"
    RECORD = "record"


class Entity(BaseModel):
    """A player being valued.

    Attributes:
        id: Player id (spid); the leading digits encode the season.
        name: Display name.
        attributes: Remaining report fields, kept for reporting.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=0)
    name: str = ""
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> int:
        """Report rows may carry the id as a numeric string."""
        if isinstance(value, str):
            value = value.strip()
            if not value.isdigit():
                raise ValueError(f"Player id must be numeric, got '{value}'")
            return int(value)
        return value

    @property
    def season(self) -> int:
        """Season number encoded in the player id."""
        return self.id // SEASON_ID_SPAN

    @classmethod
    def from_report(cls, row: dict[str, Any]) -> "Entity":
        """Build an entity from a player-report row."""
        attributes = {k: v for k, v in row.items() if k not in ("id", "name", "_id")}
        return cls(id=row["id"], name=row.get("name", ""), attributes=attributes)


class WorkItem(BaseModel):
    """One extraction unit: a player at one enhancement grade."""

    model_config = ConfigDict(frozen=True)

    entity: Entity
    grade: int = Field(..., ge=GRADE_MIN, le=GRADE_MAX)

    @property
    def entity_id(self) -> int:
        return self.entity.id


class ValuationRecord(BaseModel):
    """Outcome of extracting one (player, grade) price.

    Attributes:
        entity_id: Player id.
        grade: Enhancement grade.
        value: Extracted price text; None unless outcome is SUCCESS.
        outcome: Terminal classification.
        error: Failure description for non-success outcomes.
        completed_at: When the item reached its terminal state.
    """

    entity_id: int
    grade: int = Field(..., ge=GRADE_MIN, le=GRADE_MAX)
    value: str | None = None
    outcome: Outcome = Outcome.SUCCESS
    error: str | None = None
    completed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_error(self) -> bool:
        return self.outcome not in (Outcome.SUCCESS, Outcome.SKIPPED)

    @property
    def is_skipped(self) -> bool:
        return self.outcome is Outcome.SKIPPED

    def stored_price(self, error_marker: str) -> str:
        """Price string persisted for this record."""
        if self.outcome is Outcome.SUCCESS and self.value is not None:
            return self.value
        return error_marker

    @classmethod
    def success(cls, item: WorkItem, value: str) -> "ValuationRecord":
        return cls(entity_id=item.entity_id, grade=item.grade, value=value)

    @classmethod
    def failure(cls, item: WorkItem, outcome: Outcome, error: str) -> "ValuationRecord":
        return cls(entity_id=item.entity_id, grade=item.grade, outcome=outcome, error=error)

    @classmethod
    def skipped(cls, item: WorkItem) -> "ValuationRecord":
        return cls(entity_id=item.entity_id, grade=item.grade, outcome=Outcome.SKIPPED)


class PriceEntry(BaseModel):
    """A single grade's price inside a PriceDocument."""

    grade: int = Field(..., ge=GRADE_MIN, le=GRADE_MAX)
    price: str = Field(..., min_length=1)


class PriceDocument(BaseModel):
    """Persisted price list for one player, as read back from the collection.

    The writer validates each entry through PriceEntry before it is pushed;
    this model checks whole stored documents. The id is the player id as a
    string; grades are unique within `prices`.
    """

    id: str = Field(..., min_length=1)
    prices: list[PriceEntry] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> str:
        return str(value)

    @field_validator("prices")
    @classmethod
    def unique_grades(cls, value: list[PriceEntry]) -> list[PriceEntry]:
        grades = [entry.grade for entry in value]
        if len(grades) != len(set(grades)):
            raise ValueError(f"Duplicate grades in price list: {sorted(grades)}")
        return value

    def price_for(self, grade: int) -> str | None:
        for entry in self.prices:
            if entry.grade == grade:
                return entry.price
        return None


def parse_price_text(text: str | None) -> int | None:
    """Read the numeric value of a price string shown by the data center.

    Handles plain grouped digits ("1,234,000") and Korean magnitude units
    ("12억 3,400만", "1조 500억"). Returns None for empty or unparseable
    text, including the error marker.

    Examples:
        >>> parse_price_text("1,234,000")
        1234000
        >>> parse_price_text("12억 3400만")
        1234000000
    """
    if not text:
        return None

    cleaned = text.strip()
    tokens = _UNIT_TOKEN.findall(cleaned)
    if not tokens:
        return None

    total = 0
    for number, unit in tokens:
        digits = number.replace(",", "")
        if not digits or digits == ".":
            continue
        try:
            amount = float(digits)
        except ValueError:
            return None
        total += int(amount * _KOREAN_UNITS.get(unit, 1))

    if total == 0 and not any(ch.isdigit() for ch in cleaned):
        return None
    return total
