"""Versioned field table for the player-report collection.

Report documents are written by a separate loader and keep their original
(Korean) key names. Instead of inferring the ability block from a sample
document at import time, the blocks and keys the crawler reads are listed
here and the stored paths are derived from them. A schema change means a
new table version, which keeps query changes reviewable in a diff.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ReportFieldTable:
    """Layout of the report fields used by the query builder.

    Attributes:
        version: Table version, logged with every search.
        name: Player display name.
        id: Numeric player id (season prefix + player number).
        ability: Root of the ability block.
        ability_blocks: Keys expected under the ability block.
        rating_block: Ability block holding the ratings below.
        best_rating_key: Overall rating compared against the minimum threshold.
        position_best_rating_key: Rating used to order results.
        profile: Nested profile block holding cross references.
        price_key: Profile key referencing a price document.
        season_image_key: Profile path referencing a season image document.
    """

    version: int
    name: str
    id: str
    ability: str
    ability_blocks: tuple[str, ...]
    rating_block: str
    best_rating_key: str
    position_best_rating_key: str
    profile: str
    price_key: str
    season_image_key: str

    def ability_path(self, block: str, key: str) -> str:
        if block not in self.ability_blocks:
            raise KeyError(f"Unknown ability block '{block}' (field table v{self.version})")
        return f"{self.ability}.{block}.{key}"

    @property
    def best_rating(self) -> str:
        return self.ability_path(self.rating_block, self.best_rating_key)

    @property
    def position_best_rating(self) -> str:
        return self.ability_path(self.rating_block, self.position_best_rating_key)

    @property
    def price_ref(self) -> str:
        return f"{self.profile}.{self.price_key}"

    @property
    def season_image_ref(self) -> str:
        return f"{self.profile}.{self.season_image_key}"

    def missing_fields(self, row: dict[str, Any]) -> list[str]:
        """Paths of this table that are absent from a report row."""
        required = (self.name, self.id, self.position_best_rating)
        return [path for path in required if _lookup(row, path) is _MISSING]


_MISSING = object()


def _lookup(row: dict[str, Any], path: str) -> Any:
    current: Any = row
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


REPORT_FIELDS_V1 = ReportFieldTable(
    version=1,
    name="name",
    id="id",
    ability="능력치",
    ability_blocks=("포지션능력치",),
    rating_block="포지션능력치",
    best_rating_key="최고능력치",
    position_best_rating_key="포지션최고능력치",
    profile="선수정보",
    price_key="prices",
    season_image_key="시즌이미지.시즌이미지",
)

CURRENT_REPORT_FIELDS = REPORT_FIELDS_V1
