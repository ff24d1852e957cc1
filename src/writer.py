"""Idempotent batch write-back of valuation records.

Each record becomes three ordered UpdateOne operations on the price
collection, keyed by the player id as a string:

1. create the document with an empty price list if it does not exist,
2. append a {grade, price} entry if the grade is not present yet,
3. overwrite the grade's price in place through an array filter.

Replaying the same batch leaves the collection unchanged, and repeated
records for one (player, grade) converge on a single entry holding the
last value written. The whole batch goes out in one bulk_write call; a
failure of that call is raised as DataStoreError and nothing is reported
as persisted.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel
from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, PyMongoError

from src.exceptions import DataStoreError
from src.logger import get_logger
from src.models import PriceEntry, ValuationRecord

log = get_logger(__name__)


class WriteSummary(BaseModel):
    """Result of one batch write."""

    records: int = 0
    operations: int = 0
    matched: int = 0
    modified: int = 0
    upserted: int = 0


def price_operations(doc_id: str, grade: int, price: str) -> list[UpdateOne]:
    """Upsert operations for a single (document id, grade, price) triple.

    Raises:
        pydantic.ValidationError: If the grade is out of range or the price
            is empty.
    """
    entry = PriceEntry(grade=grade, price=price)
    return [
        UpdateOne(
            {"id": doc_id},
            {"$setOnInsert": {"id": doc_id, "prices": []}},
            upsert=True,
        ),
        UpdateOne(
            {"id": doc_id, "prices.grade": {"$ne": entry.grade}},
            {"$push": {"prices": entry.model_dump()}},
        ),
        UpdateOne(
            {"id": doc_id},
            {"$set": {"prices.$[elem].price": entry.price}},
            array_filters=[{"elem.grade": entry.grade}],
        ),
    ]


class BatchUpsertWriter:
    """Writes ValuationRecords into the price collection.

    Attributes:
        collection: Async pymongo collection holding PriceDocuments.
        error_marker: Price stored for error records that reach the writer.
    """

    def __init__(self, collection: Any, error_marker: str = "ERROR") -> None:
        self.collection = collection
        self.error_marker = error_marker

    def build_operations(self, records: Sequence[ValuationRecord]) -> list[UpdateOne]:
        operations: list[UpdateOne] = []
        for record in records:
            operations.extend(
                price_operations(
                    str(record.entity_id),
                    record.grade,
                    record.stored_price(self.error_marker),
                )
            )
        return operations

    async def write(self, records: Sequence[ValuationRecord]) -> WriteSummary:
        """Persist `records` in a single bulk call.

        Returns:
            WriteSummary with the server's counters.

        Raises:
            DataStoreError: If the bulk call fails.
        """
        if not records:
            log.info("No data to save")
            return WriteSummary()

        operations = self.build_operations(records)

        try:
            result = await self.collection.bulk_write(operations, ordered=True)
        except BulkWriteError as exc:
            write_errors = exc.details.get("writeErrors", []) if exc.details else []
            log.error(
                "Batch write rejected",
                records=len(records),
                write_errors=len(write_errors),
            )
            raise DataStoreError(
                "bulk_write",
                reason=str(exc),
                records=len(records),
                write_errors=len(write_errors),
            ) from exc
        except PyMongoError as exc:
            log.error("Batch write failed", records=len(records), error=str(exc))
            raise DataStoreError("bulk_write", reason=str(exc), records=len(records)) from exc

        summary = WriteSummary(
            records=len(records),
            operations=len(operations),
            matched=result.matched_count,
            modified=result.modified_count,
            upserted=result.upserted_count,
        )
        log.info("Price collection updated", **summary.model_dump())
        return summary
