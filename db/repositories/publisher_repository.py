"""
db/repositories/publisher_repository.py

Persistence for the normalized publisher record set of a dataset.

The caller controls commit/rollback; this repository never commits.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session

from analytics.records import PublisherRecord
from db.models.publisher_record import Publisher

_DEFAULT_BATCH_SIZE = 500


class PublisherRepository:
    """
    Replaces and reloads a dataset's normalized publisher records.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def replace_records(
        self,
        *,
        dataset_id: uuid.UUID,
        records: Sequence[PublisherRecord],
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Delete the dataset's stored records and insert *records* in batches.

        Returns
        -------
        int
            Number of rows inserted.
        """
        self._session.execute(delete(Publisher).where(Publisher.dataset_id == dataset_id))

        size = max(1, batch_size)
        written = 0
        for start in range(0, len(records), size):
            chunk = records[start : start + size]
            payloads = [
                {
                    "id": uuid.uuid4(),
                    "dataset_id": dataset_id,
                    "position": record.position,
                    "dedupe_key": record.dedupe_key,
                    "publisher_id": record.publisher_id,
                    "publisher_name": record.publisher_name,
                    "publisher_type": record.publisher_type,
                    "total_revenue": record.total_revenue,
                    "total_commission": record.total_commission,
                    "orders": record.orders,
                    "approved_revenue": record.approved_revenue,
                    "pending_revenue": record.pending_revenue,
                    "declined_revenue": record.declined_revenue,
                }
                for record in chunk
            ]
            self._session.execute(insert(Publisher), payloads)
            written += len(payloads)
        return written

    def load_records(self, dataset_id: uuid.UUID) -> list[PublisherRecord]:
        """
        Return the stored records in normalized order.
        """
        stmt = (
            select(Publisher)
            .where(Publisher.dataset_id == dataset_id)
            .order_by(Publisher.position)
        )
        return [_to_record(row) for row in self._session.scalars(stmt).all()]


def _to_record(row: Publisher) -> PublisherRecord:
    return PublisherRecord(
        dedupe_key=row.dedupe_key,
        position=row.position,
        publisher_id=row.publisher_id,
        publisher_name=row.publisher_name,
        publisher_type=row.publisher_type or "",
        total_revenue=row.total_revenue,
        total_commission=row.total_commission,
        orders=row.orders,
        approved_revenue=row.approved_revenue,
        pending_revenue=row.pending_revenue,
        declined_revenue=row.declined_revenue,
    )
