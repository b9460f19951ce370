from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.prtimes_companies import PRTimesCompany
from models.prtimes_uploads import PRTimesUpload, STATUS_PROCESSING
from services import category_index, upload_ledger
from services.errors import BatchStateError, IngestionError, StorageError
from services.row_normalizer import CATEGORY_FIELDS

logger = logging.getLogger(__name__)


def batch_category_counts(db: Session, batch_id: str) -> Counter:
    """How many of the batch's records carry each (category type, value)."""
    counts: Counter = Counter()
    for column, ctype in CATEGORY_FIELDS.items():
        col = getattr(PRTimesCompany, column)
        rows = (
            db.query(col.label("name"), func.count(PRTimesCompany.id).label("n"))
            .filter(PRTimesCompany.batch_id == batch_id)
            .group_by(col)
            .all()
        )
        for r in rows:
            if r.name is None:
                continue
            counts[(ctype, r.name)] += int(r.n or 0)
    return counts


def evict_batch(db: Session, batch_id: str) -> dict:
    """
    Remove a batch's records and ledger row in one transaction, taking back
    only the category counts those records contributed.
    """
    try:
        entry = upload_ledger.get_entry(db, batch_id, lock=True)
        if entry.status == STATUS_PROCESSING:
            raise BatchStateError(
                batch_id,
                entry.status,
                f"Batch {batch_id} is still processing; wait for it to finish before deleting",
            )

        counts = batch_category_counts(db, batch_id)

        deleted_records = (
            db.query(PRTimesCompany)
            .filter(PRTimesCompany.batch_id == batch_id)
            .delete(synchronize_session=False)
        )
        category_index.decrement_many(db, counts)
        deleted_uploads = (
            db.query(PRTimesUpload)
            .filter(PRTimesUpload.batch_id == batch_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except IngestionError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("EVICT: batch=%s rolled back", batch_id)
        raise StorageError(f"Failed to delete batch {batch_id}: {exc}") from exc

    logger.info(
        "EVICT: batch=%s records=%s uploads=%s category_keys=%s",
        batch_id,
        deleted_records,
        deleted_uploads,
        len(counts),
    )
    return {
        "deletedRecords": int(deleted_records or 0),
        "deletedLedgerEntries": int(deleted_uploads or 0),
    }


def describe_batch(db: Session, batch_id: str) -> dict:
    """Read-only view of what ``evict_batch`` would remove."""
    entry = upload_ledger.get_entry(db, batch_id)
    records = (
        db.query(func.count(PRTimesCompany.id))
        .filter(PRTimesCompany.batch_id == batch_id)
        .scalar()
    )
    return {
        "batchId": batch_id,
        "status": entry.status,
        "records": int(records or 0),
        "categoryCounts": {
            f"{ctype}:{name}": n for (ctype, name), n in sorted(batch_category_counts(db, batch_id).items())
        },
    }
