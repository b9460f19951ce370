"""
Drive one PR TIMES batch from parsed rows to committed records.

Rows are written in chunks; every chunk is its own transaction that also
bumps the category index and the upload ledger, so a chunk commit is a
progress checkpoint. A storage failure loses only the chunk in flight.
"""
from __future__ import annotations

import logging
import os
import secrets
import time
from collections import Counter
from dataclasses import dataclass, field
from itertools import islice
from typing import Any, Iterable, Mapping, Sized

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.session import SessionLocal
from models.prtimes_companies import PRTimesCompany
from models.prtimes_uploads import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    TERMINAL_STATUSES,
)
from services import category_index, upload_ledger
from services.errors import BatchStateError, StorageError, ValidationError
from services.row_normalizer import category_values, normalize_row

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = int(os.getenv("INGEST_CHUNK_SIZE", "500"))
MAX_ERROR_SAMPLES = 10


@dataclass
class IngestionSummary:
    batch_id: str
    processed: int = 0
    success: int = 0
    errors: int = 0
    dropped: int = 0
    status: str = STATUS_PROCESSING
    error_samples: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "batchId": self.batch_id,
            "processed": self.processed,
            "success": self.success,
            "errors": self.errors,
            "dropped": self.dropped,
            "status": self.status,
            "errorSamples": self.error_samples,
        }


def generate_batch_id() -> str:
    return f"bulk_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def start_upload(
    db: Session,
    filename: str,
    total_records: int,
    uploaded_by: str | None,
    batch_id: str | None = None,
    file_size_kb: int | None = None,
) -> str:
    batch_id = (batch_id or "").strip() or generate_batch_id()
    upload_ledger.create_ledger_entry(
        db,
        batch_id=batch_id,
        filename=filename,
        total_records=total_records,
        uploaded_by=uploaded_by,
        file_size_kb=file_size_kb,
    )
    if total_records == 0:
        upload_ledger.mark_status(db, batch_id, STATUS_COMPLETED)
    else:
        upload_ledger.mark_status(db, batch_id, STATUS_PROCESSING)
    db.commit()

    logger.info(
        "UPLOAD: batch=%s file=%s total=%s by=%s",
        batch_id,
        filename,
        total_records,
        uploaded_by,
    )
    return batch_id


def _write_chunk(
    db: Session,
    batch_id: str,
    chunk: list[Mapping[str, Any]],
    first_row_number: int,
    summary: IngestionSummary,
) -> tuple[int, int]:
    success = 0
    errors = 0
    counts: Counter = Counter()
    records = []

    for offset, raw in enumerate(chunk):
        try:
            values = normalize_row(raw)
        except ValidationError as exc:
            errors += 1
            if len(summary.error_samples) < MAX_ERROR_SAMPLES:
                summary.error_samples.append(f"row {first_row_number + offset}: {exc}")
            continue
        records.append(PRTimesCompany(batch_id=batch_id, **values))
        counts.update(category_values(values))
        success += 1

    if records:
        db.add_all(records)
        db.flush()
    category_index.upsert_many(db, counts)
    upload_ledger.advance_progress(db, batch_id, success, errors)
    return success, errors


def _mark_failed(db: Session, batch_id: str, exc: BaseException) -> None:
    try:
        upload_ledger.mark_status(db, batch_id, STATUS_FAILED, error_message=str(exc) or exc.__class__.__name__)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not mark batch %s as failed", batch_id)


def _ingest(
    db: Session,
    batch_id: str,
    rows: Iterable[Mapping[str, Any]],
    chunk_size: int | None,
    complete_on_exhaustion: bool,
) -> IngestionSummary:
    chunk_size = max(1, chunk_size or DEFAULT_CHUNK_SIZE)
    supplied = len(rows) if isinstance(rows, Sized) else None
    entry = upload_ledger.get_entry(db, batch_id)
    total = int(entry.total_records or 0)
    if entry.status == STATUS_COMPLETED and total == 0 and complete_on_exhaustion:
        # nothing to take; start_upload already completed it
        return IngestionSummary(batch_id=batch_id, dropped=supplied or 0, status=STATUS_COMPLETED)
    if entry.status in TERMINAL_STATUSES:
        raise BatchStateError(batch_id, entry.status, f"Batch {batch_id} is already {entry.status}")

    done = int(entry.progress_count or 0)
    if entry.status == STATUS_PENDING:
        upload_ledger.mark_status(db, batch_id, STATUS_PROCESSING)
        db.commit()

    summary = IngestionSummary(batch_id=batch_id)
    iterator = iter(rows)

    while done < total:
        try:
            chunk = list(islice(iterator, min(chunk_size, total - done)))
            if not chunk:
                break
            success, errors = _write_chunk(db, batch_id, chunk, done + 1, summary)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("INGEST: batch=%s chunk at row %s failed", batch_id, done + 1)
            _mark_failed(db, batch_id, exc)
            summary.status = STATUS_FAILED
            raise StorageError(f"Batch {batch_id} failed at row {done + 1}: {exc}") from exc
        except Exception as exc:
            db.rollback()
            logger.exception("INGEST: batch=%s aborted at row %s", batch_id, done + 1)
            _mark_failed(db, batch_id, exc)
            summary.status = STATUS_FAILED
            raise

        done += len(chunk)
        summary.processed += len(chunk)
        summary.success += success
        summary.errors += errors
        logger.info(
            "INGEST: batch=%s progress=%s/%s success=%s errors=%s",
            batch_id,
            done,
            total,
            success,
            errors,
        )

    if supplied is not None and supplied > summary.processed:
        summary.dropped = supplied - summary.processed
        logger.warning(
            "INGEST: batch=%s dropped %s rows beyond the declared total of %s",
            batch_id,
            summary.dropped,
            total,
        )

    if done >= total or complete_on_exhaustion:
        upload_ledger.mark_status(db, batch_id, STATUS_COMPLETED)
        db.commit()
        summary.status = STATUS_COMPLETED
    return summary


def ingest_rows(
    db: Session,
    batch_id: str,
    rows: Iterable[Mapping[str, Any]],
    chunk_size: int | None = None,
) -> IngestionSummary:
    """
    Write ``rows`` (any lazy iterable) into ``batch_id``. Stops at the declared
    total or when the rows run out; either way the batch ends ``completed``.
    """
    return _ingest(db, batch_id, rows, chunk_size, complete_on_exhaustion=True)


def append_rows(
    db: Session,
    batch_id: str,
    rows: Iterable[Mapping[str, Any]],
    chunk_size: int | None = None,
) -> IngestionSummary:
    """Add producer rows to an open batch; it completes only once its total is reached."""
    return _ingest(db, batch_id, rows, chunk_size, complete_on_exhaustion=False)


def ingest_row(db: Session, batch_id: str, row: Mapping[str, Any]) -> IngestionSummary:
    return append_rows(db, batch_id, [row], chunk_size=1)


def finish_upload(db: Session, batch_id: str) -> IngestionSummary:
    """Producer signals end of input: an open batch completes with whatever it has."""
    summary = ingest_rows(db, batch_id, ())
    entry = upload_ledger.get_entry(db, batch_id)
    if entry.progress_count < entry.total_records:
        logger.warning(
            "UPLOAD: batch=%s finished short at %s/%s rows",
            batch_id,
            entry.progress_count,
            entry.total_records,
        )
    return summary


def run_bulk_ingestion(batch_id: str, rows: Iterable[Mapping[str, Any]], chunk_size: int | None = None) -> None:
    db = SessionLocal()
    started = time.time()
    try:
        summary = ingest_rows(db, batch_id, rows, chunk_size=chunk_size)
        logger.info(
            "INGEST: batch=%s finished in %.1fs success=%s errors=%s",
            batch_id,
            time.time() - started,
            summary.success,
            summary.errors,
        )
    except Exception:
        logger.exception("Bulk ingestion failed: batch=%s", batch_id)
    finally:
        db.close()
