from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models.prtimes_uploads import PRTimesUpload, STATUS_PENDING, TERMINAL_STATUSES
from services.errors import DuplicateBatchError, NotFoundError

logger = logging.getLogger(__name__)


def create_ledger_entry(
    db: Session,
    batch_id: str,
    filename: str,
    total_records: int,
    uploaded_by: str | None,
    file_size_kb: int | None = None,
) -> int:
    if total_records < 0:
        raise ValueError("total_records must be >= 0")

    entry = PRTimesUpload(
        batch_id=batch_id,
        filename=filename,
        total_records=int(total_records),
        uploaded_by=uploaded_by,
        file_size_kb=file_size_kb,
        success_records=0,
        error_records=0,
        progress_count=0,
        status=STATUS_PENDING,
    )
    db.add(entry)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateBatchError(batch_id) from exc
    return entry.id


def get_entry(db: Session, batch_id: str, lock: bool = False) -> PRTimesUpload:
    query = db.query(PRTimesUpload).filter(PRTimesUpload.batch_id == batch_id)
    if lock:
        query = query.with_for_update()
    entry = query.first()
    if entry is None:
        raise NotFoundError(batch_id)
    return entry


def advance_progress(db: Session, batch_id: str, success_delta: int, error_delta: int) -> None:
    updated = (
        db.query(PRTimesUpload)
        .filter(PRTimesUpload.batch_id == batch_id)
        .update(
            {
                PRTimesUpload.progress_count: PRTimesUpload.progress_count + (success_delta + error_delta),
                PRTimesUpload.success_records: PRTimesUpload.success_records + success_delta,
                PRTimesUpload.error_records: PRTimesUpload.error_records + error_delta,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        raise NotFoundError(batch_id)


def mark_status(db: Session, batch_id: str, status: str, error_message: str | None = None) -> None:
    values = {PRTimesUpload.status: status}
    if error_message is not None:
        values[PRTimesUpload.error_message] = error_message[:2000]
    if status in TERMINAL_STATUSES:
        values[PRTimesUpload.completed_at] = func.now()

    updated = (
        db.query(PRTimesUpload)
        .filter(PRTimesUpload.batch_id == batch_id)
        .update(values, synchronize_session=False)
    )
    if not updated:
        raise NotFoundError(batch_id)
    logger.info("LEDGER: batch=%s status=%s", batch_id, status)


def get_progress(db: Session, batch_id: str) -> dict:
    row = (
        db.query(
            PRTimesUpload.progress_count,
            PRTimesUpload.total_records,
            PRTimesUpload.success_records,
            PRTimesUpload.error_records,
            PRTimesUpload.status,
        )
        .filter(PRTimesUpload.batch_id == batch_id)
        .first()
    )
    if row is None:
        raise NotFoundError(batch_id)

    return {
        "processed": int(row.progress_count or 0),
        "total": int(row.total_records or 0),
        "success": int(row.success_records or 0),
        "errors": int(row.error_records or 0),
        "status": row.status,
    }


def list_uploads(db: Session, limit: int = 50) -> list[dict]:
    rows = (
        db.query(PRTimesUpload)
        .order_by(PRTimesUpload.upload_date.desc(), PRTimesUpload.id.desc())
        .limit(max(1, min(limit, 500)))
        .all()
    )
    return [
        {
            "id": r.id,
            "filename": r.filename,
            "uploadDate": r.upload_date.isoformat() if r.upload_date else None,
            "totalRecords": int(r.total_records or 0),
            "successRecords": int(r.success_records or 0),
            "errorRecords": int(r.error_records or 0),
            "progressCount": int(r.progress_count or 0),
            "fileSizeKb": r.file_size_kb,
            "uploadedBy": r.uploaded_by,
            "batchId": r.batch_id,
            "status": r.status,
            "errorMessage": r.error_message,
        }
        for r in rows
    ]
