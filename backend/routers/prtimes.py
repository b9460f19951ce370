from __future__ import annotations

import logging
import os
from io import BytesIO
from typing import Any

import pandas as pd
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from db.deps import get_db
from services import batch_eviction, category_index, ingestion_coordinator, record_repository, upload_ledger
from services.errors import (
    BatchStateError,
    DuplicateBatchError,
    IngestionError,
    NotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "100"))

router = APIRouter(prefix="/prtimes", tags=["prtimes"])


def _http_error(exc: IngestionError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Upload not found")
    if isinstance(exc, (DuplicateBatchError, BatchStateError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Ingestion error")


def _clean_json_row(row: dict) -> dict:
    out: dict = {}
    for key, value in row.items():
        key = str(key).strip()
        if value is None:
            out[key] = None
            continue
        if isinstance(value, float) and (value != value or value == float("inf") or value == float("-inf")):
            out[key] = None
            continue
        out[key] = value
    return out


class StartUploadPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    filename: str = Field(..., min_length=1)
    total_records: int = Field(..., ge=0, alias="totalRecords")
    uploaded_by: str | None = Field(None, alias="uploadedBy")
    batch_id: str | None = Field(None, alias="batchId", max_length=64)


class IngestRowsPayload(BaseModel):
    rows: list[dict[str, Any]] = Field(..., min_length=1)


# ==================================================
# UPLOADS (LEDGER)
# ==================================================
@router.post("/uploads", status_code=status.HTTP_201_CREATED)
def start_upload(payload: StartUploadPayload, db: Session = Depends(get_db)):
    try:
        batch_id = ingestion_coordinator.start_upload(
            db,
            filename=payload.filename,
            total_records=payload.total_records,
            uploaded_by=payload.uploaded_by,
            batch_id=payload.batch_id,
        )
        progress = upload_ledger.get_progress(db, batch_id)
    except IngestionError as exc:
        raise _http_error(exc)
    return {"batchId": batch_id, "status": progress["status"]}


@router.get("/uploads")
def list_uploads(limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db)):
    return {"uploads": upload_ledger.list_uploads(db, limit=limit)}


@router.post("/uploads/{batch_id}/rows")
def ingest_rows(batch_id: str, payload: IngestRowsPayload, db: Session = Depends(get_db)):
    try:
        summary = ingestion_coordinator.append_rows(db, batch_id, payload.rows)
    except IngestionError as exc:
        raise _http_error(exc)
    return summary.as_dict()


@router.post("/uploads/{batch_id}/complete")
def complete_upload(batch_id: str, db: Session = Depends(get_db)):
    try:
        ingestion_coordinator.finish_upload(db, batch_id)
        return upload_ledger.get_progress(db, batch_id)
    except IngestionError as exc:
        raise _http_error(exc)


@router.delete("/uploads/{batch_id}")
def delete_upload(batch_id: str, db: Session = Depends(get_db)):
    try:
        result = batch_eviction.evict_batch(db, batch_id)
    except IngestionError as exc:
        raise _http_error(exc)
    return {"message": "Upload batch deleted successfully", **result}


@router.get("/progress/{batch_id}")
def get_progress(batch_id: str, db: Session = Depends(get_db)):
    try:
        return upload_ledger.get_progress(db, batch_id)
    except NotFoundError as exc:
        raise _http_error(exc)


# ==================================================
# BULK CSV UPLOAD
# ==================================================
@router.post("/bulk-upload", status_code=status.HTTP_202_ACCEPTED)
async def bulk_upload(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    uploaded_by: str | None = Form("admin"),
    batch_id: str | None = Form(None),
    db: Session = Depends(get_db),
):
    contents = await file.read()
    if not contents:
        raise HTTPException(status_code=400, detail="Empty file")
    if len(contents) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(status_code=400, detail=f"File too large. Maximum size is {MAX_UPLOAD_MB}MB")

    filename = file.filename or "upload.csv"
    buffer = BytesIO(contents)
    try:
        if filename.lower().endswith(".csv"):
            df = pd.read_csv(buffer, dtype=str, keep_default_na=False)
        elif filename.lower().endswith((".xlsx", ".xls")):
            df = pd.read_excel(buffer, dtype=str)
        else:
            raise HTTPException(status_code=400, detail="Only .csv, .xls, and .xlsx are supported")
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=400, detail=f"Failed to parse file: {exc}")

    df = df.astype(object).where(pd.notnull(df), None)
    rows = [_clean_json_row(row) for row in df.to_dict(orient="records")]

    try:
        new_batch_id = ingestion_coordinator.start_upload(
            db,
            filename=filename,
            total_records=len(rows),
            uploaded_by=uploaded_by,
            batch_id=batch_id,
            file_size_kb=round(len(contents) / 1024),
        )
    except IngestionError as exc:
        raise _http_error(exc)

    if rows:
        background_tasks.add_task(ingestion_coordinator.run_bulk_ingestion, new_batch_id, rows)

    logger.info("BULK UPLOAD: file=%s batch=%s rows=%s", filename, new_batch_id, len(rows))
    return {
        "message": "Bulk upload started",
        "batchId": new_batch_id,
        "totalRecords": len(rows),
        "status": "processing" if rows else "completed",
    }


# ==================================================
# CATEGORIES / RECORDS
# ==================================================
@router.get("/categories")
def list_categories(
    category_type: str | None = Query(None, alias="type"),
    with_counts: bool = Query(False, alias="withCounts"),
    db: Session = Depends(get_db),
):
    try:
        if with_counts:
            return {"categories": category_index.category_counts(db, category_type)}
        if category_type is not None:
            return {"type": category_type, "categories": category_index.list_categories(db, category_type)}
        return category_index.list_categories(db)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/companies")
def list_companies(
    batch_id: str | None = Query(None, alias="batchId"),
    company_name: str | None = Query(None, alias="companyName"),
    industry: list[str] | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return record_repository.get_rows(
        db,
        batch_id=batch_id,
        company_name=company_name,
        industry=industry,
        page=page,
        limit=limit,
    )
