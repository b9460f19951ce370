from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text, func

from db.base import Base

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)


class PRTimesUpload(Base):
    __tablename__ = "prtimes_uploads"

    id = Column(Integer, primary_key=True, index=True)
    # one ledger row per batch; a second ingestion under the same id is rejected
    batch_id = Column(String(64), nullable=False, unique=True, index=True)
    filename = Column(String(255), nullable=False)
    upload_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    uploaded_by = Column(String(200))
    file_size_kb = Column(Integer)

    total_records = Column(Integer, nullable=False, default=0)
    success_records = Column(Integer, nullable=False, default=0)
    error_records = Column(Integer, nullable=False, default=0)
    progress_count = Column(Integer, nullable=False, default=0)

    status = Column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    error_message = Column(Text)
    completed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_prtimes_upload_status",
        ),
    )
