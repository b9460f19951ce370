class IngestionError(Exception):
    """Base class for batch ingestion failures."""


class ValidationError(IngestionError):
    """A single row failed required-field checks; counted, never fatal."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class StorageError(IngestionError):
    """A write failed; the in-flight transaction was rolled back."""


class NotFoundError(IngestionError):
    def __init__(self, batch_id: str):
        super().__init__(f"Upload not found: {batch_id}")
        self.batch_id = batch_id


class ConsistencyError(IngestionError):
    """Category index holds less than an eviction wants to subtract."""


class DuplicateBatchError(IngestionError):
    def __init__(self, batch_id: str):
        super().__init__(f"Batch already exists: {batch_id}")
        self.batch_id = batch_id


class BatchStateError(IngestionError):
    def __init__(self, batch_id: str, status: str, message: str | None = None):
        super().__init__(message or f"Batch {batch_id} is {status}")
        self.batch_id = batch_id
        self.status = status
