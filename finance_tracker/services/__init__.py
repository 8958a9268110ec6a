"""Services package."""

from finance_tracker.services.auth import (
    AuthError,
    AuthEvent,
    AuthService,
    AuthSession,
    AuthSubscription,
)
from finance_tracker.services.files import (
    CloudinaryReceiptStorage,
    InvalidReceiptError,
    ReceiptUpload,
    ReceiptUploadError,
)
from finance_tracker.services.ocr import (
    OCRDisabledError,
    OCRError,
    OCRResponseError,
    ReceiptOCRService,
    prefill_from_scan,
)
from finance_tracker.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    GoogleSheetsClient,
    GoogleSheetsRowStore,
    InMemoryRowStore,
    InvariantViolationError,
    NotFoundError,
    RowStoreAuditStorage,
    RowStoreInterface,
    StorageError,
)

__all__ = [
    # Auth
    "AuthError",
    "AuthEvent",
    "AuthService",
    "AuthSession",
    "AuthSubscription",
    # Receipt files
    "CloudinaryReceiptStorage",
    "InvalidReceiptError",
    "ReceiptUpload",
    "ReceiptUploadError",
    # OCR services
    "OCRDisabledError",
    "OCRError",
    "OCRResponseError",
    "ReceiptOCRService",
    "prefill_from_scan",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "GoogleSheetsClient",
    "GoogleSheetsRowStore",
    "InMemoryRowStore",
    "InvariantViolationError",
    "NotFoundError",
    "RowStoreAuditStorage",
    "RowStoreInterface",
    "StorageError",
]
