"""Receipt file storage package."""

from finance_tracker.services.files.cloudinary_service import (
    CloudinaryReceiptStorage,
    InvalidReceiptError,
    ReceiptUpload,
    ReceiptUploadError,
)

__all__ = [
    "CloudinaryReceiptStorage",
    "InvalidReceiptError",
    "ReceiptUpload",
    "ReceiptUploadError",
]
