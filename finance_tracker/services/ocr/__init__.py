"""OCR services package."""

from finance_tracker.services.ocr.webhook_service import (
    OCRDisabledError,
    OCRError,
    OCRResponseError,
    ReceiptOCRService,
    prefill_from_scan,
    scan_fields,
)

__all__ = [
    "OCRDisabledError",
    "OCRError",
    "OCRResponseError",
    "ReceiptOCRService",
    "prefill_from_scan",
    "scan_fields",
]
