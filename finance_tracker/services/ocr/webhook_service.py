"""
Receipt OCR via Workflow Webhook

DESIGN DECISION: Receipt scanning is delegated to an external workflow
(configured by URL) because:
1. The extraction pipeline can change without redeploying the app
2. The app only needs a small structured answer back
3. Scanning stays optional: no URL, no scanning

Request: multipart POST with the image as `file` and the owner as `user_id`.
Response: {"success": true, "data": {"total", "description", "notes",
"category", "payment_method"}}

CRITICAL: A scan only PROPOSES values for the form. Nothing read off a
receipt is written without the user submitting the transaction.
The webhook is not retried; a failed scan leaves the upload in place.
"""

from typing import Any, Optional, Sequence
from uuid import UUID

import httpx
import structlog
from pydantic import ValidationError

from finance_tracker.config import get_settings
from finance_tracker.models.finance import Category, PaymentMethod, ReceiptScan

logger = structlog.get_logger(__name__)


class OCRError(Exception):
    """Base exception for receipt scanning errors."""
    pass


class OCRDisabledError(OCRError):
    """No webhook URL is configured."""
    pass


class OCRResponseError(OCRError):
    """The webhook answered, but not with a usable scan."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ReceiptOCRService:
    """
    Client for the receipt scanning webhook.

    IMPORTANT BOUNDARIES:
    1. This service ONLY reads the webhook's answer - it writes nothing
    2. Any non-OK status, `success: false` or malformed body is an OCRError
    """

    def __init__(
        self,
        url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ):
        self._url = url if url is not None else get_settings().ocr_webhook.url
        self._transport = transport
        self._timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    def _parse(self, response: httpx.Response) -> ReceiptScan:
        if not response.is_success:
            raise OCRResponseError(
                f"OCR webhook returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body: Any = response.json()
        except ValueError:
            raise OCRResponseError("OCR webhook returned a non-JSON body", response.status_code)

        if not isinstance(body, dict):
            raise OCRResponseError("OCR webhook returned an unexpected shape", response.status_code)
        if not body.get("success"):
            message = body.get("message") or body.get("error") or "success is false"
            raise OCRResponseError(f"OCR webhook reported failure: {message}", response.status_code)

        data = body.get("data")
        if not isinstance(data, dict):
            raise OCRResponseError("OCR webhook response has no data object", response.status_code)

        try:
            return ReceiptScan.model_validate(data)
        except ValidationError as e:
            raise OCRResponseError(f"OCR webhook data is invalid: {e}", response.status_code)

    async def scan_receipt(
        self,
        user_id: UUID,
        image_bytes: bytes,
        filename: str,
        mime_type: str = "image/jpeg",
    ) -> ReceiptScan:
        """
        Send a receipt image to the webhook and parse the answer.

        Returns:
            ReceiptScan with whatever fields the webhook found

        Raises:
            OCRDisabledError: If no webhook URL is configured
            OCRError: If the request fails or the answer is unusable
        """
        if not self.enabled:
            raise OCRDisabledError("Receipt scanning is not configured")

        files = {"file": (filename, image_bytes, mime_type)}
        data = {"user_id": str(user_id)}

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                response = await client.post(self._url, files=files, data=data)
        except httpx.HTTPError as e:
            raise OCRError(f"OCR webhook request failed: {e}")

        scan = self._parse(response)
        logger.info(
            "receipt_scanned",
            user_id=str(user_id),
            fields_found=scan_fields(scan),
        )
        return scan


def scan_fields(scan: ReceiptScan) -> list[str]:
    """Names of the fields a scan actually filled in."""
    return [name for name, value in scan.model_dump().items() if value is not None]


def _match_name(name: Optional[str], options: Sequence):
    if not name:
        return None
    wanted = name.strip().lower()
    for option in options:
        if option.name.strip().lower() == wanted:
            return option
    return None


def prefill_from_scan(
    scan: ReceiptScan,
    categories: Sequence[Category],
    payment_methods: Sequence[PaymentMethod],
) -> dict[str, Any]:
    """
    Turn a scan into transaction form fields.

    Category and payment method names are matched case-insensitively;
    names that match nothing are left out rather than guessed.
    """
    fields: dict[str, Any] = {}
    if scan.total is not None:
        fields["amount"] = scan.total
    if scan.description:
        fields["description"] = scan.description
    if scan.notes:
        fields["notes"] = scan.notes

    category = _match_name(scan.category, categories)
    if category is not None:
        fields["category_id"] = category.id

    method = _match_name(scan.payment_method, payment_methods)
    if method is not None:
        fields["payment_method_id"] = method.id

    return fields
