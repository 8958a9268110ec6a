"""
Receipt Storage using Cloudinary

DESIGN DECISION: We use Cloudinary as the file store because:
1. Reliable cloud infrastructure
2. Every upload gets a public HTTPS URL we can keep on the transaction
3. Simple API
4. Free tier sufficient for personal use

Receipts are stored under `{folder}/{user_id}/{timestamp}-{filename}` so
each user's attachments stay together.

CRITICAL: The payload is opened with Pillow before upload. Anything that
is not a decodable image in a supported format is rejected here, not
after it has been stored.
"""

import time
from io import BytesIO
from pathlib import PurePosixPath
from typing import Optional
from uuid import UUID

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
import structlog
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import get_settings

logger = structlog.get_logger(__name__)


class ReceiptUploadError(Exception):
    """Receipt could not be stored."""
    pass


class InvalidReceiptError(ReceiptUploadError):
    """Payload is too large, in an unsupported format or not an image."""
    pass


class ReceiptUpload(BaseModel):
    """A stored receipt image."""

    user_id: UUID
    filename: str
    mime_type: str
    size_bytes: int = Field(..., ge=0)
    public_id: str
    url: str = Field(..., description="Public HTTPS URL of the stored file")


class CloudinaryReceiptStorage:
    """
    File store for receipt attachments.

    Flow:
    1. Check size and format limits from config
    2. Check the bytes decode as an image
    3. Upload to Cloudinary
    4. Return the public URL
    """

    def __init__(self):
        self._settings = get_settings().cloudinary
        self._app_settings = get_settings().app
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def _public_id(self, user_id: UUID, filename: str) -> str:
        """
        Storage path of an upload.

        Format: {user_id}/{millis}-{filename stem}
        Cloudinary adds the extension itself.
        """
        stem = PurePosixPath(filename).stem or "receipt"
        return f"{user_id}/{int(time.time() * 1000)}-{stem}"

    def check_receipt(self, image_bytes: bytes, filename: str) -> str:
        """
        Check a payload can be stored as a receipt.

        Returns:
            The detected image format, lowercase (e.g. "png")

        Raises:
            InvalidReceiptError: If the payload breaks a limit or is not an image
        """
        if not image_bytes:
            raise InvalidReceiptError("Receipt file is empty")

        max_bytes = self._app_settings.max_upload_size_bytes
        if len(image_bytes) > max_bytes:
            raise InvalidReceiptError(
                f"Receipt is {len(image_bytes)} bytes, "
                f"the limit is {self._app_settings.max_upload_size_mb} MB"
            )

        allowed = self._app_settings.supported_formats_list
        extension = PurePosixPath(filename).suffix.lstrip(".").lower()
        if extension and extension not in allowed:
            raise InvalidReceiptError(
                f"Unsupported file type '.{extension}'. Allowed: {', '.join(allowed)}"
            )

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                img.verify()
                detected = (img.format or "").lower()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise InvalidReceiptError(f"Receipt is not a readable image: {e}")

        if detected == "jpeg" and "jpeg" not in allowed and "jpg" in allowed:
            detected = "jpg"
        if detected not in allowed:
            raise InvalidReceiptError(
                f"Unsupported image format '{detected}'. Allowed: {', '.join(allowed)}"
            )
        return detected

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _upload(self, image_bytes: bytes, public_id: str) -> dict:
        return cloudinary.uploader.upload(
            image_bytes,
            public_id=public_id,
            folder=self._settings.folder,
            resource_type="image",
        )

    async def upload_receipt(
        self,
        user_id: UUID,
        image_bytes: bytes,
        filename: str,
        mime_type: Optional[str] = None,
    ) -> ReceiptUpload:
        """
        Validate and upload a receipt image.

        Args:
            user_id: Owner of the receipt
            image_bytes: Raw file bytes
            filename: Original file name
            mime_type: Content type reported by the client

        Returns:
            ReceiptUpload with the public URL

        Raises:
            InvalidReceiptError: If the payload is rejected before upload
            ReceiptUploadError: If Cloudinary fails
        """
        detected = self.check_receipt(image_bytes, filename)
        self._configure()

        public_id = self._public_id(user_id, filename)
        try:
            result = self._upload(image_bytes, public_id)
        except cloudinary.exceptions.Error as e:
            raise ReceiptUploadError(f"Cloudinary error: {e}")
        except Exception as e:
            raise ReceiptUploadError(f"Failed to upload receipt: {e}")

        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise ReceiptUploadError("No URL returned from Cloudinary")

        logger.info(
            "receipt_stored",
            user_id=str(user_id),
            public_id=result.get("public_id", public_id),
            size_bytes=len(image_bytes),
        )

        return ReceiptUpload(
            user_id=user_id,
            filename=filename,
            mime_type=mime_type or f"image/{detected}",
            size_bytes=len(image_bytes),
            public_id=result.get("public_id", public_id),
            url=url,
        )
