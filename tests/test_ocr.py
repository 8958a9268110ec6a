"""Tests for the receipt scanning webhook client."""

import asyncio
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from finance_tracker.models.finance import (
    Category,
    PaymentMethod,
    PaymentMethodType,
    ReceiptScan,
    TransactionType,
)
from finance_tracker.services.ocr import (
    OCRDisabledError,
    OCRError,
    OCRResponseError,
    ReceiptOCRService,
    prefill_from_scan,
)

WEBHOOK_URL = "https://automation.example.com/webhook/receipt"


def service_answering(handler):
    return ReceiptOCRService(url=WEBHOOK_URL, transport=httpx.MockTransport(handler))


def scan(service, user_id=None):
    return asyncio.run(service.scan_receipt(user_id or uuid4(), b"\x89PNG", "receipt.png", "image/png"))


class TestScanReceipt:

    def test_successful_scan(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = request.read()
            return httpx.Response(200, json={
                "success": True,
                "data": {
                    "total": 45000,
                    "description": "Kopi Kenangan",
                    "notes": "2x latte",
                    "category": "Food",
                    "payment_method": "GoPay",
                },
            })

        user_id = uuid4()
        result = scan(service_answering(handler), user_id)

        assert result.total == Decimal("45000")
        assert result.description == "Kopi Kenangan"
        assert seen["url"] == WEBHOOK_URL
        assert b'name="file"' in seen["body"]
        assert str(user_id).encode() in seen["body"]

    def test_any_2xx_status_is_accepted(self):
        def handler(request):
            return httpx.Response(201, json={"success": True, "data": {"total": 5}})

        result = scan(service_answering(handler))
        assert result.total == Decimal("5")

    def test_partial_data_is_fine(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {"total": "12.50"}})

        result = scan(service_answering(handler))
        assert result.total == Decimal("12.50")
        assert result.category is None

    def test_http_error_status(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(OCRResponseError) as exc_info:
            scan(service_answering(handler))
        assert exc_info.value.status_code == 502

    def test_success_false(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "message": "Not a receipt"})

        with pytest.raises(OCRResponseError, match="Not a receipt"):
            scan(service_answering(handler))

    def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>ok</html>")

        with pytest.raises(OCRResponseError):
            scan(service_answering(handler))

    def test_missing_data_object(self):
        def handler(request):
            return httpx.Response(200, json={"success": True})

        with pytest.raises(OCRResponseError):
            scan(service_answering(handler))

    def test_negative_total_is_rejected(self):
        def handler(request):
            return httpx.Response(200, json={"success": True, "data": {"total": -5}})

        with pytest.raises(OCRResponseError):
            scan(service_answering(handler))

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(OCRError):
            scan(service_answering(handler))

    def test_disabled_without_url(self):
        service = ReceiptOCRService(url="")
        assert service.enabled is False
        with pytest.raises(OCRDisabledError):
            scan(service)


class TestPrefill:

    def setup_method(self):
        user_id = uuid4()
        self.food = Category(user_id=user_id, name="Food", type=TransactionType.EXPENSE)
        self.gopay = PaymentMethod(user_id=user_id, name="GoPay", type=PaymentMethodType.E_WALLET)

    def test_matches_names_case_insensitively(self):
        fields = prefill_from_scan(
            ReceiptScan(total=Decimal("45000"), description="Kopi", category="food", payment_method=" GOPAY "),
            [self.food],
            [self.gopay],
        )
        assert fields == {
            "amount": Decimal("45000"),
            "description": "Kopi",
            "category_id": self.food.id,
            "payment_method_id": self.gopay.id,
        }

    def test_unknown_names_are_left_out(self):
        fields = prefill_from_scan(
            ReceiptScan(category="Travel", payment_method="Visa", notes="Taxi"),
            [self.food],
            [self.gopay],
        )
        assert fields == {"notes": "Taxi"}
