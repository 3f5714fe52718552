"""
POS Tax Portal - Payment Tests

Terra Switching client and invoice payment recording.
"""

import hashlib
import hmac
import json
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock

from app.core.exceptions import (
    InvalidWebhookError,
    InvoiceNotFoundError,
    PaymentGatewayError,
    PaymentNotAllowedError,
)
from app.services.payment import PaymentService
from app.services.terraswitch import TerraSwitchClient, kobo_to_naira, metadata_value

from conftest import clock, make_submission, record_payment

WEBHOOK_SECRET = "whsec-test"


def _client(handler):
    return TerraSwitchClient(
        secret_key="sk_test",
        base_url="https://sandbox.terraswitching.test/v1",
        webhook_secret=WEBHOOK_SECRET,
        transport=httpx.MockTransport(handler)
    )


def _sign(body: bytes) -> str:
    return hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha512).hexdigest()


class TestTerraSwitchClient:

    @pytest.mark.asyncio
    async def test_initialize_transaction(self):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "status": True,
                "message": "Transaction initialized",
                "data": {"link": "https://pay.terraswitching.test/abc", "slug": "abc"},
            })

        data = await _client(handler).initialize_transaction(
            amount=100_000,
            description="Tax payment",
            customer={"email": "finance@firstondo.ng"},
            metadata=[{"key": "invoiceId", "value": "inv-1"}],
            redirect_url="https://portal.test/callback"
        )

        assert data["slug"] == "abc"
        assert captured["url"] == "https://sandbox.terraswitching.test/v1/corporate/initialize"
        assert captured["headers"]["Authorization"] == "Bearer sk_test"
        assert captured["headers"]["lg"] == "en"
        assert captured["body"]["type"] == "fixed"
        assert captured["body"]["amount"] == 100_000
        assert captured["body"]["redirectUrl"] == "https://portal.test/callback"

    @pytest.mark.asyncio
    async def test_failure_body_raises(self):
        def handler(request):
            return httpx.Response(200, json={"status": False, "message": "Invalid amount"})

        with pytest.raises(PaymentGatewayError) as exc_info:
            await _client(handler).initialize_transaction(100, "Tax payment", {"email": "a@b.ng"})
        assert exc_info.value.status_code == 502
        assert "Invalid amount" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        def handler(request):
            return httpx.Response(401, json={"message": "Unauthorized"})

        with pytest.raises(PaymentGatewayError) as exc_info:
            await _client(handler).verify_transaction("abc")
        assert exc_info.value.code == "401"

    @pytest.mark.asyncio
    async def test_verify_transaction(self):
        def handler(request):
            assert request.url.path == "/v1/transactions/verify/abc"
            return httpx.Response(200, json={"status": True, "data": {"status": "success", "amount": 500}})

        data = await _client(handler).verify_transaction("abc")
        assert data["status"] == "success"

    @pytest.mark.asyncio
    async def test_unconfigured_client_raises(self):
        client = TerraSwitchClient(secret_key="", base_url="https://sandbox.terraswitching.test/v1")
        with pytest.raises(PaymentGatewayError):
            await client.verify_transaction("abc")

    def test_webhook_signature(self):
        client = _client(lambda request: httpx.Response(200))
        body = b'{"event": "charge.success"}'

        assert client.verify_webhook_signature(body, _sign(body)) is True
        assert client.verify_webhook_signature(body, "sha512=" + _sign(body)) is True
        assert client.verify_webhook_signature(body, "0" * 128) is False
        assert client.verify_webhook_signature(body, None) is False

    def test_helpers(self):
        assert kobo_to_naira(10_000_050) == 100_000.5
        assert metadata_value({"invoiceId": "inv-1"}, "invoiceId") == "inv-1"
        assert metadata_value([{"key": "invoiceId", "value": "inv-2"}], "invoiceId") == "inv-2"
        assert metadata_value(None, "invoiceId") is None


async def _invoice(tax_report_service, bank):
    _, invoice = await tax_report_service.create_report(bank["id"], bank["business_name"], make_submission())
    return invoice


class TestPaymentService:

    @pytest.mark.asyncio
    async def test_initialize_payment(self, db, tax_report_service, bank):
        invoice = await _invoice(tax_report_service, bank)
        gateway = MagicMock()
        gateway.initialize_transaction = AsyncMock(return_value={"link": "https://pay.test/xyz", "slug": "xyz"})
        service = PaymentService(db, gateway=gateway, now=clock)

        result = await service.initialize_payment(bank, invoice["id"], "finance@firstondo.ng")

        assert result == {
            "invoice_id": invoice["id"],
            "payment_link": "https://pay.test/xyz",
            "payment_reference": "xyz",
            "amount": 100_000.0,
        }
        kwargs = gateway.initialize_transaction.call_args.kwargs
        assert kwargs["amount"] == 100_000.0
        assert {"key": "invoiceId", "value": invoice["id"]} in kwargs["metadata"]

        stored = await tax_report_service.get_invoice(invoice["id"])
        assert stored["payment_status"] == "payment_link_generated"
        assert stored["payment_link"] == "https://pay.test/xyz"

    @pytest.mark.asyncio
    async def test_cannot_pay_another_banks_invoice(self, db, tax_report_service, bank, other_bank):
        invoice = await _invoice(tax_report_service, bank)
        service = PaymentService(db, gateway=MagicMock(), now=clock)

        with pytest.raises(InvoiceNotFoundError):
            await service.initialize_payment(other_bank, invoice["id"], "tax@akurecoop.ng")

    @pytest.mark.asyncio
    async def test_cannot_pay_when_nothing_is_due(self, tax_report_service, payment_service, bank):
        invoice = await _invoice(tax_report_service, bank)
        await record_payment(payment_service, invoice["id"], 100_000)

        with pytest.raises(PaymentNotAllowedError):
            await payment_service.initialize_payment(bank, invoice["id"], "finance@firstondo.ng")

    @pytest.mark.asyncio
    async def test_record_successful_payment(self, db, tax_report_service, payment_service, bank):
        invoice = await _invoice(tax_report_service, bank)

        payment = await record_payment(payment_service, invoice["id"], 100_000, reference="TRX-77")

        assert payment["amount"] == pytest.approx(100_000)
        assert payment["reference_number"] == invoice["invoice_number"]
        assert payment["status"] == "pending"

        stored = await tax_report_service.get_invoice(invoice["id"])
        assert stored["payment_status"] == "success"
        assert stored["paid_amount"] == pytest.approx(100_000)
        assert stored["amount_due"] == 0
        assert stored["available_actions"] == ["start_review", "approve", "reject"]

    @pytest.mark.asyncio
    async def test_duplicate_delivery_is_recorded_once(self, db, tax_report_service, payment_service, bank):
        invoice = await _invoice(tax_report_service, bank)

        first = await record_payment(payment_service, invoice["id"], 100_000, reference="TRX-77")
        second = await record_payment(payment_service, invoice["id"], 100_000, reference="TRX-77")

        assert second["id"] == first["id"]
        assert await db.taxPayments.count_documents({}) == 1
        stored = await tax_report_service.get_invoice(invoice["id"])
        assert stored["paid_amount"] == pytest.approx(100_000)

    @pytest.mark.asyncio
    async def test_failed_payment(self, tax_report_service, payment_service, bank):
        invoice = await _invoice(tax_report_service, bank)

        await payment_service.record_failed_payment({
            "reference": "TRX-9",
            "gateway_response": "Insufficient funds",
            "metadata": {"invoiceId": invoice["id"]},
        })

        stored = await tax_report_service.get_invoice(invoice["id"])
        assert stored["payment_status"] == "failed"
        assert stored["failure_reason"] == "Insufficient funds"
        assert stored["available_actions"] == ["start_review"]

    @pytest.mark.asyncio
    async def test_failed_charge_does_not_downgrade_paid_invoice(self, tax_report_service, payment_service, bank):
        invoice = await _invoice(tax_report_service, bank)
        await record_payment(payment_service, invoice["id"], 100_000)

        await payment_service.record_failed_payment({"reference": "TRX-2", "metadata": {"invoiceId": invoice["id"]}})

        stored = await tax_report_service.get_invoice(invoice["id"])
        assert stored["payment_status"] == "success"

    @pytest.mark.asyncio
    async def test_handle_webhook(self, db, tax_report_service, bank):
        invoice = await _invoice(tax_report_service, bank)
        service = PaymentService(db, gateway=_client(lambda request: httpx.Response(200)), now=clock)
        body = json.dumps({
            "event": "charge.success",
            "data": {
                "reference": "TRX-100",
                "amount": 10_000_000,
                "status": "success",
                "metadata": [{"key": "invoiceId", "value": invoice["id"]}],
            },
        }).encode()

        result = await service.handle_webhook(body, _sign(body))

        assert result == {"status": "success", "event": "charge.success"}
        stored = await tax_report_service.get_invoice(invoice["id"])
        assert stored["payment_status"] == "success"
        assert stored["paid_amount"] == pytest.approx(100_000)

    @pytest.mark.asyncio
    async def test_webhook_with_bad_signature(self, db):
        service = PaymentService(db, gateway=_client(lambda request: httpx.Response(200)), now=clock)

        with pytest.raises(InvalidWebhookError):
            await service.handle_webhook(b'{"event": "charge.success"}', "bad-signature")

    @pytest.mark.asyncio
    async def test_unhandled_webhook_event_is_acknowledged(self, db):
        service = PaymentService(db, gateway=_client(lambda request: httpx.Response(200)), now=clock)
        body = json.dumps({"event": "transfer.success", "data": {}}).encode()

        result = await service.handle_webhook(body, _sign(body))

        assert result["event"] == "transfer.success"

    @pytest.mark.asyncio
    async def test_verify_and_record(self, db, tax_report_service, bank):
        invoice = await _invoice(tax_report_service, bank)
        gateway = MagicMock()
        gateway.initialize_transaction = AsyncMock(return_value={"link": "https://pay.test/xyz", "slug": "xyz"})
        gateway.verify_transaction = AsyncMock(return_value={"status": "success", "amount": 10_000_000})
        service = PaymentService(db, gateway=gateway, now=clock)
        await service.initialize_payment(bank, invoice["id"], "finance@firstondo.ng")

        verified = await service.verify_and_record(bank["id"], invoice["id"])

        gateway.verify_transaction.assert_awaited_once_with("xyz")
        assert verified["payment_status"] == "success"
        assert verified["paid_amount"] == pytest.approx(100_000)

        # The webhook for the same charge arriving later changes nothing
        await service.record_successful_payment({"reference": "xyz", "amount": 10_000_000})
        assert await db.taxPayments.count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_verify_without_initialized_payment(self, tax_report_service, payment_service, bank):
        invoice = await _invoice(tax_report_service, bank)

        with pytest.raises(PaymentNotAllowedError):
            await payment_service.verify_and_record(bank["id"], invoice["id"])
