"""
Tests per l'invio delle fatture via email (trasporto Resend e InvoiceMailer).
"""

import base64
import json

import httpx
import pytest

from conftest import RecordingTransport, scenario_invoice_data
from invoicing.core.config import settings
from invoicing.core.exceptions import (
    BusinessValidationError,
    EmailDeliveryError,
    EmailNotConfiguredError,
)
from invoicing.schemas.email import InvoiceSendRequest
from invoicing.services.email_service import (
    EmailAttachment,
    InvoiceMailer,
    OutgoingEmail,
    ResendMailTransport,
    get_mail_transport,
)
from invoicing.services.render_service import InvoiceRenderer


def outgoing(**kwargs) -> OutgoingEmail:
    data = {"to": ["ap@globex.com"], "subject": "Invoice INV-1000", "html": "<p>Hi</p>"}
    data.update(kwargs)
    return OutgoingEmail(**data)


@pytest.fixture
def mailer(invoice_service, monkeypatch) -> InvoiceMailer:
    renderer = InvoiceRenderer()
    monkeypatch.setattr(renderer, "render_pdf", lambda *args: b"%PDF-1.7 test")
    return InvoiceMailer(renderer, invoice_service)


class TestResendTransport:
    """Tests for the HTTP transport."""

    async def test_payload_and_message_id(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "re_msg_1"})

        transport = ResendMailTransport(
            "re_test_key",
            sender="Acme <billing@acme.com>",
            base_url="https://mail.test/",
            http_transport=httpx.MockTransport(handler),
        )
        email = outgoing(
            cc=["boss@globex.com"],
            attachments=[EmailAttachment(filename="INV-1000.pdf", content=b"%PDF")],
        )

        assert await transport.send(email) == "re_msg_1"

        request = captured[0]
        assert str(request.url) == "https://mail.test/emails"
        assert request.headers["Authorization"] == "Bearer re_test_key"
        body = json.loads(request.content)
        assert body["from"] == "Acme <billing@acme.com>"
        assert body["to"] == ["ap@globex.com"]
        assert body["cc"] == ["boss@globex.com"]
        assert body["attachments"][0]["filename"] == "INV-1000.pdf"
        assert base64.b64decode(body["attachments"][0]["content"]) == b"%PDF"

    async def test_no_optional_fields(self):
        transport = ResendMailTransport("re_test_key", sender="Acme <billing@acme.com>")
        payload = transport.build_payload(outgoing())
        assert "cc" not in payload
        assert "attachments" not in payload

    async def test_rejected_by_provider(self):
        transport = ResendMailTransport(
            "re_test_key",
            http_transport=httpx.MockTransport(
                lambda request: httpx.Response(422, json={"message": "Invalid `to` field"})
            ),
        )
        with pytest.raises(EmailDeliveryError) as exc_info:
            await transport.send(outgoing())
        assert exc_info.value.status_code == 502
        assert exc_info.value.extra == {"provider_status": 422}

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = ResendMailTransport("re_test_key", http_transport=httpx.MockTransport(handler))
        with pytest.raises(EmailDeliveryError):
            await transport.send(outgoing())

    async def test_response_without_id(self):
        transport = ResendMailTransport(
            "re_test_key",
            http_transport=httpx.MockTransport(lambda request: httpx.Response(200, json={})),
        )
        with pytest.raises(EmailDeliveryError):
            await transport.send(outgoing())

    def test_transport_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", None)
        with pytest.raises(EmailNotConfiguredError):
            get_mail_transport()

        monkeypatch.setattr(settings, "resend_api_key", "re_live_key")
        transport = get_mail_transport()
        assert isinstance(transport, ResendMailTransport)
        assert transport.api_key == "re_live_key"


class TestInvoiceMailer:
    """Tests for composing and recording invoice emails."""

    async def test_send_to_vendor_email(self, db, tenant, scenario_invoice, mailer):
        transport = RecordingTransport()

        sent = await mailer.send_invoice(
            db, tenant.id, scenario_invoice, tenant, None, InvoiceSendRequest(), transport
        )

        assert sent.message_id == "msg_1"
        assert sent.recipients == ["billing@globex.com"]
        email = transport.sent[0]
        assert email.subject == f"Invoice {scenario_invoice.invoice_number} from Acme Srl"
        assert "Globex Corporation" in email.html
        assert email.attachments[0].filename == f"{scenario_invoice.invoice_number}.pdf"
        assert email.attachments[0].content == b"%PDF-1.7 test"

        invoice = sent.invoice
        assert invoice.email_sent_at is not None
        assert invoice.status == "sent"
        assert invoice.sent_at is not None
        assert invoice.pdf_generated_at is not None
        assert invoice.pdf_watermarked is False

    async def test_explicit_recipients_and_message(self, db, tenant, scenario_invoice, mailer):
        transport = RecordingTransport()
        data = InvoiceSendRequest(
            to=["finance@globex.com"],
            cc=["ceo@globex.com"],
            message="Please find the March invoice attached.",
            attach_pdf=False,
        )

        sent = await mailer.send_invoice(db, tenant.id, scenario_invoice, tenant, None, data, transport)

        email = transport.sent[0]
        assert email.to == ["finance@globex.com"]
        assert email.cc == ["ceo@globex.com"]
        assert email.attachments == []
        assert "Please find the March invoice attached." in email.html
        assert sent.invoice.pdf_generated_at is None

    async def test_missing_recipient(self, db, tenant, user_id, invoice_service, mailer):
        invoice = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        transport = RecordingTransport()

        with pytest.raises(BusinessValidationError) as exc_info:
            await mailer.send_invoice(db, tenant.id, invoice, tenant, None, InvoiceSendRequest(), transport)
        assert exc_info.value.error_code == "MISSING_RECIPIENT"
        assert transport.sent == []

    async def test_failed_delivery_leaves_invoice_untouched(
        self, db, tenant, scenario_invoice, invoice_service, mailer
    ):
        transport = RecordingTransport(error=EmailDeliveryError("provider down"))

        with pytest.raises(EmailDeliveryError):
            await mailer.send_invoice(
                db, tenant.id, scenario_invoice, tenant, None, InvoiceSendRequest(), transport
            )

        invoice = await invoice_service.get_by_id(db, tenant.id, scenario_invoice.id)
        assert invoice.email_sent_at is None
        assert invoice.status == "draft"

    async def test_resend_keeps_paid_status(self, db, tenant, scenario_invoice, invoice_service, mailer):
        paid = await invoice_service.set_status(db, tenant.id, scenario_invoice.id, "paid")

        sent = await mailer.send_invoice(
            db, tenant.id, paid, tenant, None, InvoiceSendRequest(attach_pdf=False), RecordingTransport()
        )
        assert sent.invoice.status == "paid"
        assert sent.invoice.sent_at is None
        assert sent.invoice.email_sent_at is not None
