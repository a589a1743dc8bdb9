"""
Service per l'invio delle fatture via email
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Il trasporto è separato dalla composizione del messaggio:
- MailTransport: interfaccia di invio (una sola operazione, send)
- ResendMailTransport: invio tramite l'API HTTP di Resend (httpx)
- InvoiceMailer: compone il messaggio (corpo HTML, PDF allegato),
  lo consegna al trasporto e registra l'invio sulla fattura
"""

import base64
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from invoicing.core.config import settings
from invoicing.core.exceptions import (
    BusinessValidationError,
    EmailDeliveryError,
    EmailNotConfiguredError,
)
from invoicing.models import Invoice, InvoiceTemplate, Tenant
from invoicing.schemas.email import InvoiceSendRequest
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.render_service import InvoiceRenderer, needs_watermark

# Logger per questo modulo
logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass
class OutgoingEmail:
    """Messaggio pronto per il trasporto."""

    to: list[str]
    subject: str
    html: str
    cc: list[str] = field(default_factory=list)
    sender: Optional[str] = None
    attachments: list[EmailAttachment] = field(default_factory=list)


class MailTransport:
    """Interfaccia di invio. Restituisce l'id del messaggio assegnato dal provider."""

    async def send(self, email: OutgoingEmail) -> str:
        raise NotImplementedError


class ResendMailTransport(MailTransport):
    """
    Invio tramite l'API HTTP di Resend (POST /emails).

    Errori di rete e risposte >= 400 diventano EmailDeliveryError.
    """

    def __init__(
        self,
        api_key: str,
        sender: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender or settings.email_from
        self.base_url = (base_url or settings.resend_api_url).rstrip("/")
        self.timeout = timeout or settings.email_timeout
        self._http_transport = http_transport

    def build_payload(self, email: OutgoingEmail) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": email.sender or self.sender,
            "to": email.to,
            "subject": email.subject,
            "html": email.html,
        }
        if email.cc:
            payload["cc"] = email.cc
        if email.attachments:
            payload["attachments"] = [
                {
                    "filename": a.filename,
                    "content": base64.b64encode(a.content).decode("ascii"),
                    "content_type": a.content_type,
                }
                for a in email.attachments
            ]
        return payload

    async def send(self, email: OutgoingEmail) -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._http_transport,
            ) as client:
                r = await client.post("/emails", headers=headers, json=self.build_payload(email))
        except httpx.HTTPError as e:
            logger.error(f"Resend non raggiungibile: {e}")
            raise EmailDeliveryError(f"Provider email non raggiungibile: {e}") from e

        if r.status_code >= 400:
            logger.error(f"Resend ha rifiutato il messaggio: {r.status_code} {r.text}")
            raise EmailDeliveryError(
                f"Il provider email ha rifiutato il messaggio ({r.status_code})",
                extra={"provider_status": r.status_code},
            )

        message_id = r.json().get("id")
        if not message_id:
            raise EmailDeliveryError("Risposta del provider email senza id messaggio")
        return message_id


def get_mail_transport() -> MailTransport:
    """
    Dependency FastAPI: trasporto configurato dalle settings.

    Raises:
        EmailNotConfiguredError: RESEND_API_KEY assente
    """
    if not settings.resend_api_key:
        raise EmailNotConfiguredError()
    return ResendMailTransport(settings.resend_api_key)


@dataclass
class SentInvoice:
    message_id: str
    recipients: list[str]
    cc: list[str]
    attached_pdf: bool
    invoice: Invoice


class InvoiceMailer:
    """Compone e invia l'email di una fattura."""

    def __init__(
        self,
        renderer: InvoiceRenderer,
        invoice_service: Optional[InvoiceService] = None,
    ) -> None:
        self.renderer = renderer
        self.invoice_service = invoice_service or InvoiceService()

    @staticmethod
    def resolve_recipients(invoice: Invoice, requested: list[str]) -> list[str]:
        """Destinatari richiesti, altrimenti l'email dello snapshot vendor."""
        if requested:
            return [str(r) for r in requested]
        fallback = (invoice.vendor_snapshot or {}).get("email")
        if not fallback:
            raise BusinessValidationError(
                "Nessun destinatario: indicare 'to' o un'email nel vendor della fattura",
                error_code="MISSING_RECIPIENT",
            )
        return [fallback]

    def render_body(self, invoice: Invoice, tenant: Tenant, message: Optional[str]) -> str:
        vendor = invoice.vendor_snapshot or {}
        return self.renderer.env.get_template("invoice_email.html").render(
            invoice=invoice,
            tenant=tenant,
            client_name=vendor.get("company_name") or vendor.get("contact_person") or "",
            message=message,
        )

    async def send_invoice(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice: Invoice,
        tenant: Tenant,
        template: Optional[InvoiceTemplate],
        data: InvoiceSendRequest,
        transport: MailTransport,
    ) -> SentInvoice:
        """
        Invia la fattura e registra email_sent_at.

        Se il trasporto fallisce la fattura non viene modificata.

        Raises:
            BusinessValidationError: nessun destinatario (MISSING_RECIPIENT)
            EmailDeliveryError: il provider rifiuta il messaggio
        """
        recipients = self.resolve_recipients(invoice, data.to)
        cc = [str(c) for c in data.cc]

        attachments: list[EmailAttachment] = []
        if data.attach_pdf:
            pdf_bytes = await run_in_threadpool(self.renderer.render_pdf, invoice, tenant, template)
            filename = f"{invoice.invoice_number}.pdf".replace("/", "-")
            attachments.append(EmailAttachment(filename=filename, content=pdf_bytes))

        email = OutgoingEmail(
            to=recipients,
            cc=cc,
            subject=f"Invoice {invoice.invoice_number} from {tenant.company_name}",
            html=self.render_body(invoice, tenant, data.message),
            attachments=attachments,
        )
        message_id = await transport.send(email)
        logger.info(f"Fattura {invoice.invoice_number} inviata a {', '.join(recipients)} ({message_id})")

        updated = await self.invoice_service.mark_email_sent(
            db,
            tenant_id,
            invoice.id,
            pdf_watermarked=needs_watermark(tenant) if data.attach_pdf else None,
        )
        return SentInvoice(
            message_id=message_id,
            recipients=recipients,
            cc=cc,
            attached_pdf=data.attach_pdf,
            invoice=updated,
        )
