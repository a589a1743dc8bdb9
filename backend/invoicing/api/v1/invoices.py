"""
Router FastAPI per la Fatturazione
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Definisce gli endpoint API per la gestione delle fatture:
CRUD, cambio stato, duplicazione, statistiche, anteprima/PDF, invio email
e pagamenti della singola fattura.
"""

import logging
import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Response, status
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from invoicing.core.database import get_db
from invoicing.core.deps import CurrentTenant
from invoicing.models import Invoice, InvoiceTemplate
from invoicing.schemas.email import InvoiceSendRequest, InvoiceSendResponse
from invoicing.schemas.invoice import (
    DashboardStats,
    InvoiceCreate,
    InvoiceList,
    InvoiceRead,
    InvoiceStatus,
    InvoiceStatusUpdate,
    InvoiceType,
    InvoiceUpdate,
)
from invoicing.schemas.payment import (
    InvoiceBalance,
    InvoicePayments,
    PaymentCreate,
    PaymentRead,
    PaymentRecordResponse,
)
from invoicing.services.email_service import InvoiceMailer, MailTransport, get_mail_transport
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.payment_service import PaymentService
from invoicing.services.render_service import InvoiceRenderer, needs_watermark
from invoicing.services.template_service import TemplateService
from invoicing.services.tenant_service import TenantService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanze dei service
invoice_service = InvoiceService()
payment_service = PaymentService()
template_service = TemplateService()
tenant_service = TenantService()
renderer = InvoiceRenderer()
mailer = InvoiceMailer(renderer, invoice_service)

# Router con prefix e tag
router = APIRouter(
    prefix="/invoices",
    tags=["Fatturazione"],
)


# -------------------------------------------------------------------
# Endpoints per Fatture
# -------------------------------------------------------------------

@router.get(
    "/",
    name="fatture_lista",
    summary="Lista fatture",
    description="Recupera la lista paginata delle fatture del tenant con eventuali filtri.",
    response_model=InvoiceList,
    status_code=status.HTTP_200_OK,
)
async def get_invoices(
    ctx: CurrentTenant,
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filtro per stato"),
    vendor_id: Optional[uuid.UUID] = Query(None, description="Filtro per vendor"),
    type_filter: Optional[InvoiceType] = Query(None, alias="type", description="Filtro per tipo documento"),
    from_date: Optional[date] = Query(None, description="Data emissione da (YYYY-MM-DD)"),
    to_date: Optional[date] = Query(None, description="Data emissione a (YYYY-MM-DD)"),
    search: Optional[str] = Query(None, max_length=100, description="Ricerca su numero e note"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(50, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceList:
    """
    Recupera la lista paginata delle fatture, dalla più recente.
    """
    return await invoice_service.get_all(
        db=db,
        tenant_id=ctx.tenant_id,
        status_filter=status_filter.value if status_filter else None,
        vendor_id=vendor_id,
        type_filter=type_filter.value if type_filter else None,
        from_date=from_date,
        to_date=to_date,
        search=search,
        page=page,
        per_page=per_page,
    )


@router.get(
    "/stats",
    name="fatture_statistiche",
    summary="Statistiche fatture",
    description="Totale fatture, fatturato, importo da incassare e ripartizione per stato.",
    response_model=DashboardStats,
    status_code=status.HTTP_200_OK,
)
async def get_dashboard_stats(
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> DashboardStats:
    return await invoice_service.get_dashboard_stats(db=db, tenant_id=ctx.tenant_id)


@router.post(
    "/",
    name="crea_fattura",
    summary="Crea fattura",
    description="Crea una fattura calcolando totali e numero progressivo.",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_invoice(
    data: InvoiceCreate,
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    """
    Crea una nuova fattura in stato 'draft' (o 'sent' se richiesto).

    Totali calcolati dal server:
    - amount = quantity * rate per riga
    - total = subtotal + tax_amount - discount_amount
    """
    return await invoice_service.create(
        db=db,
        tenant_id=ctx.tenant_id,
        user_id=ctx.user_id,
        data=data,
    )


@router.get(
    "/{invoice_id}",
    name="fattura_dettaglio",
    summary="Dettaglio fattura",
    description="Recupera i dettagli di una fattura.",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def get_invoice(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    return await invoice_service.get_by_id(db=db, tenant_id=ctx.tenant_id, invoice_id=invoice_id)


@router.put(
    "/{invoice_id}",
    name="aggiorna_fattura",
    summary="Aggiorna fattura",
    description="Aggiorna i dati non finanziari di una fattura non pagata.",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def update_invoice(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    data: InvoiceUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    """
    Aggiorna una fattura.

    Campi modificabili: date, valuta, layout/template, note, tag.

    NOTA: Gli importi non sono modificabili dopo la creazione;
    le fatture pagate sono bloccate (400 INVALID_OPERATION).
    """
    return await invoice_service.update(
        db=db,
        tenant_id=ctx.tenant_id,
        invoice_id=invoice_id,
        data=data,
    )


@router.patch(
    "/{invoice_id}/status",
    name="stato_fattura",
    summary="Cambia stato fattura",
    description="Imposta lo stato della fattura (nessun vincolo di transizione).",
    response_model=InvoiceRead,
    status_code=status.HTTP_200_OK,
)
async def update_invoice_status(
    data: InvoiceStatusUpdate,
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    return await invoice_service.set_status(
        db=db,
        tenant_id=ctx.tenant_id,
        invoice_id=invoice_id,
        new_status=data.status,
    )


@router.delete(
    "/{invoice_id}",
    name="elimina_fattura",
    summary="Elimina fattura",
    description="Elimina logicamente una fattura.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_invoice(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Elimina una fattura (soft delete).

    Il numero fattura resta occupato e non verrà riassegnato.
    """
    await invoice_service.delete(db=db, tenant_id=ctx.tenant_id, invoice_id=invoice_id)


@router.post(
    "/{invoice_id}/duplicate",
    name="duplica_fattura",
    summary="Duplica fattura",
    description="Crea una nuova bozza copiando righe e importi.",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_invoice(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceRead:
    return await invoice_service.duplicate(
        db=db,
        tenant_id=ctx.tenant_id,
        user_id=ctx.user_id,
        invoice_id=invoice_id,
    )


# -------------------------------------------------------------------
# Anteprima e PDF
# -------------------------------------------------------------------

async def _resolve_template(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    invoice: Invoice,
) -> Optional[InvoiceTemplate]:
    """Template della fattura, altrimenti il default del tenant."""
    if invoice.custom_template_id is not None:
        return await template_service.get_by_id(db, tenant_id, invoice.custom_template_id)
    return await template_service.get_default(db, tenant_id)


@router.get(
    "/{invoice_id}/preview",
    name="anteprima_fattura",
    summary="Anteprima HTML",
    description="Restituisce l'HTML della fattura con il template applicato.",
    response_class=HTMLResponse,
)
async def preview_invoice(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> HTMLResponse:
    invoice = await invoice_service.get_by_id(db, ctx.tenant_id, invoice_id)
    tenant = await tenant_service.get_by_id(db, ctx.tenant_id)
    template = await _resolve_template(db, ctx.tenant_id, invoice)

    html = renderer.render_html(invoice, tenant, template)
    return HTMLResponse(content=html)


@router.get(
    "/{invoice_id}/pdf",
    name="pdf_fattura",
    summary="PDF fattura",
    description="Genera il PDF della fattura (watermark per il piano free).",
    response_class=Response,
)
async def download_invoice_pdf(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> Response:
    """
    Genera il PDF della fattura.

    Registra pdf_generated_at/pdf_watermarked e l'utilizzo del template;
    i campi finanziari non vengono toccati.
    """
    invoice = await invoice_service.get_by_id(db, ctx.tenant_id, invoice_id)
    tenant = await tenant_service.get_by_id(db, ctx.tenant_id)
    template = await _resolve_template(db, ctx.tenant_id, invoice)

    pdf_bytes = await run_in_threadpool(renderer.render_pdf, invoice, tenant, template)

    if template is not None:
        await template_service.track_usage(db, template.id)
    await invoice_service.mark_pdf_generated(
        db, ctx.tenant_id, invoice_id, watermarked=needs_watermark(tenant)
    )

    filename = f"{invoice.invoice_number}.pdf".replace("/", "-")
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/{invoice_id}/send",
    name="invia_fattura",
    summary="Invia fattura via email",
    description="Invia la fattura (PDF allegato) e registra emailSentAt; una bozza passa a 'sent'.",
    response_model=InvoiceSendResponse,
    status_code=status.HTTP_200_OK,
)
async def send_invoice(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    data: InvoiceSendRequest = ...,
    transport: MailTransport = Depends(get_mail_transport),
    db: AsyncSession = Depends(get_db),
) -> InvoiceSendResponse:
    """
    Invia la fattura via email.

    Errori:
    - 404 NOT_FOUND: fattura inesistente
    - 422 MISSING_RECIPIENT: nessun destinatario disponibile
    - 502 EMAIL_SEND_FAILED: il provider rifiuta il messaggio
    - 503 EMAIL_NOT_CONFIGURED: provider email non configurato
    """
    invoice = await invoice_service.get_by_id(db, ctx.tenant_id, invoice_id)
    tenant = await tenant_service.get_by_id(db, ctx.tenant_id)
    template = await _resolve_template(db, ctx.tenant_id, invoice) if data.attach_pdf else None

    sent = await mailer.send_invoice(db, ctx.tenant_id, invoice, tenant, template, data, transport)

    if template is not None:
        await template_service.track_usage(db, template.id)

    return InvoiceSendResponse(
        message_id=sent.message_id,
        sent_at=sent.invoice.email_sent_at,
        recipients=sent.recipients,
        cc=sent.cc,
        attached_pdf=sent.attached_pdf,
        invoice=InvoiceRead.model_validate(sent.invoice),
    )


# -------------------------------------------------------------------
# Endpoints per Pagamenti della fattura
# -------------------------------------------------------------------

@router.post(
    "/{invoice_id}/payments",
    name="registra_pagamento",
    summary="Registra pagamento",
    description="Registra un pagamento e aggiorna residuo e stato della fattura.",
    response_model=PaymentRecordResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Pagamenti"],
)
async def record_payment(
    data: PaymentCreate,
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> PaymentRecordResponse:
    """
    Registra un pagamento.

    Errori:
    - 404 NOT_FOUND: fattura inesistente
    - 400 INVALID_AMOUNT: importo <= 0
    - 400 AMOUNT_EXCEEDS_DUE: importo superiore al residuo
    """
    payment, invoice = await payment_service.record_payment(
        db=db,
        tenant_id=ctx.tenant_id,
        invoice_id=invoice_id,
        data=data,
        recorded_by=ctx.user_id,
    )
    return PaymentRecordResponse(
        payment=PaymentRead.model_validate(payment),
        invoice=InvoiceBalance.model_validate(invoice),
    )


@router.get(
    "/{invoice_id}/payments",
    name="pagamenti_fattura",
    summary="Pagamenti fattura",
    description="Pagamenti della fattura dal più recente, con riepilogo.",
    response_model=InvoicePayments,
    status_code=status.HTTP_200_OK,
    tags=["Pagamenti"],
)
async def list_invoice_payments(
    ctx: CurrentTenant,
    invoice_id: uuid.UUID = Path(..., description="UUID della fattura"),
    db: AsyncSession = Depends(get_db),
) -> InvoicePayments:
    return await payment_service.list_payments(db=db, tenant_id=ctx.tenant_id, invoice_id=invoice_id)
