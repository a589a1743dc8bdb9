"""
Service Layer per la Fatturazione
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Definisce la logica di business dell'aggregato fattura:
calcolo dei totali, numerazione, snapshot del vendor, stati,
duplicazione e statistiche. I campi amount_paid/balance_due
sono di competenza esclusiva del PaymentService.
"""

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    InvalidOperationError,
    NotFoundError,
)
from invoicing.models import Invoice, InvoiceItem, InvoiceTemplate, Tenant, Vendor
from invoicing.models.mixins import utcnow
from invoicing.schemas.invoice import (
    MAX_MONEY,
    DashboardStats,
    InvoiceCreate,
    InvoiceList,
    InvoiceStatus,
    InvoiceUpdate,
    StatusBreakdown,
)
from invoicing.services.numbering_service import InvoiceNumberService

# Logger per questo modulo
logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Stati che contribuiscono all'importo "da incassare" in dashboard
OUTSTANDING_STATUSES = ("sent", "viewed", "overdue")

DUPLICATE_DUE_DAYS = 30


def quantize_money(value: Decimal) -> Decimal:
    """Arrotonda a 2 decimali (ROUND_HALF_UP)."""
    try:
        return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise amount_too_large(value)


def amount_too_large(value: Decimal) -> BusinessValidationError:
    return BusinessValidationError(
        f"Importo fuori scala: {value} (massimo {MAX_MONEY})",
        error_code="AMOUNT_TOO_LARGE",
        extra={"max_amount": str(MAX_MONEY)},
    )


class InvoiceService:
    """
    Service per la gestione delle operazioni sulle fatture.

    Fornisce metodi asincroni per interagire con il database
    in modo centralizzato, senza dipendenze da FastAPI.
    Ogni query è filtrata per tenant: una fattura di un altro
    tenant è indistinguibile da una fattura inesistente.

    Implementa:
    - Creazione con calcolo totali e numerazione progressiva per tenant
    - Aggiornamento dei soli campi non finanziari (bloccato se pagata)
    - Cambio stato senza grafo di transizione
    - Soft delete, duplicazione, statistiche dashboard
    """

    def __init__(self, numbering: Optional[InvoiceNumberService] = None) -> None:
        self.numbering = numbering or InvoiceNumberService()

    # ------------------------------------------------------------
    # Creazione
    # ------------------------------------------------------------

    async def create(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        data: InvoiceCreate,
    ) -> Invoice:
        """
        Crea una nuova fattura.

        Steps:
        1. Recupera il tenant (valuta, limite scadenza)
        2. Congela i dati del vendor (snapshot) o usa quelli forniti
        3. Calcola righe e totali:
           - amount = quantity * rate
           - tax = amount * tax_rate / 100 se la riga è imponibile
           - total = subtotal + tax_amount - discount_amount
        4. Valida le date
        5. Assegna il numero fattura e inserisce (un retry su collisione)
        6. Incrementa il contatore di utilizzo del tenant (non critico)

        Args:
            db: Sessione database
            tenant_id: UUID del tenant
            user_id: UUID dell'utente che crea la fattura
            data: Dati della fattura

        Returns:
            Invoice: La fattura creata con le righe

        Raises:
            NotFoundError: tenant, vendor o template inesistenti
            BusinessValidationError: totale negativo o date non valide
            ConflictError: numero fattura in collisione anche dopo il retry
        """
        tenant = await self._get_tenant(db, tenant_id)

        # Step 2: snapshot vendor
        vendor_snapshot: dict[str, Any] = {}
        if data.vendor_id is not None:
            vendor = await self._get_vendor(db, tenant_id, data.vendor_id)
            vendor_snapshot = vendor.to_snapshot()
        elif data.vendor_snapshot is not None:
            vendor_snapshot = data.vendor_snapshot.model_dump()

        if data.custom_template_id is not None:
            await self._check_template(db, tenant_id, data.custom_template_id)

        # Step 3: righe e totali
        lines = []
        subtotal = ZERO
        tax_amount = ZERO
        for position, item in enumerate(data.items, start=1):
            amount = quantize_money(item.quantity * item.rate)
            item_tax = quantize_money(amount * item.tax_rate / Decimal("100")) if item.taxable else ZERO
            subtotal += amount
            tax_amount += item_tax
            lines.append(
                {
                    "description": item.description,
                    "quantity": item.quantity,
                    "rate": item.rate,
                    "amount": amount,
                    "taxable": item.taxable,
                    "tax_rate": item.tax_rate,
                    "tax_amount": item_tax,
                    "position": position,
                }
            )

        if subtotal + tax_amount > MAX_MONEY:
            raise amount_too_large(subtotal + tax_amount)

        discount_amount = quantize_money(data.discount_amount)
        total = subtotal + tax_amount - discount_amount
        if total < 0:
            raise BusinessValidationError(
                f"Lo sconto ({discount_amount}) supera l'importo della fattura "
                f"({subtotal + tax_amount})"
            )

        # Step 4: date
        issue_date = data.issue_date or date.today()
        due_date = data.due_date or issue_date
        self._validate_due_date(tenant, issue_date, due_date)

        status = InvoiceStatus.SENT.value if data.status == InvoiceStatus.SENT else InvoiceStatus.DRAFT.value

        def build(invoice_number: str) -> Invoice:
            invoice = Invoice(
                tenant_id=tenant_id,
                invoice_number=invoice_number,
                type=data.type.value,
                status=status,
                issue_date=issue_date,
                due_date=due_date,
                sent_at=utcnow() if status == InvoiceStatus.SENT.value else None,
                vendor_id=data.vendor_id,
                vendor_snapshot=vendor_snapshot,
                created_by=user_id,
                subtotal=subtotal,
                tax_amount=tax_amount,
                discount_amount=discount_amount,
                discount_type=data.discount_type.value if data.discount_type else None,
                total=total,
                amount_paid=ZERO,
                balance_due=total,
                currency=data.currency or tenant.default_currency,
                layout_id=data.layout_id or "modern-minimal",
                custom_template_id=data.custom_template_id,
                internal_notes=data.internal_notes,
                client_notes=data.client_notes,
                tags=list(data.tags),
            )
            for line in lines:
                invoice.items.append(InvoiceItem(**line))
            return invoice

        # Step 5: numerazione + insert
        invoice = await self._insert_numbered(db, tenant_id, build)

        # Step 6: contatore utilizzo
        await self._increment_usage(db, tenant_id)

        await db.commit()
        logger.info(
            f"Fattura {invoice.invoice_number} creata (tenant={tenant_id}, "
            f"utente={user_id}, totale={total} {invoice.currency})"
        )

        return await self.get_by_id(db, tenant_id, invoice.id)

    async def _insert_numbered(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        build: Callable[[str], Invoice],
    ) -> Invoice:
        """
        Assegna il numero e inserisce la fattura in un savepoint.

        Se il numero è già stato preso da una creazione concorrente
        rigenera e riprova una sola volta; alla seconda collisione
        solleva ConflictError.
        """
        for attempt in (1, 2):
            invoice_number = await self.numbering.allocate(db, tenant_id)
            invoice = build(invoice_number)
            try:
                async with db.begin_nested():
                    db.add(invoice)
                    await db.flush()
                return invoice
            except IntegrityError as e:
                logger.warning(
                    f"Numero fattura {invoice_number} già assegnato "
                    f"(tenant={tenant_id}, tentativo {attempt}): {e.orig}"
                )

        await db.rollback()
        raise ConflictError(
            "Impossibile assegnare un numero fattura univoco, riprovare",
            error_code="INVOICE_NUMBER_CONFLICT",
        )

    async def _increment_usage(self, db: AsyncSession, tenant_id: uuid.UUID) -> None:
        """Incrementa invoices_this_month. Un errore qui non blocca la fattura."""
        try:
            async with db.begin_nested():
                await db.execute(
                    update(Tenant)
                    .where(Tenant.id == tenant_id)
                    .values(invoices_this_month=Tenant.invoices_this_month + 1)
                )
        except SQLAlchemyError as e:
            logger.warning(f"Aggiornamento contatore utilizzo fallito per tenant {tenant_id}: {e}")

    # ------------------------------------------------------------
    # Lettura
    # ------------------------------------------------------------

    async def get_by_id(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> Invoice:
        """
        Recupera una fattura del tenant per ID.

        Raises:
            NotFoundError: fattura inesistente, eliminata o di altro tenant
        """
        stmt = (
            select(Invoice)
            .where(
                Invoice.id == invoice_id,
                Invoice.tenant_id == tenant_id,
                Invoice.deleted_at.is_(None),
            )
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        invoice = result.scalar_one_or_none()

        if not invoice:
            raise NotFoundError(f"Fattura {invoice_id} non trovata")

        return invoice

    async def get_all(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        status_filter: Optional[str] = None,
        vendor_id: Optional[uuid.UUID] = None,
        type_filter: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 50,
    ) -> InvoiceList:
        """
        Recupera la lista paginata delle fatture del tenant.

        Ordinamento: data emissione più recente prima.
        """
        conditions = [
            Invoice.tenant_id == tenant_id,
            Invoice.deleted_at.is_(None),
        ]

        if status_filter:
            conditions.append(Invoice.status == status_filter)
        if vendor_id:
            conditions.append(Invoice.vendor_id == vendor_id)
        if type_filter:
            conditions.append(Invoice.type == type_filter)
        if from_date:
            conditions.append(Invoice.issue_date >= from_date)
        if to_date:
            conditions.append(Invoice.issue_date <= to_date)
        if search:
            term = f"%{search.strip()}%"
            conditions.append(
                or_(
                    Invoice.invoice_number.ilike(term),
                    Invoice.client_notes.ilike(term),
                )
            )

        count_stmt = select(func.count(Invoice.id)).where(and_(*conditions))
        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(Invoice)
            .where(and_(*conditions))
            .order_by(Invoice.issue_date.desc(), Invoice.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        result = await db.execute(stmt)
        invoices = result.scalars().all()

        total_pages = (total + per_page - 1) // per_page if total > 0 else 1

        return InvoiceList(
            items=list(invoices),
            total=total,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
        )

    # ------------------------------------------------------------
    # Aggiornamento
    # ------------------------------------------------------------

    async def update(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: InvoiceUpdate,
    ) -> Invoice:
        """
        Aggiorna i campi non finanziari di una fattura.

        I totali non vengono ricalcolati: righe e importi non sono
        modificabili da questo percorso.

        Raises:
            NotFoundError: fattura non trovata
            InvalidOperationError: fattura già pagata
            BusinessValidationError: date non coerenti
        """
        invoice = await self.get_by_id(db, tenant_id, invoice_id)

        if invoice.is_paid:
            raise InvalidOperationError(
                f"La fattura {invoice.invoice_number} è pagata e non può essere modificata"
            )

        update_data = data.model_dump(exclude_unset=True)

        if "custom_template_id" in update_data and update_data["custom_template_id"] is not None:
            await self._check_template(db, tenant_id, update_data["custom_template_id"])

        issue_date = update_data.get("issue_date") or invoice.issue_date
        due_date = update_data.get("due_date") or invoice.due_date
        if "issue_date" in update_data or "due_date" in update_data:
            tenant = await self._get_tenant(db, tenant_id)
            self._validate_due_date(tenant, issue_date, due_date)

        for field, value in update_data.items():
            if field in ("issue_date", "due_date", "layout_id", "currency") and value is None:
                continue
            setattr(invoice, field, value)

        await db.commit()
        logger.info(f"Fattura {invoice.invoice_number} aggiornata: {sorted(update_data)}")

        return await self.get_by_id(db, tenant_id, invoice_id)

    async def set_status(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
        new_status: str,
    ) -> Invoice:
        """
        Imposta lo stato della fattura.

        Vale solo l'appartenenza all'enum: qualsiasi transizione è ammessa
        (anche draft → paid senza pagamenti). Imposta sent_at quando la
        fattura diventa 'sent' e paid_date quando diventa 'paid'.

        Raises:
            BusinessValidationError: stato non valido
            NotFoundError: fattura non trovata
        """
        try:
            status = InvoiceStatus(new_status)
        except ValueError:
            raise BusinessValidationError(
                f"Stato non valido: {new_status}. "
                f"Valori ammessi: {', '.join(s.value for s in InvoiceStatus)}",
                error_code="INVALID_STATUS",
            )

        invoice = await self.get_by_id(db, tenant_id, invoice_id)
        previous = invoice.status

        invoice.status = status.value
        if status == InvoiceStatus.SENT:
            invoice.sent_at = utcnow()
        elif status == InvoiceStatus.PAID and invoice.paid_date is None:
            invoice.paid_date = date.today()

        await db.commit()
        logger.info(f"Fattura {invoice.invoice_number}: stato {previous} → {status.value}")

        return await self.get_by_id(db, tenant_id, invoice_id)

    async def mark_pdf_generated(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
        watermarked: bool,
    ) -> Invoice:
        """Registra i metadati dell'ultima generazione PDF (solo timestamp e flag)."""
        invoice = await self.get_by_id(db, tenant_id, invoice_id)
        invoice.pdf_generated_at = utcnow()
        invoice.pdf_watermarked = watermarked
        await db.commit()
        return await self.get_by_id(db, tenant_id, invoice_id)

    async def mark_email_sent(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
        pdf_watermarked: Optional[bool] = None,
    ) -> Invoice:
        """
        Registra l'avvenuto invio via email.

        Una bozza passa a 'sent'; gli altri stati restano invariati
        (una fattura pagata reinviata resta pagata). Con pdf_watermarked
        valorizzato registra anche la generazione del PDF allegato.
        """
        invoice = await self.get_by_id(db, tenant_id, invoice_id)
        now = utcnow()

        invoice.email_sent_at = now
        if invoice.status == InvoiceStatus.DRAFT.value:
            invoice.status = InvoiceStatus.SENT.value
            invoice.sent_at = now
        if pdf_watermarked is not None:
            invoice.pdf_generated_at = now
            invoice.pdf_watermarked = pdf_watermarked

        await db.commit()
        logger.info(f"Fattura {invoice.invoice_number} inviata via email")
        return await self.get_by_id(db, tenant_id, invoice_id)

    # ------------------------------------------------------------
    # Eliminazione e duplicazione
    # ------------------------------------------------------------

    async def delete(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> None:
        """
        Elimina logicamente una fattura (deleted_at).

        Il numero resta occupato e non verrà riassegnato.
        """
        invoice = await self.get_by_id(db, tenant_id, invoice_id)
        invoice.deleted_at = utcnow()
        await db.commit()
        logger.info(f"Fattura {invoice.invoice_number} eliminata (soft delete)")

    async def duplicate(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> Invoice:
        """
        Duplica una fattura come nuova bozza.

        Copia righe, importi e snapshot; assegna un nuovo numero,
        emissione oggi e scadenza a 30 giorni. Pagamenti e metadati
        PDF/email non vengono copiati.
        """
        original = await self.get_by_id(db, tenant_id, invoice_id)

        issue_date = date.today()
        due_date = issue_date + timedelta(days=DUPLICATE_DUE_DAYS)
        lines = [
            {
                "description": item.description,
                "quantity": item.quantity,
                "rate": item.rate,
                "amount": item.amount,
                "taxable": item.taxable,
                "tax_rate": item.tax_rate,
                "tax_amount": item.tax_amount,
                "position": item.position,
            }
            for item in original.items
        ]

        def build(invoice_number: str) -> Invoice:
            invoice = Invoice(
                tenant_id=tenant_id,
                invoice_number=invoice_number,
                type=original.type,
                status=InvoiceStatus.DRAFT.value,
                issue_date=issue_date,
                due_date=due_date,
                vendor_id=original.vendor_id,
                vendor_snapshot=dict(original.vendor_snapshot or {}),
                created_by=user_id,
                subtotal=original.subtotal,
                tax_amount=original.tax_amount,
                discount_amount=original.discount_amount,
                discount_type=original.discount_type,
                total=original.total,
                amount_paid=ZERO,
                balance_due=original.total,
                currency=original.currency,
                layout_id=original.layout_id,
                custom_template_id=original.custom_template_id,
                internal_notes=original.internal_notes,
                client_notes=original.client_notes,
                tags=list(original.tags or []),
            )
            for line in lines:
                invoice.items.append(InvoiceItem(**line))
            return invoice

        duplicate = await self._insert_numbered(db, tenant_id, build)
        await self._increment_usage(db, tenant_id)
        await db.commit()

        logger.info(f"Fattura duplicata: {original.invoice_number} → {duplicate.invoice_number}")
        return await self.get_by_id(db, tenant_id, duplicate.id)

    # ------------------------------------------------------------
    # Statistiche
    # ------------------------------------------------------------

    async def get_dashboard_stats(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
    ) -> DashboardStats:
        """
        Statistiche aggregate delle fatture attive del tenant.

        - total_invoices / total_revenue su tutte le fatture non eliminate
        - outstanding_amount: somma dei residui delle fatture sent/viewed/overdue
        - by_status: conteggio e totale per stato
        """
        base = and_(Invoice.tenant_id == tenant_id, Invoice.deleted_at.is_(None))

        by_status_stmt = (
            select(Invoice.status, func.count(Invoice.id), func.coalesce(func.sum(Invoice.total), 0))
            .where(base)
            .group_by(Invoice.status)
            .order_by(Invoice.status)
        )
        rows = (await db.execute(by_status_stmt)).all()

        by_status = [
            StatusBreakdown(status=row[0], count=row[1], total_amount=quantize_money(Decimal(str(row[2]))))
            for row in rows
        ]

        outstanding_stmt = select(func.coalesce(func.sum(Invoice.balance_due), 0)).where(
            base,
            Invoice.status.in_(OUTSTANDING_STATUSES),
        )
        outstanding = (await db.execute(outstanding_stmt)).scalar() or 0

        return DashboardStats(
            total_invoices=sum(b.count for b in by_status),
            total_revenue=quantize_money(sum((b.total_amount for b in by_status), ZERO)),
            outstanding_amount=quantize_money(Decimal(str(outstanding))),
            by_status=by_status,
        )

    # ------------------------------------------------------------
    # Helper
    # ------------------------------------------------------------

    async def _get_tenant(self, db: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
        tenant = await db.get(Tenant, tenant_id)
        if tenant is None or tenant.is_deleted:
            raise NotFoundError(f"Tenant {tenant_id} non trovato")
        return tenant

    async def _get_vendor(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
    ) -> Vendor:
        stmt = select(Vendor).where(
            Vendor.id == vendor_id,
            Vendor.tenant_id == tenant_id,
            Vendor.deleted_at.is_(None),
        )
        vendor = (await db.execute(stmt)).scalar_one_or_none()
        if not vendor:
            raise NotFoundError(f"Vendor {vendor_id} non trovato")
        return vendor

    async def _check_template(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> None:
        """Il template deve essere un preset pubblico o un custom del tenant."""
        stmt = select(InvoiceTemplate.id).where(
            InvoiceTemplate.id == template_id,
            or_(
                and_(InvoiceTemplate.type == "preset", InvoiceTemplate.is_public.is_(True)),
                InvoiceTemplate.tenant_id == tenant_id,
            ),
        )
        if (await db.execute(stmt)).scalar_one_or_none() is None:
            raise NotFoundError(f"Template {template_id} non trovato")

    @staticmethod
    def _validate_due_date(tenant: Tenant, issue_date: date, due_date: date) -> None:
        """Scadenza non precedente all'emissione e entro il limite del tenant."""
        if due_date < issue_date:
            raise BusinessValidationError(
                "La data di scadenza non può essere precedente alla data di emissione"
            )
        max_days = tenant.max_due_date_days
        if max_days and (due_date - issue_date).days > max_days:
            raise BusinessValidationError(
                f"La scadenza supera il limite di {max_days} giorni dalla data di emissione",
                extra={"max_due_date_days": max_days},
            )
