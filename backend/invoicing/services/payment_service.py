"""
Service Layer per il ledger pagamenti
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Ogni inserimento o eliminazione di un pagamento aggiorna nella stessa
transazione amount_paid, balance_due e status della fattura. La riga
fattura viene letta con SELECT ... FOR UPDATE: due pagamenti concorrenti
sulla stessa fattura sono serializzati e il secondo vede il residuo
aggiornato dal primo. I vincoli CHECK su amount_paid restano come
ultima difesa al commit.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import (
    AmountExceedsDueError,
    InvalidAmountError,
    NotFoundError,
)
from invoicing.models import Invoice, Payment
from invoicing.schemas.invoice import InvoiceStatus
from invoicing.schemas.payment import (
    InvoicePayments,
    PaymentCreate,
    PaymentSummary,
    TenantPaymentList,
    TenantPaymentStats,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


class PaymentService:
    """
    Service per la registrazione e lo storno dei pagamenti.

    Le precondizioni sono verificate in quest'ordine (vince il primo errore):
    1. la fattura esiste e appartiene al tenant → NotFoundError
    2. amount > 0 → InvalidAmountError
    3. amount <= balance_due letto sotto lock → AmountExceedsDueError
    """

    async def _lock_invoice(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> Invoice:
        """
        Rilegge la fattura con lock di riga per la durata della transazione.

        populate_existing garantisce che i valori in memoria siano quelli
        appena letti e non una copia già presente nella sessione.
        """
        stmt = (
            select(Invoice)
            .where(
                Invoice.id == invoice_id,
                Invoice.tenant_id == tenant_id,
                Invoice.deleted_at.is_(None),
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invoice = (await db.execute(stmt)).scalar_one_or_none()
        if not invoice:
            raise NotFoundError(f"Fattura {invoice_id} non trovata")
        return invoice

    @staticmethod
    def _normalize_amount(raw: Decimal) -> Optional[Decimal]:
        """
        Arrotonda l'importo al centesimo.

        Ritorna None se l'importo non è rappresentabile con due decimali
        (es. 1e30): nessuna fattura può avere un residuo così grande.

        Raises:
            InvalidAmountError: importo nullo o negativo dopo l'arrotondamento
        """
        if raw.is_nan() or raw <= ZERO:
            raise InvalidAmountError(
                f"L'importo del pagamento deve essere positivo (ricevuto {raw})"
            )
        if raw.is_infinite():
            return None
        try:
            amount = raw.quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None
        if amount <= ZERO:
            raise InvalidAmountError(
                f"L'importo del pagamento deve essere positivo (ricevuto {raw})"
            )
        return amount

    async def record_payment(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
        data: PaymentCreate,
        recorded_by: uuid.UUID,
    ) -> tuple[Payment, Invoice]:
        """
        Registra un pagamento su una fattura.

        Effetto (atomico):
        - inserisce il pagamento
        - amount_paid += amount
        - balance_due = total - amount_paid
        - status = 'paid' (e paid_date) se balance_due <= 0

        Args:
            db: Sessione database
            tenant_id: UUID del tenant
            invoice_id: UUID della fattura
            data: Dati del pagamento
            recorded_by: UUID dell'utente che registra

        Returns:
            tuple: (pagamento creato, fattura aggiornata)

        Raises:
            NotFoundError: fattura non trovata
            InvalidAmountError: importo nullo o negativo
            AmountExceedsDueError: importo superiore al residuo
        """
        try:
            invoice = await self._lock_invoice(db, tenant_id, invoice_id)

            amount = self._normalize_amount(data.amount)
            if amount is None or amount > invoice.balance_due:
                raise AmountExceedsDueError(
                    f"L'importo del pagamento ({data.amount}) supera il residuo da pagare "
                    f"({invoice.balance_due})",
                    extra={"balance_due": str(invoice.balance_due)},
                )

            payment_date = data.payment_date or date.today()
            payment = Payment(
                invoice_id=invoice.id,
                tenant_id=tenant_id,
                amount=amount,
                payment_date=payment_date,
                payment_method=data.payment_method.value,
                reference_number=data.reference_number,
                notes=data.notes,
                recorded_by=recorded_by,
            )
            db.add(payment)

            invoice.amount_paid = invoice.amount_paid + amount
            invoice.balance_due = invoice.total - invoice.amount_paid
            if invoice.balance_due <= ZERO:
                invoice.status = InvoiceStatus.PAID.value
                invoice.paid_date = payment_date

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(payment)
        await db.refresh(invoice)

        logger.info(
            f"Pagamento {payment.id} registrato su fattura {invoice.invoice_number}: "
            f"{amount} {invoice.currency} (residuo {invoice.balance_due}, stato {invoice.status})"
        )
        return payment, invoice

    async def delete_payment(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        payment_id: uuid.UUID,
    ) -> Invoice:
        """
        Elimina un pagamento e ne storna l'effetto sulla fattura.

        Effetto (atomico):
        - elimina il pagamento
        - amount_paid = max(0, amount_paid - amount)
        - balance_due = total - amount_paid
        - se la fattura era 'paid' e torna un residuo, status = 'sent'

        Raises:
            NotFoundError: pagamento o fattura associata non trovati
        """
        try:
            stmt = select(Payment).where(
                Payment.id == payment_id,
                Payment.tenant_id == tenant_id,
            )
            payment = (await db.execute(stmt)).scalar_one_or_none()
            if not payment:
                raise NotFoundError(f"Pagamento {payment_id} non trovato")

            invoice = await self._lock_invoice(db, tenant_id, payment.invoice_id)

            # Riletto sotto lock: uno storno concorrente può averlo già eliminato
            locked_stmt = (
                stmt.with_for_update().execution_options(populate_existing=True)
            )
            payment = (await db.execute(locked_stmt)).scalar_one_or_none()
            if not payment:
                raise NotFoundError(f"Pagamento {payment_id} non trovato")
            amount = payment.amount

            result = await db.execute(
                delete(Payment)
                .where(Payment.id == payment_id, Payment.tenant_id == tenant_id)
            )
            if result.rowcount != 1:
                raise NotFoundError(f"Pagamento {payment_id} non trovato")

            invoice.amount_paid = max(ZERO, invoice.amount_paid - amount)
            invoice.balance_due = invoice.total - invoice.amount_paid
            if invoice.is_paid and invoice.balance_due > ZERO:
                invoice.status = InvoiceStatus.SENT.value
                invoice.paid_date = None

            await db.commit()
        except Exception:
            await db.rollback()
            raise

        await db.refresh(invoice)

        logger.info(
            f"Pagamento {payment_id} eliminato, stornati {amount} su fattura "
            f"{invoice.invoice_number} (residuo {invoice.balance_due}, stato {invoice.status})"
        )
        return invoice

    async def list_payments(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        invoice_id: uuid.UUID,
    ) -> InvoicePayments:
        """
        Pagamenti di una fattura dal più recente, con riepilogo.

        Il riepilogo è letto dai campi della fattura, non ricalcolato
        sommando i pagamenti.

        Raises:
            NotFoundError: fattura non trovata
        """
        stmt = select(Invoice).where(
            Invoice.id == invoice_id,
            Invoice.tenant_id == tenant_id,
            Invoice.deleted_at.is_(None),
        )
        invoice = (await db.execute(stmt)).scalar_one_or_none()
        if not invoice:
            raise NotFoundError(f"Fattura {invoice_id} non trovata")

        payments_stmt = (
            select(Payment)
            .where(Payment.invoice_id == invoice_id, Payment.tenant_id == tenant_id)
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
        )
        payments = (await db.execute(payments_stmt)).scalars().all()

        return InvoicePayments(
            payments=list(payments),
            summary=PaymentSummary(
                total_paid=invoice.amount_paid,
                total_due=invoice.balance_due,
                invoice_total=invoice.total,
                payment_count=len(payments),
            ),
        )

    async def list_tenant_payments(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        payment_method: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> TenantPaymentList:
        """
        Lista paginata dei pagamenti del tenant con statistiche.

        Le statistiche (totale, numero, media) sono calcolate sull'intero
        insieme filtrato, non sulla sola pagina.
        """
        conditions = [Payment.tenant_id == tenant_id]
        if payment_method:
            conditions.append(Payment.payment_method == payment_method)
        if from_date:
            conditions.append(Payment.payment_date >= from_date)
        if to_date:
            conditions.append(Payment.payment_date <= to_date)
        if min_amount is not None:
            conditions.append(Payment.amount >= min_amount)
        if max_amount is not None:
            conditions.append(Payment.amount <= max_amount)

        stats_stmt = select(
            func.count(Payment.id),
            func.coalesce(func.sum(Payment.amount), 0),
            func.avg(Payment.amount),
        ).where(and_(*conditions))
        count, total_amount, avg_amount = (await db.execute(stats_stmt)).one()

        stmt = (
            select(Payment)
            .where(and_(*conditions))
            .order_by(Payment.payment_date.desc(), Payment.created_at.desc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        payments = (await db.execute(stmt)).scalars().all()

        total_pages = (count + per_page - 1) // per_page if count > 0 else 1

        return TenantPaymentList(
            items=list(payments),
            total=count,
            page=page,
            per_page=per_page,
            total_pages=total_pages,
            summary=TenantPaymentStats(
                total_payments=Decimal(str(total_amount)).quantize(CENT, rounding=ROUND_HALF_UP),
                payment_count=count,
                average_payment=(
                    Decimal(str(avg_amount)).quantize(CENT, rounding=ROUND_HALF_UP)
                    if avg_amount is not None
                    else ZERO.quantize(CENT)
                ),
            ),
        )
