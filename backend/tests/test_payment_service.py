"""
Tests per il ledger pagamenti.

Ogni mutazione deve lasciare la fattura coerente:
balance_due = total - amount_paid, 0 <= amount_paid <= total,
amount_paid = somma dei pagamenti registrati.
"""

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import delete, func, select, update

from invoicing.core.exceptions import (
    AmountExceedsDueError,
    InvalidAmountError,
    NotFoundError,
)
from invoicing.models import Invoice, Payment
from invoicing.schemas.invoice import InvoiceStatus
from invoicing.schemas.payment import PaymentCreate, PaymentMethod
from invoicing.services.payment_service import PaymentService

from conftest import scenario_invoice_data


def pay(amount: str, method: PaymentMethod = PaymentMethod.BANK_TRANSFER, **kwargs) -> PaymentCreate:
    return PaymentCreate(amount=Decimal(amount), payment_method=method, **kwargs)


async def assert_ledger_consistent(db, invoice: Invoice) -> None:
    """Verifica gli invarianti tra fattura e pagamenti."""
    paid_sum = (
        await db.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.invoice_id == invoice.id)
        )
    ).scalar()
    assert invoice.balance_due == invoice.total - invoice.amount_paid
    assert Decimal("0") <= invoice.amount_paid <= invoice.total
    assert invoice.amount_paid == Decimal(str(paid_sum)).quantize(Decimal("0.01"))


@pytest.fixture
def payment_service() -> PaymentService:
    return PaymentService()


class TestRecordPayment:
    """Tests for record_payment."""

    async def test_partial_payment(self, db, tenant, user_id, scenario_invoice, payment_service):
        payment, invoice = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("400"), user_id
        )

        assert payment.amount == Decimal("400.00")
        assert payment.recorded_by == user_id
        assert payment.payment_date == date.today()
        assert invoice.amount_paid == Decimal("400.00")
        assert invoice.balance_due == Decimal("4000.00")
        assert invoice.status == "draft"
        await assert_ledger_consistent(db, invoice)

    async def test_partial_payment_keeps_sent(self, db, tenant, user_id, invoice_service, payment_service):
        sent = await invoice_service.create(
            db, tenant.id, user_id, scenario_invoice_data(status=InvoiceStatus.SENT)
        )
        _, invoice = await payment_service.record_payment(db, tenant.id, sent.id, pay("400"), user_id)
        assert invoice.status == "sent"

    async def test_full_payment_marks_paid(self, db, tenant, user_id, scenario_invoice, payment_service):
        await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("400"), user_id)
        _, invoice = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id,
            pay("4000", PaymentMethod.CHECK, payment_date=date(2026, 2, 1)),
            user_id,
        )

        assert invoice.amount_paid == Decimal("4400.00")
        assert invoice.balance_due == Decimal("0.00")
        assert invoice.status == "paid"
        assert invoice.paid_date == date(2026, 2, 1)
        await assert_ledger_consistent(db, invoice)

    async def test_overpayment_rejected(self, db, tenant, user_id, scenario_invoice, payment_service):
        """Test importo oltre il residuo: nessun pagamento creato, fattura invariata."""
        with pytest.raises(AmountExceedsDueError) as exc_info:
            await payment_service.record_payment(
                db, tenant.id, scenario_invoice.id, pay("4500"), user_id
            )

        assert exc_info.value.extra == {"balance_due": "4400.00"}
        count = (await db.execute(select(func.count(Payment.id)))).scalar()
        assert count == 0

        invoice = (await db.execute(select(Invoice).where(Invoice.id == scenario_invoice.id))).scalar_one()
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.balance_due == Decimal("4400.00")
        assert invoice.status == "draft"

    async def test_overpayment_after_partial(self, db, tenant, user_id, scenario_invoice, payment_service):
        await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("4000"), user_id)
        with pytest.raises(AmountExceedsDueError):
            await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("400.01"), user_id)

    @pytest.mark.parametrize("amount", ["0", "-10", "0.001"])
    async def test_invalid_amount(self, db, tenant, user_id, scenario_invoice, payment_service, amount):
        with pytest.raises(InvalidAmountError):
            await payment_service.record_payment(
                db, tenant.id, scenario_invoice.id, pay(amount), user_id
            )

    async def test_missing_invoice_checked_first(self, db, tenant, user_id, payment_service):
        """Test fattura inesistente vince su importo non valido."""
        with pytest.raises(NotFoundError):
            await payment_service.record_payment(db, tenant.id, uuid.uuid4(), pay("-1"), user_id)

    async def test_invalid_amount_checked_before_balance(self, db, tenant, user_id, scenario_invoice,
                                                         payment_service):
        """Test su fattura saldata un importo nullo resta INVALID_AMOUNT."""
        await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("4400"), user_id)
        with pytest.raises(InvalidAmountError):
            await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("0"), user_id)

    async def test_other_tenant_invoice(self, db, other_tenant, user_id, scenario_invoice, payment_service):
        with pytest.raises(NotFoundError):
            await payment_service.record_payment(
                db, other_tenant.id, scenario_invoice.id, pay("10"), user_id
            )

    async def test_amount_quantized(self, db, tenant, user_id, scenario_invoice, payment_service):
        payment, invoice = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("10.005"), user_id
        )
        assert payment.amount == Decimal("10.01")
        assert invoice.balance_due == Decimal("4389.99")

    @pytest.mark.parametrize("amount", ["1e30", "99999999999999999999.99"])
    async def test_huge_amount_exceeds_due(self, db, tenant, user_id, scenario_invoice, payment_service, amount):
        """Test importo non rappresentabile al centesimo: AMOUNT_EXCEEDS_DUE, non un errore interno."""
        with pytest.raises(AmountExceedsDueError) as exc_info:
            await payment_service.record_payment(
                db, tenant.id, scenario_invoice.id, pay(amount), user_id
            )
        assert exc_info.value.extra == {"balance_due": "4400.00"}

    async def test_stale_session_cannot_overpay(self, db, session_factory, tenant, user_id,
                                                scenario_invoice, payment_service):
        """
        Test lettura obsoleta: la sessione B ha caricato la fattura con residuo 4400,
        la sessione A registra 4000; il pagamento di B da 4000 deve essere rifiutato.
        """
        assert scenario_invoice.balance_due == Decimal("4400.00")
        await db.commit()

        async with session_factory() as session_a:
            await payment_service.record_payment(
                session_a, tenant.id, scenario_invoice.id, pay("4000"), user_id
            )

        # La copia in memoria della sessione B non è stata aggiornata
        assert scenario_invoice.balance_due == Decimal("4400.00")

        with pytest.raises(AmountExceedsDueError) as exc_info:
            await payment_service.record_payment(
                db, tenant.id, scenario_invoice.id, pay("4000"), user_id
            )
        assert exc_info.value.extra == {"balance_due": "400.00"}

        invoice = (await db.execute(select(Invoice).where(Invoice.id == scenario_invoice.id))).scalar_one()
        assert invoice.amount_paid == Decimal("4000.00")
        assert invoice.balance_due == Decimal("400.00")
        await assert_ledger_consistent(db, invoice)


class TestDeletePayment:
    """Tests for delete_payment."""

    async def test_delete_reverts_paid_to_sent(self, db, tenant, user_id, scenario_invoice, payment_service):
        await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("400"), user_id)
        second, invoice = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("4000"), user_id
        )
        assert invoice.status == "paid"

        invoice = await payment_service.delete_payment(db, tenant.id, second.id)

        assert invoice.amount_paid == Decimal("400.00")
        assert invoice.balance_due == Decimal("4000.00")
        assert invoice.status == "sent"
        assert invoice.paid_date is None
        await assert_ledger_consistent(db, invoice)

    async def test_delete_keeps_non_paid_status(self, db, tenant, user_id, scenario_invoice, payment_service):
        payment, _ = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("100"), user_id
        )
        invoice = await payment_service.delete_payment(db, tenant.id, payment.id)

        assert invoice.status == "draft"
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.balance_due == Decimal("4400.00")

    async def test_record_then_delete_round_trip(self, db, tenant, user_id, scenario_invoice, payment_service):
        before = (scenario_invoice.amount_paid, scenario_invoice.balance_due)
        payment, _ = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("1234.56"), user_id
        )
        invoice = await payment_service.delete_payment(db, tenant.id, payment.id)

        assert (invoice.amount_paid, invoice.balance_due) == before

    async def test_delete_unknown_payment(self, db, tenant, payment_service):
        with pytest.raises(NotFoundError):
            await payment_service.delete_payment(db, tenant.id, uuid.uuid4())

    async def test_delete_other_tenant_payment(self, db, tenant, other_tenant, user_id,
                                               scenario_invoice, payment_service):
        payment, _ = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("100"), user_id
        )
        with pytest.raises(NotFoundError):
            await payment_service.delete_payment(db, other_tenant.id, payment.id)

    async def test_payment_deleted_concurrently(self, db, tenant, user_id, scenario_invoice,
                                                payment_service, monkeypatch):
        """
        Test doppio storno: un'altra transazione elimina il pagamento e ne storna
        l'importo prima che il lock sulla fattura venga acquisito. Il secondo
        storno deve fallire con NotFound senza sottrarre di nuovo l'importo.
        """
        await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("400"), user_id)
        second, _ = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("4000"), user_id
        )

        original_lock = payment_service._lock_invoice

        async def lock_after_concurrent_delete(session, tenant_id, invoice_id):
            await session.execute(
                delete(Payment)
                .where(Payment.id == second.id)
                .execution_options(synchronize_session=False)
            )
            await session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id)
                .values(
                    amount_paid=Invoice.amount_paid - second.amount,
                    balance_due=Invoice.balance_due + second.amount,
                    status="sent",
                    paid_date=None,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return await original_lock(session, tenant_id, invoice_id)

        monkeypatch.setattr(payment_service, "_lock_invoice", lock_after_concurrent_delete)

        with pytest.raises(NotFoundError):
            await payment_service.delete_payment(db, tenant.id, second.id)

        invoice = (await db.execute(select(Invoice).where(Invoice.id == scenario_invoice.id))).scalar_one()
        assert invoice.amount_paid == Decimal("400.00")
        assert invoice.balance_due == Decimal("4000.00")
        assert invoice.status == "sent"
        await assert_ledger_consistent(db, invoice)

    async def test_delete_twice(self, db, tenant, user_id, scenario_invoice, payment_service):
        """Test secondo storno dello stesso pagamento: NotFound e importi invariati."""
        payment, _ = await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("1000"), user_id
        )
        await payment_service.delete_payment(db, tenant.id, payment.id)

        with pytest.raises(NotFoundError):
            await payment_service.delete_payment(db, tenant.id, payment.id)

        invoice = (await db.execute(select(Invoice).where(Invoice.id == scenario_invoice.id))).scalar_one()
        assert invoice.amount_paid == Decimal("0.00")
        assert invoice.balance_due == Decimal("4400.00")


class TestListPayments:
    """Tests for list_payments and list_tenant_payments."""

    async def test_list_newest_first(self, db, tenant, user_id, scenario_invoice, payment_service):
        await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("100", payment_date=date(2026, 1, 15)), user_id
        )
        await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("200", payment_date=date(2026, 1, 20)), user_id
        )

        result = await payment_service.list_payments(db, tenant.id, scenario_invoice.id)

        assert [p.amount for p in result.payments] == [Decimal("200.00"), Decimal("100.00")]
        assert result.summary.total_paid == Decimal("300.00")
        assert result.summary.total_due == Decimal("4100.00")
        assert result.summary.invoice_total == Decimal("4400.00")
        assert result.summary.payment_count == 2

    async def test_list_is_read_only(self, db, tenant, user_id, scenario_invoice, payment_service):
        await payment_service.record_payment(db, tenant.id, scenario_invoice.id, pay("100"), user_id)

        first = await payment_service.list_payments(db, tenant.id, scenario_invoice.id)
        second = await payment_service.list_payments(db, tenant.id, scenario_invoice.id)
        assert first == second

    async def test_list_unknown_invoice(self, db, tenant, payment_service):
        with pytest.raises(NotFoundError):
            await payment_service.list_payments(db, tenant.id, uuid.uuid4())

    async def test_tenant_payments_with_stats(self, db, tenant, user_id, scenario_invoice, payment_service):
        await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("100", PaymentMethod.CASH), user_id
        )
        await payment_service.record_payment(
            db, tenant.id, scenario_invoice.id, pay("300", PaymentMethod.CREDIT_CARD), user_id
        )

        result = await payment_service.list_tenant_payments(db, tenant.id)
        assert result.total == 2
        assert result.summary.total_payments == Decimal("400.00")
        assert result.summary.average_payment == Decimal("200.00")

        cash = await payment_service.list_tenant_payments(db, tenant.id, payment_method="cash")
        assert cash.total == 1
        assert cash.summary.total_payments == Decimal("100.00")

        large = await payment_service.list_tenant_payments(db, tenant.id, min_amount=Decimal("200"))
        assert [p.amount for p in large.items] == [Decimal("300.00")]

    async def test_tenant_payments_empty(self, db, other_tenant, payment_service):
        result = await payment_service.list_tenant_payments(db, other_tenant.id)
        assert result.total == 0
        assert result.summary.average_payment == Decimal("0.00")
