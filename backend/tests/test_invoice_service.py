"""
Tests per InvoiceService.

Verificano calcolo dei totali, snapshot del vendor, stati,
isolamento tra tenant, duplicazione e numerazione con retry.
"""

import uuid
from datetime import date, timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select

from invoicing.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    InvalidOperationError,
    NotFoundError,
)
from invoicing.models import Invoice, Tenant
from invoicing.schemas.invoice import (
    InvoiceItemCreate,
    InvoiceStatus,
    InvoiceUpdate,
    VendorSnapshot,
)
from invoicing.schemas.payment import PaymentCreate, PaymentMethod
from invoicing.schemas.vendor import VendorUpdate
from invoicing.services.invoice_service import InvoiceService, quantize_money
from invoicing.services.payment_service import PaymentService
from invoicing.services.vendor_service import VendorService

from conftest import make_tenant, scenario_invoice_data


# ============================================================
# Tests creazione e totali
# ============================================================


class TestCreateInvoice:
    """Tests for invoice creation."""

    async def test_totals_with_tax(self, scenario_invoice):
        """Test 20x150 + 10x100 con imposta 10% per riga."""
        assert scenario_invoice.subtotal == Decimal("4000.00")
        assert scenario_invoice.tax_amount == Decimal("400.00")
        assert scenario_invoice.discount_amount == Decimal("0.00")
        assert scenario_invoice.total == Decimal("4400.00")
        assert scenario_invoice.amount_paid == Decimal("0.00")
        assert scenario_invoice.balance_due == Decimal("4400.00")
        assert scenario_invoice.status == "draft"

    async def test_item_amounts(self, scenario_invoice):
        items = scenario_invoice.items
        assert [i.position for i in items] == [1, 2]
        assert items[0].amount == Decimal("3000.00")
        assert items[0].tax_amount == Decimal("300.00")
        assert items[1].amount == Decimal("1000.00")

    async def test_discount_reduces_total(self, db, tenant, user_id, invoice_service):
        invoice = await invoice_service.create(
            db, tenant.id, user_id,
            scenario_invoice_data(discount_amount=Decimal("400"), discount_type="fixed"),
        )
        assert invoice.total == Decimal("4000.00")
        assert invoice.balance_due == Decimal("4000.00")
        assert invoice.discount_type == "fixed"

    async def test_discount_above_total_rejected(self, db, tenant, user_id, invoice_service):
        with pytest.raises(BusinessValidationError):
            await invoice_service.create(
                db, tenant.id, user_id,
                scenario_invoice_data(discount_amount=Decimal("5000")),
            )

    async def test_total_over_storable_limit(self, db, tenant, user_id, invoice_service):
        """Test totale oltre Numeric(12, 2): AMOUNT_TOO_LARGE e nessuna fattura creata."""
        data = scenario_invoice_data(
            items=[InvoiceItemCreate(quantity=Decimal("100000"), rate=Decimal("1000000000"))]
        )
        with pytest.raises(BusinessValidationError) as exc_info:
            await invoice_service.create(db, tenant.id, user_id, data)
        assert exc_info.value.error_code == "AMOUNT_TOO_LARGE"
        count = (await db.execute(select(func.count(Invoice.id)))).scalar()
        assert count == 0

    def test_unrepresentable_line_rejected(self):
        with pytest.raises(PydanticValidationError):
            InvoiceItemCreate(quantity=Decimal("1"), rate=Decimal("1e30"))

    def test_quantize_money_out_of_scale(self):
        with pytest.raises(BusinessValidationError) as exc_info:
            quantize_money(Decimal("1e30"))
        assert exc_info.value.error_code == "AMOUNT_TOO_LARGE"

    async def test_untaxed_items(self, db, tenant, user_id, invoice_service):
        data = scenario_invoice_data(
            items=[InvoiceItemCreate(quantity=Decimal("3"), rate=Decimal("19.99"))]
        )
        invoice = await invoice_service.create(db, tenant.id, user_id, data)

        assert invoice.items[0].description == "Service"
        assert invoice.subtotal == Decimal("59.97")
        assert invoice.tax_amount == Decimal("0.00")
        assert invoice.total == Decimal("59.97")

    async def test_zero_total_allowed(self, db, tenant, user_id, invoice_service):
        data = scenario_invoice_data(items=[InvoiceItemCreate(rate=Decimal("0"))])
        invoice = await invoice_service.create(db, tenant.id, user_id, data)
        assert invoice.total == Decimal("0.00")

    async def test_sent_status_honoured(self, db, tenant, user_id, invoice_service):
        invoice = await invoice_service.create(
            db, tenant.id, user_id, scenario_invoice_data(status=InvoiceStatus.SENT)
        )
        assert invoice.status == "sent"
        assert invoice.sent_at is not None

    async def test_other_status_becomes_draft(self, db, tenant, user_id, invoice_service):
        invoice = await invoice_service.create(
            db, tenant.id, user_id, scenario_invoice_data(status=InvoiceStatus.PAID)
        )
        assert invoice.status == "draft"
        assert invoice.paid_date is None

    async def test_currency_defaults_to_tenant(self, db, user_id, invoice_service):
        tenant = await make_tenant(db, default_currency="EUR")
        invoice = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        assert invoice.currency == "EUR"

    async def test_due_date_defaults_to_issue_date(self, db, tenant, user_id, invoice_service):
        invoice = await invoice_service.create(
            db, tenant.id, user_id, scenario_invoice_data(due_date=None)
        )
        assert invoice.due_date == invoice.issue_date

    async def test_due_date_beyond_tenant_limit(self, db, user_id, invoice_service):
        tenant = await make_tenant(db, max_due_date_days=15)
        with pytest.raises(BusinessValidationError) as exc_info:
            await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        assert exc_info.value.extra == {"max_due_date_days": 15}

    async def test_due_date_before_issue_rejected_by_schema(self):
        with pytest.raises(ValueError):
            scenario_invoice_data(issue_date=date(2026, 3, 1), due_date=date(2026, 2, 1))

    async def test_usage_counter_incremented(self, db, tenant, user_id, invoice_service):
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())

        counter = (
            await db.execute(select(Tenant.invoices_this_month).where(Tenant.id == tenant.id))
        ).scalar_one()
        assert counter == 2

    async def test_unknown_vendor(self, db, tenant, user_id, invoice_service):
        with pytest.raises(NotFoundError):
            await invoice_service.create(
                db, tenant.id, user_id, scenario_invoice_data(vendor_id=uuid.uuid4())
            )

    async def test_vendor_of_other_tenant(self, db, other_tenant, vendor, user_id, invoice_service):
        with pytest.raises(NotFoundError):
            await invoice_service.create(
                db, other_tenant.id, user_id, scenario_invoice_data(vendor_id=vendor.id)
            )

    async def test_manual_vendor_snapshot(self, db, tenant, user_id, invoice_service):
        snapshot = VendorSnapshot(company_name="Walk-in Customer", email="walkin@example.com")
        invoice = await invoice_service.create(
            db, tenant.id, user_id, scenario_invoice_data(vendor_snapshot=snapshot)
        )
        assert invoice.vendor_id is None
        assert invoice.vendor_snapshot["company_name"] == "Walk-in Customer"


class TestVendorSnapshot:
    """Tests for the snapshot semantics."""

    async def test_snapshot_frozen_at_creation(self, db, tenant, vendor, scenario_invoice, invoice_service):
        """Test le modifiche al vendor non alterano le fatture emesse."""
        await VendorService().update(
            db, tenant.id, vendor.id, VendorUpdate(company_name="Globex International")
        )

        invoice = await invoice_service.get_by_id(db, tenant.id, scenario_invoice.id)
        assert invoice.vendor_snapshot["company_name"] == "Globex Corporation"
        assert invoice.vendor_snapshot["header"] == "Globex Corporation - Accounts Payable"
        assert invoice.vendor_snapshot["address"]["city"] == "Springfield"


# ============================================================
# Tests lettura, isolamento e soft delete
# ============================================================


class TestReadAndIsolation:
    """Tests for tenant scoping."""

    async def test_get_by_id(self, db, tenant, scenario_invoice, invoice_service):
        invoice = await invoice_service.get_by_id(db, tenant.id, scenario_invoice.id)
        assert invoice.invoice_number == "INV-1000"

    async def test_other_tenant_sees_not_found(self, db, other_tenant, scenario_invoice, invoice_service):
        with pytest.raises(NotFoundError):
            await invoice_service.get_by_id(db, other_tenant.id, scenario_invoice.id)

    async def test_other_tenant_cannot_delete(self, db, tenant, other_tenant, scenario_invoice, invoice_service):
        with pytest.raises(NotFoundError):
            await invoice_service.delete(db, other_tenant.id, scenario_invoice.id)
        assert (await invoice_service.get_by_id(db, tenant.id, scenario_invoice.id)).deleted_at is None

    async def test_list_scoped_to_tenant(self, db, tenant, other_tenant, user_id, invoice_service):
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        await invoice_service.create(db, other_tenant.id, user_id, scenario_invoice_data())

        result = await invoice_service.get_all(db, tenant.id)
        assert result.total == 1
        assert result.items[0].invoice_number == "INV-1000"

    async def test_list_filters(self, db, tenant, vendor, user_id, invoice_service):
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data(vendor_id=vendor.id))
        await invoice_service.create(
            db, tenant.id, user_id,
            scenario_invoice_data(status=InvoiceStatus.SENT, issue_date=date(2026, 3, 1), due_date=None),
        )

        assert (await invoice_service.get_all(db, tenant.id, status_filter="sent")).total == 1
        assert (await invoice_service.get_all(db, tenant.id, vendor_id=vendor.id)).total == 1
        assert (await invoice_service.get_all(db, tenant.id, from_date=date(2026, 2, 1))).total == 1
        assert (await invoice_service.get_all(db, tenant.id, search="1001")).total == 1

    async def test_list_pagination(self, db, tenant, user_id, invoice_service):
        for _ in range(3):
            await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())

        page = await invoice_service.get_all(db, tenant.id, page=2, per_page=2)
        assert page.total == 3
        assert page.total_pages == 2
        assert len(page.items) == 1

    async def test_soft_delete(self, db, tenant, scenario_invoice, invoice_service):
        await invoice_service.delete(db, tenant.id, scenario_invoice.id)

        with pytest.raises(NotFoundError):
            await invoice_service.get_by_id(db, tenant.id, scenario_invoice.id)
        assert (await invoice_service.get_all(db, tenant.id)).total == 0

        # La riga resta nel database
        count = (await db.execute(select(func.count(Invoice.id)))).scalar()
        assert count == 1

    async def test_payment_on_deleted_invoice(self, db, tenant, user_id, scenario_invoice, invoice_service):
        await invoice_service.delete(db, tenant.id, scenario_invoice.id)

        with pytest.raises(NotFoundError):
            await PaymentService().record_payment(
                db, tenant.id, scenario_invoice.id,
                PaymentCreate(amount=Decimal("10"), payment_method=PaymentMethod.CASH),
                user_id,
            )


# ============================================================
# Tests aggiornamento e stati
# ============================================================


class TestUpdateAndStatus:
    """Tests for update and set_status."""

    async def test_update_non_financial_fields(self, db, tenant, scenario_invoice, invoice_service):
        updated = await invoice_service.update(
            db, tenant.id, scenario_invoice.id,
            InvoiceUpdate(client_notes="Grazie", tags=["q1"]),
        )
        assert updated.client_notes == "Grazie"
        assert updated.tags == ["q1"]
        assert updated.total == Decimal("4400.00")

    async def test_update_rejects_financial_fields(self):
        with pytest.raises(ValueError):
            InvoiceUpdate(total=Decimal("1"))

    async def test_update_paid_invoice_blocked(self, db, tenant, scenario_invoice, invoice_service):
        await invoice_service.set_status(db, tenant.id, scenario_invoice.id, "paid")

        with pytest.raises(InvalidOperationError):
            await invoice_service.update(
                db, tenant.id, scenario_invoice.id, InvoiceUpdate(client_notes="x")
            )

    async def test_update_due_date_validated(self, db, tenant, scenario_invoice, invoice_service):
        with pytest.raises(BusinessValidationError):
            await invoice_service.update(
                db, tenant.id, scenario_invoice.id,
                InvoiceUpdate(due_date=scenario_invoice.issue_date - timedelta(days=1)),
            )

    async def test_set_status_sent(self, db, tenant, scenario_invoice, invoice_service):
        invoice = await invoice_service.set_status(db, tenant.id, scenario_invoice.id, "sent")
        assert invoice.status == "sent"
        assert invoice.sent_at is not None

    async def test_set_status_permissive(self, db, tenant, scenario_invoice, invoice_service):
        """Test nessun grafo di transizione: draft → paid senza pagamenti è ammesso."""
        invoice = await invoice_service.set_status(db, tenant.id, scenario_invoice.id, "paid")
        assert invoice.status == "paid"
        assert invoice.paid_date == date.today()
        assert invoice.amount_paid == Decimal("0.00")

        invoice = await invoice_service.set_status(db, tenant.id, scenario_invoice.id, "draft")
        assert invoice.status == "draft"

    async def test_set_status_invalid(self, db, tenant, scenario_invoice, invoice_service):
        with pytest.raises(BusinessValidationError) as exc_info:
            await invoice_service.set_status(db, tenant.id, scenario_invoice.id, "archived")
        assert exc_info.value.error_code == "INVALID_STATUS"

    async def test_mark_pdf_generated(self, db, tenant, scenario_invoice, invoice_service):
        invoice = await invoice_service.mark_pdf_generated(
            db, tenant.id, scenario_invoice.id, watermarked=False
        )
        assert invoice.pdf_generated_at is not None
        assert invoice.pdf_watermarked is False
        assert invoice.balance_due == Decimal("4400.00")


# ============================================================
# Tests duplicazione e statistiche
# ============================================================


class TestDuplicateAndStats:
    """Tests for duplicate and dashboard stats."""

    async def test_duplicate(self, db, tenant, user_id, scenario_invoice, invoice_service):
        await PaymentService().record_payment(
            db, tenant.id, scenario_invoice.id,
            PaymentCreate(amount=Decimal("400"), payment_method=PaymentMethod.CASH),
            user_id,
        )

        copy = await invoice_service.duplicate(db, tenant.id, user_id, scenario_invoice.id)

        assert copy.id != scenario_invoice.id
        assert copy.invoice_number == "INV-1001"
        assert copy.status == "draft"
        assert copy.total == Decimal("4400.00")
        assert copy.amount_paid == Decimal("0.00")
        assert copy.balance_due == Decimal("4400.00")
        assert copy.issue_date == date.today()
        assert copy.due_date == date.today() + timedelta(days=30)
        assert len(copy.items) == 2
        assert copy.vendor_snapshot == scenario_invoice.vendor_snapshot

    async def test_dashboard_stats(self, db, tenant, user_id, invoice_service):
        draft = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        sent = await invoice_service.create(
            db, tenant.id, user_id, scenario_invoice_data(status=InvoiceStatus.SENT)
        )
        await PaymentService().record_payment(
            db, tenant.id, sent.id,
            PaymentCreate(amount=Decimal("400"), payment_method=PaymentMethod.BANK_TRANSFER),
            user_id,
        )

        stats = await invoice_service.get_dashboard_stats(db, tenant.id)

        assert stats.total_invoices == 2
        assert stats.total_revenue == Decimal("8800.00")
        assert stats.outstanding_amount == Decimal("4000.00")
        by_status = {b.status.value: b.count for b in stats.by_status}
        assert by_status == {"draft": 1, "sent": 1}
        assert draft.status == "draft"


# ============================================================
# Tests numerazione con retry
# ============================================================


class StaleNumbering:
    """Restituisce sempre lo stesso numero, simulando una creazione concorrente."""

    def __init__(self, numbers):
        self.numbers = list(numbers)
        self.calls = 0

    async def allocate(self, db, tenant_id):
        self.calls += 1
        return self.numbers.pop(0) if len(self.numbers) > 1 else self.numbers[0]


class TestNumberCollision:
    """Tests for the single retry on invoice number collision."""

    async def test_retry_once_then_succeed(self, db, tenant, user_id, invoice_service):
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())

        numbering = StaleNumbering(["INV-1000", "INV-1001"])
        service = InvoiceService(numbering=numbering)
        invoice = await service.create(db, tenant.id, user_id, scenario_invoice_data())

        assert numbering.calls == 2
        assert invoice.invoice_number == "INV-1001"

    async def test_second_collision_raises_conflict(self, db, tenant, user_id, invoice_service):
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())

        service = InvoiceService(numbering=StaleNumbering(["INV-1000"]))
        with pytest.raises(ConflictError) as exc_info:
            await service.create(db, tenant.id, user_id, scenario_invoice_data())

        assert exc_info.value.error_code == "INVOICE_NUMBER_CONFLICT"
        count = (
            await db.execute(select(func.count(Invoice.id)).where(Invoice.tenant_id == tenant.id))
        ).scalar()
        assert count == 1
