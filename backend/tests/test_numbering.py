"""
Tests per la numerazione fatture.
"""

import uuid
from datetime import timedelta

import pytest

from invoicing.core.exceptions import NotFoundError
from invoicing.models.mixins import utcnow
from invoicing.services.numbering_service import (
    InvoiceNumberService,
    format_invoice_number,
    parse_invoice_number,
)

from conftest import make_tenant, scenario_invoice_data


class TestFormatAndParse:
    """Tests for the pure helpers."""

    def test_format_pads(self):
        assert format_invoice_number("INV-", 7, padding=4) == "INV-0007"
        assert format_invoice_number("INV-", 1000, padding=4) == "INV-1000"

    def test_format_does_not_truncate(self):
        assert format_invoice_number("INV-", 123456, padding=4) == "INV-123456"

    def test_parse_with_prefix(self):
        assert parse_invoice_number("INV-1041", "INV-") == 1041

    def test_parse_leading_digits_only(self):
        assert parse_invoice_number("INV-1041-A", "INV-") == 1041

    def test_parse_unparseable(self):
        """Test prefisso cambiato: nessun intero leggibile."""
        assert parse_invoice_number("OLD-ABC", "INV-") is None


class TestAllocate:
    """Tests for InvoiceNumberService.allocate."""

    async def test_first_number_uses_start(self, db, tenant):
        number = await InvoiceNumberService().allocate(db, tenant.id)
        assert number == "INV-1000"

    async def test_increments_last(self, db, tenant, user_id, invoice_service):
        first = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        second = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())

        assert first.invoice_number == "INV-1000"
        assert second.invoice_number == "INV-1001"
        assert await InvoiceNumberService().allocate(db, tenant.id) == "INV-1002"

    async def test_numbers_per_tenant(self, db, tenant, other_tenant, user_id, invoice_service):
        """Test ogni tenant ha la propria sequenza."""
        a = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        b = await invoice_service.create(db, other_tenant.id, user_id, scenario_invoice_data())

        assert a.invoice_number == "INV-1000"
        assert b.invoice_number == "INI-1000"

    async def test_deleted_numbers_not_reused(self, db, tenant, user_id, invoice_service):
        first = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        await invoice_service.delete(db, tenant.id, first.id)

        second = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        assert second.invoice_number == "INV-1001"

    async def test_prefix_change_restarts_from_start(self, db, tenant, user_id, invoice_service):
        await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())

        tenant.invoice_number_prefix = "FAT-"
        tenant.invoice_number_start = 1
        await db.commit()

        assert await InvoiceNumberService().allocate(db, tenant.id) == "FAT-0001"

    async def test_latest_by_creation_time(self, db, tenant, user_id, invoice_service):
        """Test conta l'ultima fattura creata, non il numero più alto."""
        first = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        first.invoice_number = "INV-5000"
        first.created_at = utcnow() - timedelta(days=1)
        await db.commit()

        latest = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        assert latest.invoice_number == "INV-5001"

        latest.invoice_number = "INV-2000"
        await db.commit()

        assert await InvoiceNumberService().allocate(db, tenant.id) == "INV-2001"

    async def test_unknown_tenant(self, db):
        with pytest.raises(NotFoundError):
            await InvoiceNumberService().allocate(db, uuid.uuid4())

    async def test_custom_start(self, db, user_id, invoice_service):
        tenant = await make_tenant(db, invoice_number_prefix="2026/", invoice_number_start=1)
        invoice = await invoice_service.create(db, tenant.id, user_id, scenario_invoice_data())
        assert invoice.invoice_number == "2026/0001"
