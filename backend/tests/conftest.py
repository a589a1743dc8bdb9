"""
Pytest configuration and fixtures.

I service girano su un database SQLite in memoria (aiosqlite) con lo
schema creato da Base.metadata. SQLite ignora FOR UPDATE ma applica i
vincoli CHECK e UNIQUE, sufficienti per verificare il ledger.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.database import build_engine, build_session_factory, get_db, reset_schema
from invoicing.main import app
from invoicing.models import Tenant, Vendor
from invoicing.schemas.invoice import InvoiceCreate, InvoiceItemCreate
from invoicing.services.email_service import MailTransport, OutgoingEmail
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.template_service import TemplateService


# ============================================================
# Fixtures Database
# ============================================================


@pytest.fixture
async def engine():
    """Engine SQLite in memoria condiviso tra sessioni (StaticPool)."""
    engine = build_engine("sqlite+aiosqlite://")
    await reset_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessione database per un singolo test."""
    async with session_factory() as session:
        yield session


# ============================================================
# Fixtures Dati
# ============================================================


async def make_tenant(db: AsyncSession, **kwargs) -> Tenant:
    """Crea un tenant con impostazioni di default."""
    tenant = Tenant(
        company_name=kwargs.pop("company_name", "Acme Srl"),
        owner_email=kwargs.pop("owner_email", f"owner-{uuid.uuid4().hex[:8]}@acme.com"),
        subscription_tier=kwargs.pop("subscription_tier", "pro"),
        default_currency=kwargs.pop("default_currency", "USD"),
        invoice_number_prefix=kwargs.pop("invoice_number_prefix", "INV-"),
        invoice_number_start=kwargs.pop("invoice_number_start", 1000),
        **kwargs,
    )
    db.add(tenant)
    await db.commit()
    return tenant


async def make_vendor(db: AsyncSession, tenant: Tenant, **kwargs) -> Vendor:
    """Crea un vendor attivo per il tenant."""
    vendor = Vendor(
        tenant_id=tenant.id,
        company_name=kwargs.pop("company_name", "Globex Corporation"),
        email=kwargs.pop("email", "billing@globex.com"),
        header=kwargs.pop("header", "Globex Corporation - Accounts Payable"),
        footer=kwargs.pop("footer", "Thank you for your business"),
        address=kwargs.pop("address", {"street": "1 Main St", "city": "Springfield", "country": "US"}),
        created_by=kwargs.pop("created_by", uuid.uuid4()),
        **kwargs,
    )
    db.add(vendor)
    await db.commit()
    return vendor


def scenario_invoice_data(**kwargs) -> InvoiceCreate:
    """Due righe tassate al 10%: subtotal 4000, imposta 400, totale 4400."""
    data = {
        "items": [
            InvoiceItemCreate(description="Consulting", quantity=Decimal("20"), rate=Decimal("150"),
                              taxable=True, tax_rate=Decimal("10")),
            InvoiceItemCreate(description="Support", quantity=Decimal("10"), rate=Decimal("100"),
                              taxable=True, tax_rate=Decimal("10")),
        ],
        "issue_date": date(2026, 1, 10),
        "due_date": date(2026, 2, 9),
    }
    data.update(kwargs)
    return InvoiceCreate(**data)


@pytest.fixture
async def tenant(db) -> Tenant:
    return await make_tenant(db)


@pytest.fixture
async def other_tenant(db) -> Tenant:
    return await make_tenant(db, company_name="Initech", invoice_number_prefix="INI-")


@pytest.fixture
async def vendor(db, tenant) -> Vendor:
    return await make_vendor(db, tenant)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def invoice_service() -> InvoiceService:
    return InvoiceService()


@pytest.fixture
async def scenario_invoice(db, tenant, vendor, user_id, invoice_service):
    """Fattura da 4400 in stato draft."""
    return await invoice_service.create(
        db, tenant.id, user_id, scenario_invoice_data(vendor_id=vendor.id)
    )


@pytest.fixture
async def presets(db):
    """Preset di sistema inseriti nel database."""
    await TemplateService().seed_presets(db)


class RecordingTransport(MailTransport):
    """Trasporto email in memoria: registra i messaggi senza inviarli."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.sent: list[OutgoingEmail] = []
        self.error = error

    async def send(self, email: OutgoingEmail) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(email)
        return f"msg_{len(self.sent)}"


# ============================================================
# Fixtures HTTP
# ============================================================


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Client HTTP sull'app con get_db puntato al database di test."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(tenant, user_id) -> dict[str, str]:
    return {"X-Tenant-ID": str(tenant.id), "X-User-ID": str(user_id)}
