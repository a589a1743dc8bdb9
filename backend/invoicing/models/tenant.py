"""
Modello SQLAlchemy per il Tenant
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Il tenant è l'azienda cliente della piattaforma e l'unità di
isolamento dei dati: ogni altra entità gli appartiene.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from invoicing.models import Base
from invoicing.models.mixins import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Tenant(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Modello per i tenant (aziende).

    Attributes:
        id: UUID primary key
        company_name: Ragione sociale
        owner_email: Email del proprietario dell'account
        subscription_tier: Piano (free, pro, enterprise)
        branding: Dati di intestazione (indirizzo, telefono, sito, partita IVA, firma)
        payment_details: Coordinate bancarie di default
        default_currency: Valuta di default delle fatture
        invoice_number_prefix: Prefisso numerazione fatture (default INV-)
        invoice_number_start: Primo numero della sequenza (default 1000)
        default_payment_terms: Termini di pagamento stampati in fattura
        max_due_date_days: Limite massimo in giorni per la scadenza (None = nessun limite)
        invoices_this_month: Contatore di utilizzo (non critico)
    """

    __tablename__ = "tenants"

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    subscription_tier: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="free",
        doc="Piano di sottoscrizione: free, pro, enterprise",
    )

    branding: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payment_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    # ------------------------------------------------------------
    # Impostazioni fatturazione
    # ------------------------------------------------------------
    default_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    invoice_number_prefix: Mapped[str] = mapped_column(String(20), nullable=False, default="INV-")
    invoice_number_start: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)
    default_payment_terms: Mapped[str] = mapped_column(String(100), nullable=False, default="Net 30")
    max_due_date_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    invoices_this_month: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "subscription_tier IN ('free', 'pro', 'enterprise')",
            name="ck_tenants_subscription_tier",
        ),
        CheckConstraint("invoice_number_start >= 0", name="ck_tenants_invoice_number_start"),
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, company={self.company_name}, tier={self.subscription_tier})>"
