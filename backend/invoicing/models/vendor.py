"""
Modello SQLAlchemy per i Fornitori/Clienti
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Il vendor è la controparte di fatturazione. Le fatture ne salvano
una copia (snapshot) al momento della creazione.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from invoicing.models import Base
from invoicing.models.mixins import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Vendor(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Modello per i fornitori/clienti del tenant.

    Attributes:
        tenant_id: UUID del tenant proprietario
        company_name: Ragione sociale
        contact_person: Referente
        email: Email (unica per tenant tra i vendor attivi)
        phone: Telefono
        address: Indirizzo strutturato (street, city, state, country, postal_code)
        payment_details: Coordinate di pagamento
        tax_id: Partita IVA / Tax ID
        website: Sito web
        signature_url: URL firma digitale
        header: Intestazione manuale stampata in fattura
        footer: Piè di pagina manuale stampato in fattura
        notes: Note interne
        tags: Etichette libere
        created_by: UUID dell'utente che ha creato il record
    """

    __tablename__ = "vendors"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_person: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    payment_details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    tax_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    signature_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    header: Mapped[str] = mapped_column(Text, nullable=False)
    footer: Mapped[str] = mapped_column(Text, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    __table_args__ = (
        Index("ix_vendors_tenant_company", "tenant_id", "company_name"),
        Index("ix_vendors_tenant_email", "tenant_id", "email"),
    )

    def to_snapshot(self) -> dict[str, Any]:
        """
        Copia per valore dei dati da congelare nella fattura.

        Le modifiche successive al vendor non alterano le fatture emesse.
        """
        return {
            "company_name": self.company_name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": dict(self.address or {}),
            "tax_id": self.tax_id,
            "website": self.website,
            "signature_url": self.signature_url,
            "payment_details": dict(self.payment_details or {}),
            "header": self.header,
            "footer": self.footer,
        }

    def __repr__(self) -> str:
        return f"<Vendor(id={self.id}, company={self.company_name}, email={self.email})>"
