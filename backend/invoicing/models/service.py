"""
Modelli SQLAlchemy per il Catalogo Servizi
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Il catalogo raccoglie le prestazioni fatturabili del tenant con prezzo
e imposta di default. Un vendor può avere servizi assegnati con prezzo
o imposta personalizzati (VendorServiceAssignment).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from invoicing.models import Base
from invoicing.models.mixins import SoftDeleteMixin, TimestampMixin, UUIDMixin


class Service(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Servizio del catalogo del tenant.

    Attributes:
        tenant_id: UUID del tenant proprietario
        name: Nome del servizio
        description: Descrizione estesa
        category: Categoria (libera, usata per i filtri)
        pricing_type: fixed | hourly | daily
        price: Prezzo unitario di default
        currency: Valuta del prezzo
        taxable: Soggetto a imposta per default
        tax_rate: Aliquota di default (percentuale)
        is_active: Disponibile per nuove fatture
        times_used: Contatore di utilizzo
        created_by: UUID dell'utente che ha creato il servizio
    """

    __tablename__ = "services"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)

    pricing_type: Mapped[str] = mapped_column(String(20), nullable=False, default="fixed")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    __table_args__ = (
        CheckConstraint("pricing_type IN ('fixed', 'hourly', 'daily')", name="ck_services_pricing_type"),
        CheckConstraint("price >= 0", name="ck_services_price"),
        Index("ix_services_tenant_category", "tenant_id", "category"),
        Index("ix_services_tenant_active", "tenant_id", "is_active"),
    )

    @property
    def pricing(self) -> dict[str, Any]:
        return {"type": self.pricing_type, "amount": self.price, "currency": self.currency}

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, name={self.name}, category={self.category})>"


class VendorServiceAssignment(Base, UUIDMixin, TimestampMixin):
    """
    Servizio assegnato a un vendor.

    I campi custom_* sono override: se NULL vale il default del servizio.
    La coppia (vendor, servizio) è unica.
    """

    __tablename__ = "vendor_services"

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("vendors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    service_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("services.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    custom_pricing_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    custom_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    custom_currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    custom_tax_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 2), nullable=True)
    custom_taxable: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    times_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    assigned_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    service: Mapped["Service"] = relationship("Service", lazy="joined")

    __table_args__ = (
        UniqueConstraint("vendor_id", "service_id", name="uq_vendor_services_vendor_service"),
        Index("ix_vendor_services_vendor_active", "vendor_id", "is_active"),
    )

    @property
    def custom_pricing(self) -> Optional[dict[str, Any]]:
        if self.custom_price is None:
            return None
        return {
            "type": self.custom_pricing_type or self.service.pricing_type,
            "amount": self.custom_price,
            "currency": self.custom_currency or self.service.currency,
        }

    def effective_pricing(self) -> dict[str, Any]:
        """Prezzo personalizzato se presente, altrimenti quello del servizio."""
        return self.custom_pricing or self.service.pricing

    def effective_taxable(self) -> bool:
        return self.service.taxable if self.custom_taxable is None else self.custom_taxable

    def effective_tax_rate(self) -> Optional[Decimal]:
        return self.service.tax_rate if self.custom_tax_rate is None else self.custom_tax_rate

    def __repr__(self) -> str:
        return f"<VendorServiceAssignment(vendor={self.vendor_id}, service={self.service_id})>"
