"""
Modello SQLAlchemy per i template di fattura
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from invoicing.models import Base
from invoicing.models.mixins import TimestampMixin, UUIDMixin


class InvoiceTemplate(Base, UUIDMixin, TimestampMixin):
    """
    Configurazione grafica di una fattura (preset o personalizzata).

    Non contiene dati finanziari: è letta solo dal renderer.
    Al massimo un template custom per tenant può avere is_default=True;
    il vincolo è applicato in scrittura dal TemplateService.

    Attributes:
        tenant_id: UUID del tenant (NULL per i preset di sistema)
        name: Nome del template
        type: preset, custom
        is_default: Template di default del tenant
        is_public: Visibile e duplicabile da tutti i tenant
        config: Fonts, colori, layout, header, tabella, footer
        usage_count: Numero di rendering effettuati
        last_used_at: Ultimo rendering
        created_by: UUID dell'utente creatore
    """

    __tablename__ = "invoice_templates"

    tenant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="custom")
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    config: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    __table_args__ = (
        Index("ix_invoice_templates_tenant_default", "tenant_id", "is_default"),
        CheckConstraint("type IN ('preset', 'custom')", name="ck_invoice_templates_type"),
    )

    def __repr__(self) -> str:
        return f"<InvoiceTemplate(id={self.id}, name={self.name}, type={self.type})>"
