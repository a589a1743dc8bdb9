"""
Modelli SQLAlchemy per la Fatturazione
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Contiene:
- Invoice: Fattura principale (aggregato con totali denormalizzati)
- InvoiceItem: Righe della fattura
- Payment: Pagamenti registrati sulla fattura (ledger)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
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


INVOICE_TYPES = ("invoice", "proforma", "credit_note", "estimate")
INVOICE_STATUSES = ("draft", "sent", "viewed", "paid", "overdue", "canceled")
PAYMENT_METHODS = ("bank_transfer", "credit_card", "check", "cash", "other")


class Invoice(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """
    Modello per le fatture.

    La fattura conserva i propri totali (subtotal, tax_amount, discount_amount,
    total, amount_paid, balance_due) invece di ricalcolarli dalle righe o dai
    pagamenti a ogni lettura. I campi amount_paid/balance_due/status vengono
    modificati solo dal ledger pagamenti, nella stessa transazione che
    inserisce o elimina il pagamento.

    Attributes:
        tenant_id: UUID del tenant proprietario
        invoice_number: Numero fattura (unico per tenant, es. INV-1000)
        type: invoice, proforma, credit_note, estimate
        status: draft, sent, viewed, paid, overdue, canceled
        issue_date: Data emissione
        due_date: Data scadenza
        paid_date: Data di saldo
        sent_at: Data/ora invio
        vendor_id: UUID del vendor di riferimento (opzionale)
        vendor_snapshot: Copia dei dati vendor al momento della creazione
        created_by: UUID dell'utente creatore
        subtotal: Somma degli importi riga
        tax_amount: Somma delle imposte di riga
        discount_amount: Sconto assoluto
        total: subtotal + tax_amount - discount_amount
        amount_paid: Somma dei pagamenti registrati
        balance_due: total - amount_paid
        currency: Valuta ISO
    """

    __tablename__ = "invoices"

    # ------------------------------------------------------------
    # Colonne Identificazione
    # ------------------------------------------------------------
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    invoice_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        doc="Numero fattura progressivo per tenant (prefisso + numero)",
    )

    type: Mapped[str] = mapped_column(String(20), nullable=False, default="invoice")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")

    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ------------------------------------------------------------
    # Controparte
    # ------------------------------------------------------------
    vendor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("vendors.id", ondelete="SET NULL"),
        nullable=True,
    )

    vendor_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        doc="Copia per valore dei dati vendor al momento della creazione",
    )

    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # ------------------------------------------------------------
    # Colonne Importi
    # ------------------------------------------------------------
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0")
    )
    discount_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    balance_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")

    # ------------------------------------------------------------
    # Layout e documento
    # ------------------------------------------------------------
    layout_id: Mapped[str] = mapped_column(String(100), nullable=False, default="modern-minimal")
    custom_template_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("invoice_templates.id", ondelete="SET NULL"),
        nullable=True,
    )

    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pdf_watermarked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # ------------------------------------------------------------
    # Note
    # ------------------------------------------------------------
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    client_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    items: Mapped[List["InvoiceItem"]] = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceItem.position",
        doc="Righe della fattura",
    )

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoices_tenant_number"),
        Index("ix_invoices_tenant_status", "tenant_id", "status"),
        Index("ix_invoices_tenant_vendor", "tenant_id", "vendor_id"),
        Index("ix_invoices_tenant_due_date", "tenant_id", "due_date"),
        Index("ix_invoices_tenant_issue_date", "tenant_id", "issue_date"),
        Index("ix_invoices_tenant_created_at", "tenant_id", "created_at"),
        CheckConstraint(
            "type IN ('invoice', 'proforma', 'credit_note', 'estimate')",
            name="ck_invoices_type",
        ),
        CheckConstraint(
            "status IN ('draft', 'sent', 'viewed', 'paid', 'overdue', 'canceled')",
            name="ck_invoices_status",
        ),
        CheckConstraint("discount_amount >= 0", name="ck_invoices_discount_positive"),
        CheckConstraint("total >= 0", name="ck_invoices_total_positive"),
        # Backstop a commit time del ledger: mai pagato più del totale
        CheckConstraint("amount_paid >= 0", name="ck_invoices_amount_paid_positive"),
        CheckConstraint("amount_paid <= total", name="ck_invoices_amount_paid_le_total"),
    )

    def __repr__(self) -> str:
        return (
            f"<Invoice(id={self.id}, number={self.invoice_number}, "
            f"total={self.total}, status={self.status})>"
        )


class InvoiceItem(Base, UUIDMixin, TimestampMixin):
    """
    Modello per le righe della fattura.

    Attributes:
        invoice_id: UUID della fattura padre
        description: Descrizione del servizio
        quantity: Quantità
        rate: Prezzo unitario
        amount: quantity * rate
        taxable: Flag riga soggetta a imposta
        tax_rate: Aliquota percentuale della riga
        tax_amount: Imposta calcolata sulla riga
        position: Ordine della riga in fattura
    """

    __tablename__ = "invoice_items"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("1"))
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    invoice: Mapped["Invoice"] = relationship("Invoice", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        CheckConstraint("rate >= 0", name="ck_invoice_items_rate_positive"),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="ck_invoice_items_tax_rate"),
    )

    def __repr__(self) -> str:
        return f"<InvoiceItem(id={self.id}, description={self.description[:30]}, amount={self.amount})>"


class Payment(Base, UUIDMixin, TimestampMixin):
    """
    Modello per i pagamenti registrati su una fattura.

    Un pagamento appartiene a una sola fattura e a un solo tenant.
    Viene creato ed eliminato solo tramite il PaymentService, che aggiorna
    nella stessa transazione i campi amount_paid/balance_due/status della fattura.

    Attributes:
        invoice_id: UUID della fattura
        tenant_id: UUID del tenant
        amount: Importo (> 0)
        payment_date: Data del pagamento
        payment_method: bank_transfer, credit_card, check, cash, other
        reference_number: Riferimento (CRO bonifico, numero assegno, ...)
        notes: Note aggiuntive
        recorded_by: UUID dell'utente che ha registrato il pagamento
    """

    __tablename__ = "payments"

    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tenants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    reference_number: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    __table_args__ = (
        Index("ix_payments_tenant_invoice", "tenant_id", "invoice_id"),
        Index("ix_payments_tenant_payment_date", "tenant_id", "payment_date"),
        Index("ix_payments_tenant_method", "tenant_id", "payment_method"),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "payment_method IN ('bank_transfer', 'credit_card', 'check', 'cash', 'other')",
            name="ck_payments_payment_method",
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, amount={self.amount}, method={self.payment_method})>"
