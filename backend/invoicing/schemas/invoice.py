"""
Schemas Pydantic per la Fatturazione
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Contiene:
- Enums: InvoiceType, InvoiceStatus, DiscountType
- Schemas per InvoiceItem
- Schemas per Invoice (creazione, aggiornamento, stato, lettura, lista)
- Schema per le statistiche dashboard
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from invoicing.core.exceptions import BusinessValidationError

# Massimo importo memorizzabile in una colonna Numeric(12, 2)
MAX_MONEY = Decimal("9999999999.99")


# -------------------------------------------------------------------
# Enum
# -------------------------------------------------------------------

class InvoiceType(str, Enum):
    """Tipi di documento."""
    INVOICE = "invoice"
    PROFORMA = "proforma"
    CREDIT_NOTE = "credit_note"
    ESTIMATE = "estimate"


class InvoiceStatus(str, Enum):
    """Stati della fattura. Nessun grafo di transizione: vale solo l'appartenenza all'enum."""
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class DiscountType(str, Enum):
    """Come è stato espresso lo sconto in fase di inserimento (solo informativo)."""
    PERCENTAGE = "percentage"
    FIXED = "fixed"


# -------------------------------------------------------------------
# Schemas per InvoiceItem
# -------------------------------------------------------------------

class InvoiceItemCreate(BaseModel):
    """Riga fattura in ingresso: amount e imposta sono calcolati dal service."""

    description: str = Field(
        default="Service",
        min_length=1,
        max_length=500,
        description="Descrizione della riga",
    )
    quantity: Decimal = Field(
        default=Decimal("1"),
        gt=0,
        le=MAX_MONEY,
        description="Quantità",
    )
    rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=MAX_MONEY,
        description="Prezzo unitario",
    )
    taxable: bool = Field(
        default=False,
        description="Riga soggetta a imposta",
    )
    tax_rate: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=100,
        description="Aliquota percentuale della riga",
    )


class InvoiceItemRead(BaseModel):
    """Riga fattura in lettura."""

    id: uuid.UUID
    description: str
    quantity: Decimal
    rate: Decimal
    amount: Decimal
    taxable: bool
    tax_rate: Decimal = Field(..., serialization_alias="taxRate")
    tax_amount: Decimal = Field(..., serialization_alias="taxAmount")
    position: int

    model_config = ConfigDict(from_attributes=True)


# -------------------------------------------------------------------
# Schemas per Invoice
# -------------------------------------------------------------------

class VendorSnapshot(BaseModel):
    """Dati controparte inseriti manualmente quando non si referenzia un vendor."""

    company_name: str = Field(..., min_length=1, max_length=255)
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: dict[str, Any] = Field(default_factory=dict)
    tax_id: Optional[str] = None
    website: Optional[str] = None
    signature_url: Optional[str] = None
    payment_details: dict[str, Any] = Field(default_factory=dict)
    header: Optional[str] = None
    footer: Optional[str] = None


class InvoiceCreate(BaseModel):
    """
    Schema per la creazione di una fattura.

    NON include:
    - invoice_number (generato dal service)
    - subtotal/tax_amount/total/balance_due (calcolati dal service)
    - amount_paid (sempre 0 alla creazione)
    """

    vendor_id: Optional[uuid.UUID] = Field(
        None,
        description="UUID del vendor di cui congelare i dati in fattura",
    )
    vendor_snapshot: Optional[VendorSnapshot] = Field(
        None,
        description="Dati controparte manuali (usati se vendor_id è assente)",
    )
    items: list[InvoiceItemCreate] = Field(
        ...,
        min_length=1,
        description="Righe della fattura",
    )
    type: InvoiceType = Field(default=InvoiceType.INVOICE)
    status: Optional[InvoiceStatus] = Field(
        None,
        description="Solo 'sent' è rispettato; qualunque altro valore crea una bozza",
    )
    issue_date: Optional[date] = Field(None, description="Data emissione (default: oggi)")
    due_date: Optional[date] = Field(None, description="Data scadenza (default: data emissione)")
    currency: Optional[str] = Field(
        None,
        min_length=3,
        max_length=3,
        description="Valuta ISO (default: valuta del tenant)",
    )
    discount_amount: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        le=MAX_MONEY,
        description="Sconto assoluto sul totale",
    )
    discount_type: Optional[DiscountType] = None
    layout_id: Optional[str] = Field(None, max_length=100)
    custom_template_id: Optional[uuid.UUID] = None
    internal_notes: Optional[str] = None
    client_notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @model_validator(mode="after")
    def validate_dates(self) -> "InvoiceCreate":
        """Valida che due_date >= issue_date."""
        if self.issue_date and self.due_date and self.due_date < self.issue_date:
            raise BusinessValidationError(
                "La data di scadenza non può essere precedente alla data di emissione"
            )
        return self


class InvoiceUpdate(BaseModel):
    """
    Schema per l'aggiornamento di una fattura.

    Espone solo campi non finanziari: totali, pagato e residuo si modificano
    esclusivamente tramite creazione fattura e ledger pagamenti.
    """

    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    layout_id: Optional[str] = Field(None, max_length=100)
    custom_template_id: Optional[uuid.UUID] = None
    internal_notes: Optional[str] = None
    client_notes: Optional[str] = None
    tags: Optional[list[str]] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    @model_validator(mode="after")
    def validate_update(self) -> "InvoiceUpdate":
        """Valida che almeno un campo sia stato modificato."""
        if not self.model_fields_set:
            raise BusinessValidationError("È necessario modificare almeno un campo")
        return self


class InvoiceStatusUpdate(BaseModel):
    """Schema per il cambio di stato."""

    status: str = Field(..., description="Nuovo stato")


class InvoiceRead(BaseModel):
    """Schema per la lettura di una fattura."""

    id: uuid.UUID
    tenant_id: uuid.UUID = Field(..., serialization_alias="tenantId")
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    type: InvoiceType
    status: InvoiceStatus
    issue_date: date = Field(..., serialization_alias="issueDate")
    due_date: date = Field(..., serialization_alias="dueDate")
    paid_date: Optional[date] = Field(None, serialization_alias="paidDate")
    sent_at: Optional[datetime] = Field(None, serialization_alias="sentAt")

    vendor_id: Optional[uuid.UUID] = Field(None, serialization_alias="vendorId")
    vendor_snapshot: dict[str, Any] = Field(default_factory=dict, serialization_alias="vendorSnapshot")
    created_by: uuid.UUID = Field(..., serialization_alias="createdBy")

    items: list[InvoiceItemRead] = Field(default_factory=list)

    # Importi denormalizzati
    subtotal: Decimal
    tax_amount: Decimal = Field(..., serialization_alias="taxAmount")
    discount_amount: Decimal = Field(..., serialization_alias="discountAmount")
    discount_type: Optional[DiscountType] = Field(None, serialization_alias="discountType")
    total: Decimal
    amount_paid: Decimal = Field(..., serialization_alias="amountPaid")
    balance_due: Decimal = Field(..., serialization_alias="balanceDue")
    currency: str

    layout_id: str = Field(..., serialization_alias="layoutId")
    custom_template_id: Optional[uuid.UUID] = Field(None, serialization_alias="customTemplateId")
    pdf_generated_at: Optional[datetime] = Field(None, serialization_alias="pdfGeneratedAt")
    pdf_watermarked: bool = Field(..., serialization_alias="pdfWatermarked")
    email_sent_at: Optional[datetime] = Field(None, serialization_alias="emailSentAt")

    internal_notes: Optional[str] = Field(None, serialization_alias="internalNotes")
    client_notes: Optional[str] = Field(None, serialization_alias="clientNotes")
    tags: list[str] = Field(default_factory=list)

    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)


class InvoiceSummary(BaseModel):
    """Versione ridotta per le liste."""

    id: uuid.UUID
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    type: InvoiceType
    status: InvoiceStatus
    issue_date: date = Field(..., serialization_alias="issueDate")
    due_date: date = Field(..., serialization_alias="dueDate")
    vendor_snapshot: dict[str, Any] = Field(default_factory=dict, serialization_alias="vendorSnapshot")
    total: Decimal
    amount_paid: Decimal = Field(..., serialization_alias="amountPaid")
    balance_due: Decimal = Field(..., serialization_alias="balanceDue")
    currency: str

    model_config = ConfigDict(from_attributes=True)


class InvoiceList(BaseModel):
    """Lista paginata di fatture."""

    items: list[InvoiceSummary]
    total: int
    page: int
    per_page: int = Field(..., serialization_alias="perPage")
    total_pages: int = Field(..., serialization_alias="totalPages")


class StatusBreakdown(BaseModel):
    """Conteggio e importo per stato."""

    status: InvoiceStatus
    count: int
    total_amount: Decimal = Field(..., serialization_alias="totalAmount")


class DashboardStats(BaseModel):
    """Statistiche aggregate delle fatture del tenant."""

    total_invoices: int = Field(..., serialization_alias="totalInvoices")
    total_revenue: Decimal = Field(..., serialization_alias="totalRevenue")
    outstanding_amount: Decimal = Field(..., serialization_alias="outstandingAmount")
    by_status: list[StatusBreakdown] = Field(default_factory=list, serialization_alias="byStatus")
