"""
Schemas Pydantic per il ledger pagamenti
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from invoicing.schemas.invoice import InvoiceStatus


class PaymentMethod(str, Enum):
    """Metodi di pagamento ammessi."""
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    CHECK = "check"
    CASH = "cash"
    OTHER = "other"


class PaymentCreate(BaseModel):
    """
    Schema per la registrazione di un pagamento.

    L'importo non è vincolato a > 0 a livello di schema: il controllo
    è fatto dal service dopo la verifica di esistenza della fattura,
    così l'ordine degli errori resta NotFound → InvalidAmount → AmountExceedsDue.
    """

    amount: Decimal = Field(..., description="Importo del pagamento")
    payment_date: Optional[date] = Field(None, description="Data pagamento (default: oggi)")
    payment_method: PaymentMethod = Field(..., description="Metodo di pagamento")
    reference_number: Optional[str] = Field(None, max_length=255, description="CRO, numero assegno, ...")
    notes: Optional[str] = Field(None, max_length=2000)


class PaymentRead(BaseModel):
    """Schema per la lettura di un pagamento."""

    id: uuid.UUID
    invoice_id: uuid.UUID = Field(..., serialization_alias="invoiceId")
    tenant_id: uuid.UUID = Field(..., serialization_alias="tenantId")
    amount: Decimal
    payment_date: date = Field(..., serialization_alias="paymentDate")
    payment_method: PaymentMethod = Field(..., serialization_alias="paymentMethod")
    reference_number: Optional[str] = Field(None, serialization_alias="referenceNumber")
    notes: Optional[str] = None
    recorded_by: uuid.UUID = Field(..., serialization_alias="recordedBy")
    created_at: datetime = Field(..., serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)


class InvoiceBalance(BaseModel):
    """Stato finanziario della fattura dopo una mutazione del ledger."""

    id: uuid.UUID
    invoice_number: str = Field(..., serialization_alias="invoiceNumber")
    status: InvoiceStatus
    total: Decimal
    amount_paid: Decimal = Field(..., serialization_alias="amountPaid")
    balance_due: Decimal = Field(..., serialization_alias="balanceDue")
    paid_date: Optional[date] = Field(None, serialization_alias="paidDate")

    model_config = ConfigDict(from_attributes=True)


class PaymentRecordResponse(BaseModel):
    """Risposta alla registrazione: pagamento creato e fattura aggiornata."""

    payment: PaymentRead
    invoice: InvoiceBalance


class PaymentSummary(BaseModel):
    """Riepilogo letto dai campi della fattura (non ricalcolato dai pagamenti)."""

    total_paid: Decimal = Field(..., serialization_alias="totalPaid")
    total_due: Decimal = Field(..., serialization_alias="totalDue")
    invoice_total: Decimal = Field(..., serialization_alias="invoiceTotal")
    payment_count: int = Field(..., serialization_alias="paymentCount")


class InvoicePayments(BaseModel):
    """Pagamenti di una fattura, dal più recente."""

    payments: list[PaymentRead]
    summary: PaymentSummary


class TenantPaymentStats(BaseModel):
    """Statistiche aggregate sui pagamenti filtrati del tenant."""

    total_payments: Decimal = Field(..., serialization_alias="totalPayments")
    payment_count: int = Field(..., serialization_alias="paymentCount")
    average_payment: Decimal = Field(..., serialization_alias="averagePayment")


class TenantPaymentList(BaseModel):
    """Lista paginata dei pagamenti del tenant."""

    items: list[PaymentRead]
    total: int
    page: int
    per_page: int = Field(..., serialization_alias="perPage")
    total_pages: int = Field(..., serialization_alias="totalPages")
    summary: TenantPaymentStats
