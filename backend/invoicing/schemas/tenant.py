"""
Schemas Pydantic per il Tenant
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from invoicing.core.exceptions import BusinessValidationError


class SubscriptionTier(str, Enum):
    """Piani di sottoscrizione."""
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


class TenantCreate(BaseModel):
    """Schema per la registrazione di un nuovo tenant."""

    company_name: str = Field(..., min_length=1, max_length=255)
    owner_email: EmailStr
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    default_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    invoice_number_prefix: Optional[str] = Field(None, max_length=20)
    invoice_number_start: Optional[int] = Field(None, ge=0)

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.upper()
        if not _CURRENCY_RE.match(v):
            raise BusinessValidationError(f"Valuta non valida: {v}")
        return v


class TenantSettingsUpdate(BaseModel):
    """
    Impostazioni di fatturazione del tenant.

    Prefisso e numero iniziale alimentano la numerazione fatture;
    max_due_date_days limita la distanza tra emissione e scadenza.
    """

    default_currency: Optional[str] = Field(None, min_length=3, max_length=3)
    invoice_number_prefix: Optional[str] = Field(None, max_length=20)
    invoice_number_start: Optional[int] = Field(None, ge=0)
    default_payment_terms: Optional[str] = Field(None, max_length=100)
    max_due_date_days: Optional[int] = Field(None, ge=1)

    @field_validator("default_currency")
    @classmethod
    def validate_currency(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.upper()
        if not _CURRENCY_RE.match(v):
            raise BusinessValidationError(f"Valuta non valida: {v}")
        return v

    @model_validator(mode="after")
    def validate_update(self) -> "TenantSettingsUpdate":
        if not self.model_fields_set:
            raise BusinessValidationError("È necessario modificare almeno un campo")
        return self


class TenantBrandingUpdate(BaseModel):
    """Dati di intestazione stampati sulle fatture."""

    logo_url: Optional[str] = Field(None, max_length=500)
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    company_address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=30)
    website: Optional[str] = Field(None, max_length=255)
    tax_id: Optional[str] = Field(None, max_length=50)
    signature_url: Optional[str] = Field(None, max_length=500)
    payment_details: Optional[dict[str, Any]] = None


class TenantRead(BaseModel):
    """Schema per la lettura del tenant."""

    id: uuid.UUID
    company_name: str = Field(..., serialization_alias="companyName")
    owner_email: str = Field(..., serialization_alias="ownerEmail")
    subscription_tier: SubscriptionTier = Field(..., serialization_alias="subscriptionTier")
    branding: dict[str, Any] = Field(default_factory=dict)
    payment_details: dict[str, Any] = Field(default_factory=dict, serialization_alias="paymentDetails")
    default_currency: str = Field(..., serialization_alias="defaultCurrency")
    invoice_number_prefix: str = Field(..., serialization_alias="invoiceNumberPrefix")
    invoice_number_start: int = Field(..., serialization_alias="invoiceNumberStart")
    default_payment_terms: str = Field(..., serialization_alias="defaultPaymentTerms")
    max_due_date_days: Optional[int] = Field(None, serialization_alias="maxDueDateDays")
    invoices_this_month: int = Field(..., serialization_alias="invoicesThisMonth")
    created_at: datetime = Field(..., serialization_alias="createdAt")

    model_config = ConfigDict(from_attributes=True)
