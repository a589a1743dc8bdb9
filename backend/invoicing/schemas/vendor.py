"""
Schemas Pydantic per l'entità Vendor
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""
# Definisce gli schemi di validazione e serializzazione per l'API.

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from invoicing.core.exceptions import BusinessValidationError


# -------------------------------------------------------------------
# Funzioni di normalizzazione
# -------------------------------------------------------------------

def _strip_or_none(value: Optional[str]) -> Optional[str]:
    """Rimuove spazi e converte le stringhe vuote in None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class VendorAddress(BaseModel):
    """Indirizzo strutturato del vendor."""

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


# -------------------------------------------------------------------
# Schemas
# -------------------------------------------------------------------

class VendorBase(BaseModel):
    """Campi comuni del vendor."""

    company_name: str = Field(..., min_length=1, max_length=255, description="Ragione sociale")
    contact_person: Optional[str] = Field(None, max_length=255)
    email: EmailStr = Field(..., description="Email (unica per tenant)")
    phone: Optional[str] = Field(None, max_length=30)
    address: VendorAddress = Field(default_factory=VendorAddress)
    payment_details: dict[str, Any] = Field(default_factory=dict)
    tax_id: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=255)
    signature_url: Optional[str] = Field(None, max_length=500)
    header: str = Field(..., min_length=1, description="Intestazione stampata in fattura")
    footer: str = Field(..., min_length=1, description="Piè di pagina stampato in fattura")
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("company_name", "header", "footer")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise BusinessValidationError("Il campo non può essere vuoto")
        return v

    @field_validator("contact_person", "phone", "tax_id", "website")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return _strip_or_none(v)

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class VendorCreate(VendorBase):
    """Schema per la creazione di un vendor."""
    pass


class VendorUpdate(BaseModel):
    """Schema per l'aggiornamento parziale di un vendor."""

    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    contact_person: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[VendorAddress] = None
    payment_details: Optional[dict[str, Any]] = None
    tax_id: Optional[str] = Field(None, max_length=50)
    website: Optional[str] = Field(None, max_length=255)
    signature_url: Optional[str] = Field(None, max_length=500)
    header: Optional[str] = Field(None, min_length=1)
    footer: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    tags: Optional[list[str]] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @model_validator(mode="after")
    def validate_update(self) -> "VendorUpdate":
        if not self.model_fields_set:
            raise BusinessValidationError("È necessario modificare almeno un campo")
        return self


class VendorRead(BaseModel):
    """Schema per la lettura di un vendor."""

    id: uuid.UUID
    tenant_id: uuid.UUID = Field(..., serialization_alias="tenantId")
    company_name: str = Field(..., serialization_alias="companyName")
    contact_person: Optional[str] = Field(None, serialization_alias="contactPerson")
    email: str
    phone: Optional[str] = None
    address: dict[str, Any] = Field(default_factory=dict)
    payment_details: dict[str, Any] = Field(default_factory=dict, serialization_alias="paymentDetails")
    tax_id: Optional[str] = Field(None, serialization_alias="taxId")
    website: Optional[str] = None
    signature_url: Optional[str] = Field(None, serialization_alias="signatureUrl")
    header: str
    footer: str
    notes: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)


class VendorList(BaseModel):
    """Lista paginata di vendor."""

    items: list[VendorRead]
    total: int
    page: int
    per_page: int = Field(..., serialization_alias="perPage")
    total_pages: int = Field(..., serialization_alias="totalPages")
