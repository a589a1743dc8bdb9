"""
Schemas Pydantic per il Catalogo Servizi
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Contiene:
- Enum PricingType
- Schemas per Service (creazione, aggiornamento, lettura, lista)
- Schemas per l'assegnazione dei servizi ai vendor
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from invoicing.core.exceptions import BusinessValidationError
from invoicing.schemas.invoice import MAX_MONEY


class PricingType(str, Enum):
    """Unità di prezzo del servizio."""
    FIXED = "fixed"
    HOURLY = "hourly"
    DAILY = "daily"


class ServicePricing(BaseModel):
    """Prezzo: tipo, importo unitario e valuta."""

    type: PricingType = PricingType.FIXED
    amount: Decimal = Field(..., ge=0, le=MAX_MONEY, description="Prezzo unitario")
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


# -------------------------------------------------------------------
# Schemas per Service
# -------------------------------------------------------------------

class ServiceCreate(BaseModel):
    """Schema per la creazione di un servizio."""

    name: str = Field(..., min_length=1, max_length=255, description="Nome del servizio")
    description: Optional[str] = None
    category: str = Field(..., min_length=1, max_length=100, description="Categoria")
    pricing: ServicePricing
    taxable: bool = False
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100, description="Aliquota percentuale")

    @field_validator("name", "category")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise BusinessValidationError("Il campo non può essere vuoto")
        return v


class ServiceUpdate(BaseModel):
    """Schema per l'aggiornamento parziale di un servizio."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    pricing: Optional[ServicePricing] = None
    taxable: Optional[bool] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def validate_update(self) -> "ServiceUpdate":
        if not self.model_fields_set:
            raise BusinessValidationError("È necessario modificare almeno un campo")
        return self


class ServiceRead(BaseModel):
    """Schema per la lettura di un servizio."""

    id: uuid.UUID
    tenant_id: uuid.UUID = Field(..., serialization_alias="tenantId")
    name: str
    description: Optional[str] = None
    category: str
    pricing: ServicePricing
    taxable: bool
    tax_rate: Optional[Decimal] = Field(None, serialization_alias="taxRate")
    is_active: bool = Field(..., serialization_alias="isActive")
    times_used: int = Field(..., serialization_alias="timesUsed")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)


class ServiceList(BaseModel):
    """Lista paginata di servizi."""

    items: list[ServiceRead]
    total: int
    page: int
    per_page: int = Field(..., serialization_alias="perPage")
    total_pages: int = Field(..., serialization_alias="totalPages")


# -------------------------------------------------------------------
# Schemas per le assegnazioni vendor ↔ servizio
# -------------------------------------------------------------------

class VendorServiceAssign(BaseModel):
    """Assegnazione di un servizio a un vendor, con override opzionali."""

    service_id: uuid.UUID
    custom_pricing: Optional[ServicePricing] = None
    custom_tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    custom_taxable: Optional[bool] = None


class VendorServiceUpdate(BaseModel):
    """
    Aggiornamento di un'assegnazione.

    Un campo custom_* esplicitamente null rimuove l'override e torna
    al default del servizio.
    """

    custom_pricing: Optional[ServicePricing] = None
    custom_tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    custom_taxable: Optional[bool] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def validate_update(self) -> "VendorServiceUpdate":
        if not self.model_fields_set:
            raise BusinessValidationError("È necessario modificare almeno un campo")
        return self


class VendorServiceRead(BaseModel):
    """Servizio come visto da un vendor: prezzo e imposta effettivi."""

    id: uuid.UUID = Field(..., description="UUID del servizio")
    vendor_service_id: uuid.UUID = Field(..., serialization_alias="vendorServiceId")
    name: str
    description: Optional[str] = None
    category: str
    pricing: ServicePricing
    taxable: bool
    tax_rate: Optional[Decimal] = Field(None, serialization_alias="taxRate")
    is_custom_pricing: bool = Field(..., serialization_alias="isCustomPricing")
    is_active: bool = Field(..., serialization_alias="isActive")
    times_used: int = Field(..., serialization_alias="timesUsed")


class VendorRef(BaseModel):
    id: uuid.UUID
    company_name: str = Field(..., serialization_alias="companyName")


class VendorServices(BaseModel):
    """Servizi assegnati a un vendor."""

    vendor: VendorRef
    services: list[VendorServiceRead]
