"""
Schemas Pydantic per i template di fattura
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

La config è un dizionario libero (fonts, colors, layout, header,
table, footer): il renderer legge solo le chiavi che conosce.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TemplateType(str, Enum):
    """Origine del template."""
    PRESET = "preset"
    CUSTOM = "custom"


class TemplateCreate(BaseModel):
    """Schema per la creazione di un template custom."""

    name: str = Field(..., min_length=1, max_length=255)
    config: dict[str, Any] = Field(default_factory=dict)
    is_default: bool = False
    is_public: bool = False


class TemplateUpdate(BaseModel):
    """Aggiornamento parziale: la config viene fusa con quella esistente."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    config: Optional[dict[str, Any]] = None
    is_default: Optional[bool] = None
    is_public: Optional[bool] = None


class TemplateDuplicate(BaseModel):
    """Richiesta di duplicazione con eventuali modifiche alla config."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    modifications: dict[str, Any] = Field(default_factory=dict)


class TemplateRead(BaseModel):
    """Schema per la lettura di un template."""

    id: uuid.UUID
    tenant_id: Optional[uuid.UUID] = Field(None, serialization_alias="tenantId")
    name: str
    type: TemplateType
    is_default: bool = Field(..., serialization_alias="isDefault")
    is_public: bool = Field(..., serialization_alias="isPublic")
    config: dict[str, Any] = Field(default_factory=dict)
    usage_count: int = Field(..., serialization_alias="usageCount")
    last_used_at: Optional[datetime] = Field(None, serialization_alias="lastUsedAt")
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    model_config = ConfigDict(from_attributes=True)
