"""
Schemas Pydantic per gli endpoint di utilità
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class AmountFormat(str, Enum):
    """Stile di formattazione dell'importo in lettere."""
    STANDARD = "standard"
    LEGAL = "legal"
    FORMAL = "formal"


class AmountInWordsRequest(BaseModel):
    """Richiesta di conversione importo in lettere."""

    amount: Decimal = Field(..., description="Importo (può essere negativo)")
    currency: str = Field("USD", min_length=3, max_length=3)
    format: AmountFormat = AmountFormat.STANDARD
    include_decimals: bool = True

    @field_validator("currency")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class AmountInWordsResponse(BaseModel):
    """Importo convertito."""

    amount: Decimal
    currency: str
    format: AmountFormat
    words: str
