"""
Schemas Pydantic per l'invio delle fatture via email
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from invoicing.schemas.invoice import InvoiceRead


class InvoiceSendRequest(BaseModel):
    """
    Richiesta di invio.

    Senza destinatari espliciti si usa l'email dello snapshot vendor.
    """

    to: list[EmailStr] = Field(default_factory=list, max_length=10, description="Destinatari")
    cc: list[EmailStr] = Field(default_factory=list, max_length=10, description="Copia conoscenza")
    message: Optional[str] = Field(None, max_length=5000, description="Messaggio nel corpo email")
    attach_pdf: bool = Field(default=True, description="Allega il PDF della fattura")


class InvoiceSendResponse(BaseModel):
    """Esito dell'invio con la fattura aggiornata."""

    message_id: str = Field(..., serialization_alias="messageId")
    sent_at: datetime = Field(..., serialization_alias="sentAt")
    recipients: list[str]
    cc: list[str] = Field(default_factory=list)
    attached_pdf: bool = Field(..., serialization_alias="attachedPdf")
    invoice: InvoiceRead
