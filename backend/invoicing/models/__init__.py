"""
Modelli Database SQLAlchemy
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Import centralizzato di tutti i modelli per create_all e usage generico.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from invoicing.models.tenant import Tenant
from invoicing.models.vendor import Vendor
from invoicing.models.template import InvoiceTemplate
from invoicing.models.invoice import Invoice, InvoiceItem, Payment
from invoicing.models.service import Service, VendorServiceAssignment

__all__ = [
    "Base",
    "Tenant",
    "Vendor",
    "InvoiceTemplate",
    "Invoice",
    "InvoiceItem",
    "Payment",
    "Service",
    "VendorServiceAssignment",
]
