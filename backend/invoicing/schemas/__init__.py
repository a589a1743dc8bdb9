"""
Schemas Pydantic per il progetto Invoicing SaaS

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
delle richieste e la serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from invoicing.schemas import InvoiceRead, PaymentCreate, etc.

from invoicing.schemas.tenant import (
    SubscriptionTier,
    TenantBrandingUpdate,
    TenantCreate,
    TenantRead,
    TenantSettingsUpdate,
)
from invoicing.schemas.vendor import (
    VendorAddress,
    VendorCreate,
    VendorList,
    VendorRead,
    VendorUpdate,
)
from invoicing.schemas.invoice import (
    DashboardStats,
    DiscountType,
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceItemRead,
    InvoiceList,
    InvoiceRead,
    InvoiceStatus,
    InvoiceStatusUpdate,
    InvoiceSummary,
    InvoiceType,
    InvoiceUpdate,
    StatusBreakdown,
    VendorSnapshot,
)
from invoicing.schemas.payment import (
    InvoiceBalance,
    InvoicePayments,
    PaymentCreate,
    PaymentMethod,
    PaymentRead,
    PaymentRecordResponse,
    PaymentSummary,
    TenantPaymentList,
    TenantPaymentStats,
)
from invoicing.schemas.email import InvoiceSendRequest, InvoiceSendResponse
from invoicing.schemas.service import (
    PricingType,
    ServiceCreate,
    ServiceList,
    ServicePricing,
    ServiceRead,
    ServiceUpdate,
    VendorServiceAssign,
    VendorServiceRead,
    VendorServices,
    VendorServiceUpdate,
)
from invoicing.schemas.template import (
    TemplateCreate,
    TemplateDuplicate,
    TemplateRead,
    TemplateType,
    TemplateUpdate,
)
from invoicing.schemas.utils import (
    AmountFormat,
    AmountInWordsRequest,
    AmountInWordsResponse,
)

__all__ = [
    # Tenant schemas
    "SubscriptionTier",
    "TenantBrandingUpdate",
    "TenantCreate",
    "TenantRead",
    "TenantSettingsUpdate",
    # Vendor schemas
    "VendorAddress",
    "VendorCreate",
    "VendorList",
    "VendorRead",
    "VendorUpdate",
    # Invoice schemas
    "DashboardStats",
    "DiscountType",
    "InvoiceCreate",
    "InvoiceItemCreate",
    "InvoiceItemRead",
    "InvoiceList",
    "InvoiceRead",
    "InvoiceStatus",
    "InvoiceStatusUpdate",
    "InvoiceSummary",
    "InvoiceType",
    "InvoiceUpdate",
    "StatusBreakdown",
    "VendorSnapshot",
    # Payment schemas
    "InvoiceBalance",
    "InvoicePayments",
    "PaymentCreate",
    "PaymentMethod",
    "PaymentRead",
    "PaymentRecordResponse",
    "PaymentSummary",
    "TenantPaymentList",
    "TenantPaymentStats",
    # Email schemas
    "InvoiceSendRequest",
    "InvoiceSendResponse",
    # Service catalog schemas
    "PricingType",
    "ServiceCreate",
    "ServiceList",
    "ServicePricing",
    "ServiceRead",
    "ServiceUpdate",
    "VendorServiceAssign",
    "VendorServiceRead",
    "VendorServices",
    "VendorServiceUpdate",
    # Template schemas
    "TemplateCreate",
    "TemplateDuplicate",
    "TemplateRead",
    "TemplateType",
    "TemplateUpdate",
    # Utility schemas
    "AmountFormat",
    "AmountInWordsRequest",
    "AmountInWordsResponse",
]
