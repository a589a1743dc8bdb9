"""
API v1 Routes
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from invoicing.api.v1 import invoices, payments, services, templates, tenants, utils, vendors

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(tenants.router)
api_v1_router.include_router(vendors.router)
api_v1_router.include_router(services.router)
api_v1_router.include_router(invoices.router)
api_v1_router.include_router(payments.router)
api_v1_router.include_router(templates.router)
api_v1_router.include_router(utils.router)

# Esportazione
__all__ = ["api_v1_router"]
